# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio de la aplicación.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los servicios retornan dicts {'ok': ..., 'error': ..., 'error_type': ...}
#
# ESTRUCTURA:
# ├── session_service.py        → Sesión anónima (user_id)
# ├── inventory_service.py      → Insumos, códigos, stock
# ├── kit_service.py            → Kits, costo, armables
# ├── cart_service.py           → Mesas, comandas, carrito, totales
# ├── payment_service.py        → Validación de pagos
# ├── sales_service.py          → Cobro atómico
# ├── client_service.py         → Clientes, total gastado, top 10
# ├── expense_service.py        → Egresos
# ├── daily_expense_service.py  → Gastos diarios
# ├── report_service.py         → Reporte total, ventas esperadas, más vendidos
# ├── live_views.py             → Vistas con suscripciones en vivo
# └── audit_service.py          → Auditoría
# ==============================================================================

from .audit_service import AuditService
from .session_service import SessionService
from .inventory_service import InventoryService
from .kit_service import KitService
from .cart_service import CartService
from .payment_service import PaymentService
from .sales_service import SalesService
from .client_service import ClientService
from .expense_service import ExpenseService
from .daily_expense_service import DailyExpenseService
from .report_service import ReportService
from .live_views import LiveView, ClientSpendingView, InventoryView

__all__ = [
    'AuditService',
    'SessionService',
    'InventoryService',
    'KitService',
    'CartService',
    'PaymentService',
    'SalesService',
    'ClientService',
    'ExpenseService',
    'DailyExpenseService',
    'ReportService',
    'LiveView',
    'ClientSpendingView',
    'InventoryView',
]
