# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS - Inyección de servicios
# ==============================================================================
# Punto único para obtener el almacén, los repositorios y los servicios.
# Facilita:
#   - Inyección de dependencias
#   - Testing (un contenedor por directorio de datos temporal)
#   - Cambiar de almacén sin tocar servicios
#
# PARA CAMBIAR DE ALMACÉN:
#   Reemplazar JSONDocumentStore en la propiedad `store` por otra clase que
#   implemente IDocumentStore. Repositorios y servicios no cambian.
# ==============================================================================

import os
from typing import Optional

from refugio_pos.repositories import (
    JSONDocumentStore,
    InsumoRepository,
    KitRepository,
    SalesRepository,
    ComandaRepository,
    ClientRepository,
    ExpenseRepository,
    DailyExpenseRepository,
    AuditRepository,
)
from refugio_pos.services import (
    AuditService,
    SessionService,
    InventoryService,
    KitService,
    CartService,
    PaymentService,
    SalesService,
    ClientService,
    ExpenseService,
    DailyExpenseService,
    ReportService,
    ClientSpendingView,
    InventoryView,
)


class AppContainer:
    """
    Contenedor de dependencias de la aplicación.

    Implementa el patrón Singleton para asegurar una única instancia
    del almacén y de cada servicio.

    Uso:
        container = AppContainer(data_dir='/ruta/data')
        sales_service = container.sales_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, data_dir: str = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, data_dir: str = None):
        """
        Args:
            data_dir: Directorio de los archivos JSON de colecciones
        """
        if self._initialized:
            return

        self._data_dir = data_dir or os.path.join(os.path.dirname(os.path.abspath(__file__)), 'data')
        self._cache = {}
        self._initialized = True

    @property
    def data_dir(self) -> str:
        return self._data_dir

    def _get(self, key, factory):
        """Crea la instancia la primera vez (lazy loading)."""
        if key not in self._cache:
            self._cache[key] = factory()
        return self._cache[key]

    # =========================================================================
    # ALMACÉN Y REPOSITORIOS
    # =========================================================================

    @property
    def store(self) -> JSONDocumentStore:
        """Almacén de documentos (singleton)."""
        return self._get('store', lambda: JSONDocumentStore(self._data_dir))

    @property
    def insumo_repo(self) -> InsumoRepository:
        return self._get('insumo_repo', lambda: InsumoRepository(self.store))

    @property
    def kit_repo(self) -> KitRepository:
        return self._get('kit_repo', lambda: KitRepository(self.store))

    @property
    def sales_repo(self) -> SalesRepository:
        return self._get('sales_repo', lambda: SalesRepository(self.store))

    @property
    def comanda_repo(self) -> ComandaRepository:
        return self._get('comanda_repo', lambda: ComandaRepository(self.store))

    @property
    def client_repo(self) -> ClientRepository:
        return self._get('client_repo', lambda: ClientRepository(self.store))

    @property
    def expense_repo(self) -> ExpenseRepository:
        return self._get('expense_repo', lambda: ExpenseRepository(self.store))

    @property
    def daily_expense_repo(self) -> DailyExpenseRepository:
        return self._get('daily_expense_repo', lambda: DailyExpenseRepository(self.store))

    @property
    def audit_repo(self) -> AuditRepository:
        return self._get('audit_repo', lambda: AuditRepository(self.store))

    # =========================================================================
    # SERVICIOS
    # =========================================================================

    @property
    def audit_service(self) -> AuditService:
        return self._get('audit_service', lambda: AuditService(self.audit_repo))

    @property
    def session_service(self) -> SessionService:
        return self._get('session_service', lambda: SessionService(self.audit_service))

    @property
    def inventory_service(self) -> InventoryService:
        return self._get('inventory_service', lambda: InventoryService(
            self.store, self.insumo_repo, self.kit_repo, self.audit_service
        ))

    @property
    def kit_service(self) -> KitService:
        return self._get('kit_service', lambda: KitService(
            self.store, self.kit_repo, self.insumo_repo, self.audit_service
        ))

    @property
    def cart_service(self) -> CartService:
        return self._get('cart_service', lambda: CartService(
            self.insumo_repo, self.kit_repo, self.client_repo, self.comanda_repo
        ))

    @property
    def payment_service(self) -> PaymentService:
        return self._get('payment_service', PaymentService)

    @property
    def sales_service(self) -> SalesService:
        return self._get('sales_service', lambda: SalesService(
            self.store,
            self.sales_repo,
            self.comanda_repo,
            self.cart_service,
            self.payment_service,
            self.audit_service,
        ))

    @property
    def client_service(self) -> ClientService:
        return self._get('client_service', lambda: ClientService(
            self.client_repo, self.sales_repo, self.audit_service
        ))

    @property
    def expense_service(self) -> ExpenseService:
        return self._get('expense_service', lambda: ExpenseService(self.expense_repo, self.audit_service))

    @property
    def daily_expense_service(self) -> DailyExpenseService:
        return self._get('daily_expense_service', lambda: DailyExpenseService(
            self.daily_expense_repo, self.audit_service
        ))

    @property
    def report_service(self) -> ReportService:
        return self._get('report_service', lambda: ReportService(
            self.sales_repo,
            self.expense_repo,
            self.daily_expense_repo,
            self.insumo_repo,
            self.kit_repo,
        ))

    # =========================================================================
    # VISTAS EN VIVO (una instancia nueva por consumidor)
    # =========================================================================

    def inventory_view(self) -> InventoryView:
        return InventoryView(self.insumo_repo, self.kit_repo)

    def client_spending_view(self) -> ClientSpendingView:
        return ClientSpendingView(self.client_repo, self.sales_repo)

    # =========================================================================
    # UTILIDADES
    # =========================================================================

    def reset(self) -> None:
        """
        Reinicia todas las instancias.
        Útil para testing o para recargar datos.
        """
        self._cache = {}

    @classmethod
    def get_instance(cls, data_dir: str = None) -> 'AppContainer':
        """
        Obtiene la instancia singleton del contenedor.

        Args:
            data_dir: Directorio de datos (solo se usa en primera llamada)
        """
        if cls._instance is None:
            return cls(data_dir)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Elimina la instancia singleton (útil para tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(data_dir: str = None) -> AppContainer:
    """
    Obtiene el contenedor de dependencias global.

    Args:
        data_dir: Directorio de datos
    """
    return AppContainer.get_instance(data_dir)
