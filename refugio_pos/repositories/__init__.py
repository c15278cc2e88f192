# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso al almacén de documentos.
#
# ESTRUCTURA:
# ├── interfaces.py             → Protocolos (IDocumentStore, IAuditRepository)
# ├── base.py                   → Archivos JSON por colección + StoreError
# ├── document_store.py         → JSONDocumentStore (consultas, suscripciones,
# │                                operación atómica)
# ├── collection_repository.py  → Acceso por usuario a una colección
# ├── inventory_repository.py   → insumos, kits
# ├── sales_repository.py       → ventas, comandosPendientes
# ├── client_repository.py      → clientes
# ├── expense_repository.py     → egresos, gastos_diarios
# └── audit_repository.py       → auditoria
# ==============================================================================

from .interfaces import IDocumentStore, ISubscription, IAuditRepository

from .base import BaseRepository, CollectionFile, StoreError
from .document_store import (
    JSONDocumentStore,
    Subscription,
    SubscriptionGroup,
    WriteOp,
    AtomicResult,
    SERVER_TIMESTAMP,
)
from .collection_repository import CollectionRepository, parse_timestamp
from .inventory_repository import InsumoRepository, KitRepository
from .sales_repository import SalesRepository, ComandaRepository
from .client_repository import ClientRepository
from .expense_repository import ExpenseRepository, DailyExpenseRepository
from .audit_repository import AuditRepository

__all__ = [
    # Interfaces
    'IDocumentStore',
    'ISubscription',
    'IAuditRepository',

    # Almacén
    'BaseRepository',
    'CollectionFile',
    'StoreError',
    'JSONDocumentStore',
    'Subscription',
    'SubscriptionGroup',
    'WriteOp',
    'AtomicResult',
    'SERVER_TIMESTAMP',

    # Repositorios
    'CollectionRepository',
    'parse_timestamp',
    'InsumoRepository',
    'KitRepository',
    'SalesRepository',
    'ComandaRepository',
    'ClientRepository',
    'ExpenseRepository',
    'DailyExpenseRepository',
    'AuditRepository',
]
