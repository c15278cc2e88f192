# ==============================================================================
# INTERFACES DEL ALMACÉN DE DOCUMENTOS
# ==============================================================================
#
# Contrato que debe cumplir cualquier almacén de documentos (JSON local hoy,
# un servicio remoto mañana). Los servicios dependen de este protocolo y no
# de JSONDocumentStore.
#
# PARA CAMBIAR DE ALMACÉN:
# 1. Crear una clase que implemente IDocumentStore
# 2. Cambiar la instanciación en app_container.py
# 3. Los servicios NO requieren cambios
#
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class ISubscription(Protocol):
    """Handle de suscripción en vivo."""

    active: bool

    def unsubscribe(self) -> None:
        """Libera la suscripción. Después no llegan más callbacks."""
        ...


@runtime_checkable
class IDocumentStore(Protocol):
    """
    Interfaz del almacén de documentos.

    Errores:
        - StoreError para fallas de transporte/permisos
        - None / False para documentos inexistentes
    """

    def get_one(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Lectura puntual."""
        ...

    def query(
        self,
        collection: str,
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """Consulta filtrada sobre una colección."""
        ...

    def create_one(self, collection: str, fields: Dict[str, Any]) -> str:
        """Crea un documento y retorna su ID."""
        ...

    def set_one(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Crea o reemplaza un documento con ID conocido."""
        ...

    def update_one(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> bool:
        """Actualización parcial. False si no existe."""
        ...

    def delete_one(self, collection: str, doc_id: str) -> bool:
        """Elimina un documento. False si no existía."""
        ...

    def subscribe(
        self,
        collection: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        filters: Optional[List[Tuple[str, str, Any]]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> ISubscription:
        """Suscripción en vivo a una colección filtrada."""
        ...

    def run_atomic(self, read_set, predicate, build_writes):
        """Operación atómica condicional (read set + predicado + escrituras)."""
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """Interfaz del registro de auditoría."""

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """Registra un evento."""
        ...

    def load(self, user: str = None) -> List[Dict[str, Any]]:
        """Carga eventos (más recientes primero)."""
        ...

    def search_logs(self, user: str, query: str = '', log_type: str = None) -> List[Dict[str, Any]]:
        """Búsqueda por texto y tipo."""
        ...
