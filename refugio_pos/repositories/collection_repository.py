# ==============================================================================
# REPOSITORIO DE COLECCIÓN - Acceso a documentos de un usuario
# ==============================================================================
# Todos los datos del negocio están asociados al user_id de la sesión
# anónima. Este repositorio encapsula ese filtro para una colección.
# ==============================================================================

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from refugio_pos.repositories.document_store import SERVER_TIMESTAMP, Filter, Subscription
from refugio_pos.repositories.interfaces import IDocumentStore


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parsea un timestamp ISO guardado en un documento.
    Los valores sin zona horaria se interpretan como hora local.

    Returns:
        datetime con zona horaria o None si no se puede parsear
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value:
        try:
            dt = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.astimezone()
    return dt


class CollectionRepository:
    """
    Repositorio genérico para una colección del almacén de documentos.

    Las subclases fijan COLLECTION y agregan consultas propias.
    """

    COLLECTION: str = ''

    # Campo que recibe la marca de tiempo del servidor al crear
    TIMESTAMP_FIELD: Optional[str] = 'creado_en'

    def __init__(self, store: IDocumentStore):
        """
        Args:
            store: Almacén de documentos
        """
        self.store = store

    @staticmethod
    def _owner_filter(user_id: str) -> List[Filter]:
        return [('user_id', '==', user_id)]

    def list_for_user(
        self,
        user_id: str,
        order_by: str = None,
        descending: bool = False,
        filters: List[Filter] = None,
    ) -> List[Dict[str, Any]]:
        """
        Lista los documentos de un usuario.

        Args:
            user_id: Usuario dueño de los datos
            order_by: Campo de ordenamiento
            descending: Orden descendente
            filters: Filtros adicionales

        Returns:
            Lista de documentos
        """
        return self.store.query(
            self.COLLECTION,
            self._owner_filter(user_id) + list(filters or []),
            order_by=order_by,
            descending=descending,
        )

    def list_in_range(
        self,
        user_id: str,
        from_dt: Optional[datetime] = None,
        to_dt: Optional[datetime] = None,
        ts_field: str = 'timestamp',
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Documentos del usuario cuyo timestamp cae en [from_dt, to_dt].
        Los documentos sin timestamp válido solo se incluyen sin rango.
        """
        docs = self.list_for_user(user_id, order_by=ts_field, descending=descending)
        if from_dt is None and to_dt is None:
            return docs

        filtered = []
        for doc in docs:
            dt = parse_timestamp(doc.get(ts_field))
            if dt is None:
                continue
            if from_dt and dt < from_dt:
                continue
            if to_dt and dt > to_dt:
                continue
            filtered.append(doc)
        return filtered

    def get(self, doc_id: str, user_id: str = None) -> Optional[Dict[str, Any]]:
        """
        Obtiene un documento por ID.
        Si se indica user_id, solo lo retorna cuando pertenece a ese usuario.
        """
        doc = self.store.get_one(self.COLLECTION, doc_id)
        if doc is None:
            return None
        if user_id is not None and doc.get('user_id') != user_id:
            return None
        return doc

    def create(self, fields: Dict[str, Any]) -> str:
        """Crea un documento y retorna su ID."""
        data = dict(fields)
        if self.TIMESTAMP_FIELD and not data.get(self.TIMESTAMP_FIELD):
            data[self.TIMESTAMP_FIELD] = SERVER_TIMESTAMP
        return self.store.create_one(self.COLLECTION, data)

    def update(self, doc_id: str, partial: Dict[str, Any]) -> bool:
        return self.store.update_one(self.COLLECTION, doc_id, partial)

    def delete(self, doc_id: str) -> bool:
        return self.store.delete_one(self.COLLECTION, doc_id)

    def subscribe_for_user(
        self,
        user_id: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        on_error: Callable[[Exception], None] = None,
    ) -> Subscription:
        """Suscripción en vivo a los documentos del usuario."""
        return self.store.subscribe(
            self.COLLECTION,
            callback,
            self._owner_filter(user_id),
            on_error=on_error,
        )
