# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# Encapsula el acceso a la colección 'auditoria'.
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List

from refugio_pos.models import COL_AUDITORIA
from refugio_pos.repositories.collection_repository import CollectionRepository


class AuditRepository(CollectionRepository):
    """
    Repositorio para el log de auditoría.

    Formato de un documento:
    {
        "type": "VENTA",
        "user": "<user_id>",
        "message": "Venta registrada en Mesa 2 - Total: Bs 22.50",
        "timestamp": "2025-01-01 10:00:00",
        "related_id": "<venta_id>",
        "details": {...}
    }
    """

    COLLECTION = COL_AUDITORIA
    TIMESTAMP_FIELD = None

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> None:
        """
        Registra un nuevo evento de auditoría.

        Args:
            log_type: Tipo de evento (VENTA, STOCK, PRODUCTO, CLIENTE, EGRESO, SISTEMA)
            user: Usuario que realizó la acción
            message: Mensaje descriptivo humanizado
            related_id: ID del documento relacionado
            details: Detalles adicionales
        """
        self.store.create_one(self.COLLECTION, {
            'type': log_type,
            'user': user or 'sistema',
            'message': message,
            'timestamp': datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            'related_id': related_id or '',
            'details': details or {},
        })

    def load(self, user: str = None) -> List[Dict[str, Any]]:
        """
        Carga logs de auditoría (más recientes primero).

        Args:
            user: Si se indica, solo los logs de ese usuario
        """
        filters = [('user', '==', user)] if user else None
        return self.store.query(self.COLLECTION, filters, order_by='timestamp', descending=True)

    def search_logs(
        self,
        user: str,
        query: str = '',
        log_type: str = None,
    ) -> List[Dict[str, Any]]:
        """
        Búsqueda de logs de un usuario por texto y tipo.
        """
        logs = self.load(user)
        if log_type:
            logs = [log for log in logs if log.get('type') == log_type]
        q = (query or '').strip().lower()
        if q:
            logs = [
                log for log in logs
                if q in str(log.get('message', '')).lower()
                or q in str(log.get('related_id', '')).lower()
            ]
        return logs
