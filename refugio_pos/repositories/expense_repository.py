# ==============================================================================
# REPOSITORIOS DE EGRESOS Y GASTOS DIARIOS
# ==============================================================================

from typing import Any, Dict, List

from refugio_pos.models import COL_EGRESOS, COL_GASTOS_DIARIOS
from refugio_pos.repositories.collection_repository import CollectionRepository


class ExpenseRepository(CollectionRepository):
    """
    Repositorio de egresos (facturas de productos y pagos de servicios).
    """

    COLLECTION = COL_EGRESOS
    TIMESTAMP_FIELD = 'timestamp'

    def list_recent(self, user_id: str) -> List[Dict[str, Any]]:
        """Egresos del usuario, más recientes primero."""
        return self.list_for_user(user_id, order_by='timestamp', descending=True)


class DailyExpenseRepository(CollectionRepository):
    """
    Repositorio de gastos diarios.

    'timestamp' es la fecha/hora informada del gasto; 'created_at' la
    marca del servidor al registrarlo.
    """

    COLLECTION = COL_GASTOS_DIARIOS
    TIMESTAMP_FIELD = 'created_at'

    def list_recent(self, user_id: str) -> List[Dict[str, Any]]:
        return self.list_for_user(user_id, order_by='timestamp', descending=True)
