# ==============================================================================
# REPOSITORIO DE CLIENTES
# ==============================================================================

from typing import Any, Dict, List

from refugio_pos.models import COL_CLIENTES
from refugio_pos.repositories.collection_repository import CollectionRepository


class ClientRepository(CollectionRepository):
    """Repositorio de clientes."""

    COLLECTION = COL_CLIENTES

    def list_sorted(self, user_id: str) -> List[Dict[str, Any]]:
        return self.list_for_user(user_id, order_by='nombre_completo')

    def codes(self, user_id: str) -> List[str]:
        return [c.get('codigo', '') for c in self.list_for_user(user_id)]
