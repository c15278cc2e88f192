# ==============================================================================
# REPOSITORIOS DE VENTAS Y COMANDAS
# ==============================================================================
# Acceso a 'ventas' y a 'comandosPendientes' (carritos guardados por mesa).
# ==============================================================================

from typing import Any, Dict, List, Optional

from refugio_pos.models import COL_COMANDAS, COL_VENTAS, Comanda
from refugio_pos.repositories.collection_repository import CollectionRepository


class SalesRepository(CollectionRepository):
    """
    Repositorio de ventas.

    Las ventas se crean dentro de la operación atómica de cobro
    (ver SalesService.checkout), no con create().
    """

    COLLECTION = COL_VENTAS
    TIMESTAMP_FIELD = 'timestamp'

    def list_recent(self, user_id: str) -> List[Dict[str, Any]]:
        """Ventas del usuario, más recientes primero."""
        return self.list_for_user(user_id, order_by='timestamp', descending=True)


class ComandaRepository(CollectionRepository):
    """
    Repositorio de comandas pendientes.

    Hay una comanda por mesa y por usuario. El ID del documento es
    "<user_id>__<mesa>", por lo que guardar siempre sobrescribe.
    """

    COLLECTION = COL_COMANDAS
    TIMESTAMP_FIELD = None

    @staticmethod
    def comanda_id(user_id: str, mesa_id: str) -> str:
        return f"{user_id}__{mesa_id}"

    def save(self, comanda: Comanda) -> None:
        """Guarda (sobrescribe) la comanda de una mesa."""
        self.store.set_one(
            self.COLLECTION,
            self.comanda_id(comanda.user_id, comanda.mesa_id),
            comanda.to_dict(),
        )

    def load(self, user_id: str, mesa_id: str) -> Optional[Comanda]:
        """Carga la comanda de una mesa o None si no hay pedido pendiente."""
        doc = self.get(self.comanda_id(user_id, mesa_id), user_id)
        if doc is None:
            return None
        return Comanda.from_dict(doc)

    def remove(self, user_id: str, mesa_id: str) -> bool:
        return self.delete(self.comanda_id(user_id, mesa_id))
