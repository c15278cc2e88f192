# ==============================================================================
# REPOSITORIOS DE INVENTARIO
# ==============================================================================
# Acceso a las colecciones 'insumos' y 'kits'.
# ==============================================================================

from typing import Any, Dict, List

from refugio_pos.models import COL_INSUMOS, COL_KITS
from refugio_pos.repositories.collection_repository import CollectionRepository


class InsumoRepository(CollectionRepository):
    """
    Repositorio de insumos.

    Formato de un documento:
    {
        "nombre": "AGUA VITAL 2L",
        "codigo": "A001",
        "categoria": "AGUA",
        "cantidad": 24,
        "stock_minimo": 6,
        "unidad_medida": "UNIDAD",
        "costo_compra": 120.0,
        "ganancia": 0.3,
        "precio_venta": 156.0,
        "sin_precio_venta": false,
        "user_id": "...",
        "creado_en": "2025-01-01T10:00:00+00:00"
    }
    """

    COLLECTION = COL_INSUMOS

    def list_sorted(self, user_id: str) -> List[Dict[str, Any]]:
        """Insumos del usuario ordenados por nombre."""
        return self.list_for_user(user_id, order_by='nombre')

    def codes_with_prefix(self, user_id: str, prefix: str) -> List[str]:
        """
        Códigos existentes del usuario que empiezan con un prefijo.

        Args:
            user_id: Usuario dueño
            prefix: Prefijo (ej: "A")

        Returns:
            Lista de códigos
        """
        return [
            doc.get('codigo', '')
            for doc in self.list_for_user(user_id)
            if str(doc.get('codigo', '')).startswith(prefix)
        ]

    def search(self, user_id: str, query: str) -> List[Dict[str, Any]]:
        """
        Busca insumos por nombre o código (sin distinguir mayúsculas).
        """
        items = self.list_sorted(user_id)
        q = (query or '').strip().lower()
        if not q:
            return items
        return [
            i for i in items
            if q in str(i.get('nombre', '')).lower() or q in str(i.get('codigo', '')).lower()
        ]

    def get_low_stock(self, user_id: str) -> List[Dict[str, Any]]:
        """Insumos con cantidad menor o igual al stock mínimo."""
        return [
            i for i in self.list_sorted(user_id)
            if float(i.get('cantidad', 0) or 0) <= float(i.get('stock_minimo', 0) or 0)
        ]


class KitRepository(CollectionRepository):
    """
    Repositorio de kits.

    Los componentes referencian insumos por ID y guardan el nombre del
    insumo al momento de crear el kit.
    """

    COLLECTION = COL_KITS

    def list_sorted(self, user_id: str) -> List[Dict[str, Any]]:
        return self.list_for_user(user_id, order_by='nombre')

    def find_using_insumo(self, user_id: str, insumo_id: str) -> List[Dict[str, Any]]:
        """Kits del usuario que tienen al insumo como componente."""
        return [
            k for k in self.list_for_user(user_id)
            if any(c.get('insumo_id') == insumo_id for c in k.get('componentes', []))
        ]
