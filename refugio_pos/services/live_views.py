# ==============================================================================
# VISTAS EN VIVO - Suscripciones con dueño
# ==============================================================================
# Cada vista se suscribe a una o más colecciones del usuario y recalcula sus
# agregados desde cero con cada snapshot.
#
#   - loading: hasta que todas las fuentes entregaron su primer snapshot
#   - error: la última falla del almacén (no se sirven datos viejos)
#
# La vista es dueña de sus suscripciones: close() (o salir del bloque
# `with`) las libera todas, y open() con otro usuario cierra las anteriores
# antes de abrir las nuevas.
# ==============================================================================

import threading
from typing import Any, Callable, Dict, List, Optional

from refugio_pos.models import Kit
from refugio_pos.repositories import (
    ClientRepository,
    CollectionRepository,
    InsumoRepository,
    KitRepository,
    SalesRepository,
    SubscriptionGroup,
)
from refugio_pos.services.cart_service import CartService
from refugio_pos.services.client_service import spending_by_client, top_consumers
from refugio_pos.services.kit_service import calculate_kit_limits


class LiveView:
    """
    Base de las vistas en vivo.

    Las subclases definen sources() y compute().
    """

    def __init__(self):
        self._group = SubscriptionGroup()
        self._lock = threading.RLock()
        self._snapshots: Dict[str, List[Dict[str, Any]]] = {}
        self._listeners: List[Callable[[Dict[str, Any]], None]] = []
        # Cada open/close abre una generación nueva; los callbacks de una
        # generación anterior se descartan
        self._generation = 0
        self.user_id: Optional[str] = None
        self.loading = True
        self.error: Optional[str] = None
        self.data: Dict[str, Any] = {}

    def sources(self) -> Dict[str, CollectionRepository]:
        raise NotImplementedError

    def compute(self, snapshots: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        raise NotImplementedError

    # =========================================================================
    # CICLO DE VIDA
    # =========================================================================

    def open(self, user_id: str) -> 'LiveView':
        """Se suscribe a las fuentes del usuario (cerrando las anteriores)."""
        self.close()
        with self._lock:
            self.user_id = user_id
            self._snapshots = {}
            self.loading = True
            self.error = None
            self.data = {}
            generation = self._generation
        for name, repo in self.sources().items():
            self._group.add(repo.subscribe_for_user(
                user_id,
                lambda docs, name=name, gen=generation: self._on_snapshot(name, docs, gen),
                on_error=lambda error, gen=generation: self._on_error(error, gen),
            ))
        return self

    def close(self) -> None:
        with self._lock:
            self._generation += 1
        self._group.close()

    @property
    def active_subscriptions(self) -> int:
        return self._group.active_count

    def __enter__(self) -> 'LiveView':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def add_listener(self, listener: Callable[[Dict[str, Any]], None]) -> None:
        self._listeners.append(listener)

    def _on_snapshot(self, name: str, docs: List[Dict[str, Any]], generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._snapshots[name] = docs
            if len(self._snapshots) < len(self.sources()):
                return
            self.loading = False
            self.error = None
            self.data = self.compute(dict(self._snapshots))
            state = self.state()
        self._emit(state)

    def _on_error(self, error: Exception, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self.loading = False
            self.error = str(error)
            self.data = {}
            state = self.state()
        self._emit(state)

    def _emit(self, state: Dict[str, Any]) -> None:
        for listener in list(self._listeners):
            listener(state)

    def state(self) -> Dict[str, Any]:
        with self._lock:
            return {'loading': self.loading, 'error': self.error, 'data': self.data}


class ClientSpendingView(LiveView):
    """Clientes con total gastado y top 10, a partir de clientes + ventas."""

    def __init__(self, client_repo: ClientRepository, sales_repo: SalesRepository):
        super().__init__()
        self.client_repo = client_repo
        self.sales_repo = sales_repo

    def sources(self) -> Dict[str, CollectionRepository]:
        return {'clientes': self.client_repo, 'ventas': self.sales_repo}

    def compute(self, snapshots: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        totals = spending_by_client(snapshots['ventas'])
        clientes = sorted(snapshots['clientes'], key=lambda c: c.get('nombre_completo', ''))
        return {
            'clientes': [dict(c, total_gastado=totals.get(c['id'], 0.0)) for c in clientes],
            'top': top_consumers(clientes, totals),
        }


class InventoryView(LiveView):
    """Insumos, kits con armables actuales y catálogo vendible."""

    def __init__(self, insumo_repo: InsumoRepository, kit_repo: KitRepository):
        super().__init__()
        self.insumo_repo = insumo_repo
        self.kit_repo = kit_repo

    def sources(self) -> Dict[str, CollectionRepository]:
        return {'insumos': self.insumo_repo, 'kits': self.kit_repo}

    def compute(self, snapshots: Dict[str, List[Dict[str, Any]]]) -> Dict[str, Any]:
        insumos = sorted(snapshots['insumos'], key=lambda i: i.get('nombre', ''))
        by_id = {i['id']: i for i in insumos}
        kits = []
        for doc in sorted(snapshots['kits'], key=lambda k: k.get('nombre', '')):
            actual, limiting = calculate_kit_limits(Kit.from_dict(doc).componentes, by_id)
            kits.append(dict(doc, max_kits_actual=actual, insumo_limitante_actual=limiting))
        catalog = CartService.build_catalog(insumos, snapshots['kits'])
        return {
            'insumos': [
                dict(i, stock_bajo=float(i.get('cantidad', 0) or 0) <= float(i.get('stock_minimo', 0) or 0))
                for i in insumos
            ],
            'kits': kits,
            'catalogo': [p.to_dict() for p in catalog],
        }
