# ==============================================================================
# SERVICIO DE CARRITO - Punto de venta por mesa
# ==============================================================================
# Maneja el estado del punto de venta (PosSession): mesas, mesa
# seleccionada, carrito y cliente asociado.
#
# Estados:
#   sin mesa → mesa con carrito vacío → mesa con artículos → cobro
#
# Al cambiar de mesa, el carrito de la mesa actual se guarda como comanda
# pendiente y se carga la comanda de la mesa elegida. La ruta se encarga de
# guardar el PosSession en la sesión de Flask.
# ==============================================================================

from typing import Any, Dict, List, Optional

from refugio_pos.models import (
    CartLine,
    CatalogProduct,
    Comanda,
    InsumoCatalogItem,
    Insumo,
    KitCatalogItem,
    Kit,
    PosSession,
    TipoProducto,
)
from refugio_pos.repositories import (
    ClientRepository,
    ComandaRepository,
    InsumoRepository,
    KitRepository,
)
from refugio_pos.services.validation import NO_ENCONTRADO, clean_text, fail


class CartService:
    """
    Servicio del punto de venta.

    Responsabilidades:
    - Catálogo vendible (insumos con precio + kits)
    - Mesas y comandas pendientes
    - Agregar / incrementar / decrementar / quitar líneas
    - Cliente asociado y descuento
    - Cálculo de totales
    """

    def __init__(
        self,
        insumo_repo: InsumoRepository,
        kit_repo: KitRepository,
        client_repo: ClientRepository,
        comanda_repo: ComandaRepository
    ):
        self.insumo_repo = insumo_repo
        self.kit_repo = kit_repo
        self.client_repo = client_repo
        self.comanda_repo = comanda_repo

    # =========================================================================
    # CATÁLOGO Y CLIENTES
    # =========================================================================

    @staticmethod
    def build_catalog(
        insumos: List[Dict[str, Any]],
        kits: List[Dict[str, Any]]
    ) -> List[CatalogProduct]:
        """
        Une insumos vendibles (precio > 0) y kits en un solo catálogo.
        """
        catalog: List[CatalogProduct] = []
        for doc in insumos:
            insumo = Insumo.from_dict(doc)
            if not insumo.es_vendible:
                continue
            catalog.append(InsumoCatalogItem(
                id=insumo.id,
                nombre=insumo.nombre,
                precio_venta=insumo.precio_venta,
                cantidad=insumo.cantidad,
                codigo=insumo.codigo,
            ))
        for doc in kits:
            kit = Kit.from_dict(doc)
            catalog.append(KitCatalogItem(
                id=kit.id,
                nombre=kit.nombre,
                precio_venta=kit.precio_venta,
                cantidad=kit.cantidad,
                componentes=kit.componentes,
            ))
        return catalog

    def get_catalog(self, user_id: str, query: str = '') -> List[CatalogProduct]:
        """Catálogo del usuario filtrado por nombre."""
        catalog = self.build_catalog(
            self.insumo_repo.list_sorted(user_id),
            self.kit_repo.list_sorted(user_id),
        )
        q = clean_text(query).lower()
        if q:
            catalog = [p for p in catalog if q in p.nombre.lower()]
        return catalog

    def find_product(self, user_id: str, tipo: str, producto_id: str) -> Optional[CatalogProduct]:
        """Busca un producto vendible del catálogo por tipo e ID."""
        if tipo == TipoProducto.KIT.value:
            doc = self.kit_repo.get(producto_id, user_id)
            catalog = self.build_catalog([], [doc] if doc else [])
        else:
            doc = self.insumo_repo.get(producto_id, user_id)
            catalog = self.build_catalog([doc] if doc else [], [])
        return catalog[0] if catalog else None

    def search_clients(self, user_id: str, query: str = '') -> List[Dict[str, Any]]:
        """Clientes filtrados por nombre o CI."""
        clients = self.client_repo.list_sorted(user_id)
        q = clean_text(query).lower()
        if not q:
            return clients
        return [
            c for c in clients
            if q in str(c.get('nombre_completo', '')).lower() or q in str(c.get('ci', ''))
        ]

    # =========================================================================
    # MESAS
    # =========================================================================

    def add_table(self, pos: PosSession) -> str:
        """Agrega 'Mesa N' con el siguiente número disponible."""
        name = f"Mesa {pos.siguiente_mesa}"
        while name in pos.mesas:
            pos.siguiente_mesa += 1
            name = f"Mesa {pos.siguiente_mesa}"
        pos.mesas.append(name)
        pos.siguiente_mesa += 1
        return name

    def select_table(self, user_id: str, pos: PosSession, mesa_id: str) -> Dict[str, Any]:
        """
        Selecciona una mesa.

        Si había otra mesa seleccionada, su carrito y cliente se guardan como
        comanda pendiente. Luego se carga la comanda de la mesa elegida o se
        empieza con carrito vacío.
        """
        if mesa_id not in pos.mesas:
            return fail('Mesa no encontrada', NO_ENCONTRADO)
        if pos.mesa_seleccionada == mesa_id:
            return {'ok': True, 'mesa': mesa_id}

        if pos.mesa_seleccionada:
            self.comanda_repo.save(Comanda(
                mesa_id=pos.mesa_seleccionada,
                carrito=list(pos.carrito),
                cliente_id=pos.cliente_id,
                user_id=user_id,
            ))

        pos.mesa_seleccionada = mesa_id
        pos.carrito = []
        pos.cliente_id = None
        pos.descuento = 0.0

        comanda = self.comanda_repo.load(user_id, mesa_id)
        if comanda is not None:
            pos.carrito = list(comanda.carrito)
            if comanda.cliente_id:
                self._apply_client(user_id, pos, comanda.cliente_id)

        return {'ok': True, 'mesa': mesa_id}

    # =========================================================================
    # CLIENTE
    # =========================================================================

    def _apply_client(self, user_id: str, pos: PosSession, cliente_id: str) -> bool:
        client = self.client_repo.get(cliente_id, user_id)
        if client is None:
            pos.cliente_id = None
            pos.descuento = 0.0
            return False
        pos.cliente_id = cliente_id
        pos.descuento = float(client.get('descuento', 0) or 0)
        return True

    def attach_client(self, user_id: str, pos: PosSession, cliente_id: str) -> Dict[str, Any]:
        if not self._apply_client(user_id, pos, cliente_id):
            return fail('Cliente no encontrado', NO_ENCONTRADO)
        return {'ok': True, 'cliente_id': cliente_id, 'descuento': pos.descuento}

    def detach_client(self, pos: PosSession) -> Dict[str, Any]:
        pos.cliente_id = None
        pos.descuento = 0.0
        return {'ok': True}

    # =========================================================================
    # LÍNEAS DEL CARRITO
    # =========================================================================

    def add_to_cart(self, user_id: str, pos: PosSession, tipo: str, producto_id: str) -> Dict[str, Any]:
        """
        Agrega una unidad de un producto. Requiere mesa seleccionada.
        Si el producto ya está en el carrito, incrementa su cantidad.
        """
        if not pos.mesa_seleccionada:
            return fail('Seleccione una mesa antes de agregar productos.')

        line = pos.find_line(producto_id)
        if line is not None:
            line.cantidad += 1
            return {'ok': True, 'linea': line.to_dict()}

        product = self.find_product(user_id, tipo, producto_id)
        if product is None:
            return fail('Producto no encontrado', NO_ENCONTRADO)

        line = CartLine(
            producto_id=product.id,
            tipo=product.tipo,
            nombre=product.nombre,
            precio_venta=product.precio_venta,
            cantidad=1,
        )
        pos.carrito.append(line)
        return {'ok': True, 'linea': line.to_dict()}

    def increment_line(self, pos: PosSession, producto_id: str) -> Dict[str, Any]:
        line = pos.find_line(producto_id)
        if line is None:
            return fail('El producto no está en el carrito', NO_ENCONTRADO)
        line.cantidad += 1
        return {'ok': True, 'linea': line.to_dict()}

    def decrement_line(self, pos: PosSession, producto_id: str) -> Dict[str, Any]:
        """Resta una unidad; si llega a 0 la línea se elimina."""
        line = pos.find_line(producto_id)
        if line is None:
            return fail('El producto no está en el carrito', NO_ENCONTRADO)
        line.cantidad -= 1
        if line.cantidad <= 0:
            pos.carrito.remove(line)
            return {'ok': True, 'linea': None}
        return {'ok': True, 'linea': line.to_dict()}

    def remove_line(self, pos: PosSession, producto_id: str) -> Dict[str, Any]:
        line = pos.find_line(producto_id)
        if line is None:
            return fail('El producto no está en el carrito', NO_ENCONTRADO)
        pos.carrito.remove(line)
        return {'ok': True}

    # =========================================================================
    # TOTALES
    # =========================================================================

    @staticmethod
    def compute_totals(pos: PosSession) -> Dict[str, float]:
        """
        Calcula subtotal, descuento y total.

        total = subtotal - subtotal × descuento / 100, redondeado a 2 decimales
        """
        subtotal = sum(line.subtotal for line in pos.carrito)
        descuento = pos.descuento if pos.cliente_id else 0.0
        descuento_monto = subtotal * descuento / 100
        return {
            'subtotal': round(subtotal, 2),
            'descuento': descuento,
            'descuento_monto': round(descuento_monto, 2),
            'total': round(subtotal - descuento_monto, 2),
        }

    def compute_total(self, pos: PosSession) -> float:
        return self.compute_totals(pos)['total']

    def get_state(self, pos: PosSession) -> Dict[str, Any]:
        """Estado del punto de venta listo para serializar."""
        state = pos.to_dict()
        state.update(self.compute_totals(pos))
        state['items_count'] = sum(line.cantidad for line in pos.carrito)
        return state
