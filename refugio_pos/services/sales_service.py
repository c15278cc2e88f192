# ==============================================================================
# SERVICIO DE VENTAS - Cobro de mesas
# ==============================================================================
# El cobro es una única operación atómica del almacén:
#   1. leer la cantidad actual de cada insumo/kit del carrito
#   2. abortar sin efectos si alguno no existe o no alcanza
#   3. descontar stock, crear la venta y borrar la comanda de la mesa
# ==============================================================================

from typing import Any, Dict, List, Optional

from refugio_pos.models import (
    COL_COMANDAS,
    COL_INSUMOS,
    COL_KITS,
    COL_VENTAS,
    PosSession,
    TipoProducto,
    Venta,
)
from refugio_pos.performance_logger import profile_function
from refugio_pos.repositories import SERVER_TIMESTAMP, ComandaRepository, SalesRepository, WriteOp
from refugio_pos.repositories.interfaces import IDocumentStore
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.cart_service import CartService
from refugio_pos.services.payment_service import PaymentService
from refugio_pos.services.validation import NO_ENCONTRADO, STOCK_INSUFICIENTE, fail


class SalesService:
    """
    Servicio de ventas.

    Responsabilidades:
    - Cobrar la mesa seleccionada (validación de pago + transacción)
    - Consultar ventas
    """

    def __init__(
        self,
        store: IDocumentStore,
        sales_repo: SalesRepository,
        comanda_repo: ComandaRepository,
        cart_service: CartService,
        payment_service: PaymentService,
        audit_service: AuditService = None
    ):
        self.store = store
        self.sales_repo = sales_repo
        self.comanda_repo = comanda_repo
        self.cart_service = cart_service
        self.payment_service = payment_service
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def list_sales(self, user_id: str) -> List[Dict[str, Any]]:
        return self.sales_repo.list_recent(user_id)

    def get_sale(self, user_id: str, venta_id: str) -> Optional[Dict[str, Any]]:
        return self.sales_repo.get(venta_id, user_id)

    # =========================================================================
    # COBRO
    # =========================================================================

    @staticmethod
    def _collection_for(tipo: TipoProducto) -> str:
        return COL_KITS if tipo == TipoProducto.KIT else COL_INSUMOS

    @profile_function(name="Cobrar mesa")
    def checkout(
        self,
        user_id: str,
        pos: PosSession,
        metodo_pago: str,
        pagos: Dict[str, Any] = None
    ) -> Dict[str, Any]:
        """
        Cobra la mesa seleccionada.

        Args:
            user_id: Usuario dueño
            pos: Estado del punto de venta (se limpia si el cobro se confirma)
            metodo_pago: efectivo, tarjeta, transferencia, qr o mixto
            pagos: Montos por método

        Returns:
            Dict con resultado:
            - ok=True: venta_id, total, cambio, pagos
            - ok=False: error (validación, o stock_insuficiente con el
              nombre del artículo que bloqueó el cobro)
        """
        if not pos.mesa_seleccionada:
            return fail('Seleccione una mesa para cobrar.')
        if not pos.carrito:
            return fail('El carrito está vacío.')

        totals = self.cart_service.compute_totals(pos)
        payment = self.payment_service.validate_payment(totals['total'], metodo_pago, pagos)
        if not payment['ok']:
            return payment

        mesa_id = pos.mesa_seleccionada
        lines = list(pos.carrito)

        # Cantidad vendida por documento (una línea por producto)
        required = {}
        names = {}
        for line in lines:
            ref = (self._collection_for(line.tipo), line.producto_id)
            required[ref] = required.get(ref, 0) + line.cantidad
            names[ref] = line.nombre
        read_set = list(required.keys())

        def predicate(snapshot):
            for ref, sold in required.items():
                doc = snapshot.get(ref)
                if doc is None or doc.get('user_id') != user_id:
                    return f"El documento de inventario para {names[ref]} no existe."
                available = float(doc.get('cantidad', 0) or 0)
                if available < sold:
                    return f"Cantidad insuficiente para: {names[ref]}. Disponible: {available:g}"
            return None

        def build_writes(snapshot):
            writes = []
            for ref, sold in required.items():
                available = float(snapshot[ref].get('cantidad', 0) or 0)
                writes.append(WriteOp.update(ref[0], ref[1], {'cantidad': available - sold}))

            venta = Venta(
                mesa_id=mesa_id,
                cliente_id=pos.cliente_id,
                articulos=lines,
                subtotal=totals['subtotal'],
                descuento=totals['descuento'],
                total=totals['total'],
                metodo_pago=payment['metodo'],
                pagos=payment['pagos'],
                cambio=payment['cambio'],
                user_id=user_id,
                timestamp=SERVER_TIMESTAMP,
            )
            writes.append(WriteOp.create(COL_VENTAS, venta.to_dict()))
            writes.append(WriteOp.delete(COL_COMANDAS, self.comanda_repo.comanda_id(user_id, mesa_id)))
            return writes

        result = self.store.run_atomic(read_set, predicate, build_writes)

        if not result.committed:
            if self.audit_service:
                self.audit_service.log_checkout_aborted(user_id, mesa_id, result.reason)
            return fail(result.reason, STOCK_INSUFICIENTE)

        venta_id = result.created_ids[0]
        pos.reset()

        if self.audit_service:
            self.audit_service.log_sale_created(
                user_id, venta_id, mesa_id, totals['total'], payment['metodo'],
                sum(line.cantidad for line in lines)
            )

        return {
            'ok': True,
            'venta_id': venta_id,
            'mesa': mesa_id,
            'subtotal': totals['subtotal'],
            'descuento': totals['descuento'],
            'total': totals['total'],
            'metodo_pago': payment['metodo'],
            'pagos': payment['pagos'],
            'cambio': payment['cambio'],
            'mensaje': f"Venta registrada en {mesa_id}",
        }

    def sale_or_error(self, user_id: str, venta_id: str) -> Dict[str, Any]:
        sale = self.get_sale(user_id, venta_id)
        if sale is None:
            return fail('Venta no encontrada', NO_ENCONTRADO)
        return {'ok': True, 'venta': sale}
