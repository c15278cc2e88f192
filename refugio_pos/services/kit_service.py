# ==============================================================================
# SERVICIO DE KITS
# ==============================================================================
# Kits = productos compuestos por insumos.
#   - Costo: suma de (costo unitario del insumo × cantidad requerida)
#   - Precio: costo × (1 + margen/100)
#   - Armables: mínimo de floor(stock / requerido) entre componentes
#
# El costo unitario de un insumo se aproxima como costo_compra / cantidad
# actual en stock. Armables e insumo limitante se guardan al crear el kit y
# no se recalculan después; list_kits() agrega el valor actual aparte.
# ==============================================================================

import math
from typing import Any, Dict, List, Optional, Tuple

from refugio_pos.models import COL_KITS, Kit, KitComponent
from refugio_pos.performance_logger import profile_function
from refugio_pos.repositories import InsumoRepository, KitRepository, WriteOp
from refugio_pos.repositories.interfaces import IDocumentStore
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.inventory_service import sale_price_from_margin
from refugio_pos.services.validation import (
    NO_ENCONTRADO,
    SOLO_LETRAS,
    clean_text,
    fail,
    parse_number,
)


def component_unit_cost(insumo: Optional[Dict[str, Any]]) -> float:
    """
    Costo unitario aproximado de un insumo: costo_compra / cantidad.
    Retorna 0 si el insumo no existe o no tiene stock.
    """
    if not insumo:
        return 0.0
    reference = float(insumo.get('cantidad', 0) or 0)
    if reference <= 0:
        return 0.0
    return float(insumo.get('costo_compra', 0) or 0) / reference


def compute_kit_cost(componentes: List[KitComponent], insumos_by_id: Dict[str, Dict[str, Any]]) -> float:
    """Costo del kit redondeado a 2 decimales."""
    total = sum(
        component_unit_cost(insumos_by_id.get(c.insumo_id)) * c.cantidad
        for c in componentes
    )
    return round(total, 2)


def calculate_kit_limits(
    componentes: List[KitComponent],
    insumos_by_id: Dict[str, Dict[str, Any]]
) -> Tuple[int, str]:
    """
    Cantidad de kits armables con el stock actual.

    Returns:
        Tupla (max_kits, insumo_limitante). Sin componentes, con un insumo
        inexistente o sin mínimo calculable, max_kits es 0.
    """
    if not componentes:
        return 0, 'Sin componentes'

    minimum = None
    limiting = ''
    for comp in componentes:
        insumo = insumos_by_id.get(comp.insumo_id)
        if insumo is None:
            return 0, f'Insumo ID {comp.insumo_id} no encontrado'
        if comp.cantidad <= 0:
            continue
        stock = float(insumo.get('cantidad', 0) or 0)
        possible = max(0, math.floor(stock / comp.cantidad))
        if minimum is None or possible < minimum:
            minimum = possible
            limiting = insumo.get('nombre', '')

    if minimum is None:
        return 0, 'N/A'
    return int(minimum), limiting


class KitService:
    """
    Servicio para gestión de kits.

    Responsabilidades:
    - Validar y crear kits con costo, precio y armables
    - Ingresos de stock de kits armados
    - Eliminación
    - Listado con armables actuales
    """

    def __init__(
        self,
        store: IDocumentStore,
        kit_repo: KitRepository,
        insumo_repo: InsumoRepository,
        audit_service: AuditService = None
    ):
        self.store = store
        self.kit_repo = kit_repo
        self.insumo_repo = insumo_repo
        self.audit_service = audit_service

    def _insumos_by_id(self, user_id: str) -> Dict[str, Dict[str, Any]]:
        return {i['id']: i for i in self.insumo_repo.list_for_user(user_id)}

    def get_kit(self, user_id: str, kit_id: str) -> Optional[Dict[str, Any]]:
        return self.kit_repo.get(kit_id, user_id)

    def list_kits(self, user_id: str, query: str = '') -> List[Dict[str, Any]]:
        """
        Lista kits del usuario con 'max_kits_actual' recalculado del stock
        presente (los campos guardados no se tocan).
        """
        insumos = self._insumos_by_id(user_id)
        q = clean_text(query).lower()
        kits = []
        for doc in self.kit_repo.list_sorted(user_id):
            if q and q not in str(doc.get('nombre', '')).lower():
                continue
            kit = Kit.from_dict(doc)
            actual, limiting = calculate_kit_limits(kit.componentes, insumos)
            doc['max_kits_actual'] = actual
            doc['insumo_limitante_actual'] = limiting
            kits.append(doc)
        return kits

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    @staticmethod
    def validate_kit(nombre: str, componentes: List[Dict[str, Any]]) -> Optional[str]:
        """
        Valida nombre y componentes.

        Returns:
            Mensaje de error o None si es válido
        """
        nombre = clean_text(nombre).upper()
        if not nombre:
            return 'El nombre del kit es obligatorio.'
        if not SOLO_LETRAS.match(nombre):
            return 'El nombre del kit solo puede contener letras y espacios.'
        if not componentes:
            return 'El kit debe tener al menos un componente.'

        seen = set()
        for index, comp in enumerate(componentes, start=1):
            insumo_id = clean_text(comp.get('insumo_id'))
            if not insumo_id:
                return f'Seleccione un insumo para el componente {index}.'
            cantidad, error = parse_number(comp.get('cantidad'), f'cantidad del componente {index}',
                                           strictly_positive=True)
            if error:
                return error
            if insumo_id in seen:
                return 'No se puede repetir el mismo insumo en un kit.'
            seen.add(insumo_id)
        return None

    # =========================================================================
    # ALTA / STOCK / BAJA
    # =========================================================================

    @profile_function(name="Crear kit")
    def create_kit(
        self,
        user_id: str,
        nombre: str,
        componentes: List[Dict[str, Any]],
        ganancia_porcentaje: Any,
        cantidad: Any = 0
    ) -> Dict[str, Any]:
        """
        Crea un kit.

        Args:
            user_id: Usuario dueño
            nombre: Nombre (letras y espacios)
            componentes: [{'insumo_id': str, 'cantidad': number}, ...]
            ganancia_porcentaje: Margen en %
            cantidad: Kits armados iniciales (opcional)

        Returns:
            Dict con resultado (ok, id, kit) o error de validación
        """
        error = self.validate_kit(nombre, componentes)
        if error:
            return fail(error)
        margen, error = parse_number(ganancia_porcentaje, 'ganancia')
        if error:
            return fail(error)
        stock_inicial, error = parse_number(cantidad, 'cantidad', required=False)
        if error:
            return fail(error)

        insumos = self._insumos_by_id(user_id)
        parsed = []
        for comp in componentes:
            insumo_id = clean_text(comp.get('insumo_id'))
            insumo = insumos.get(insumo_id) or {}
            parsed.append(KitComponent(
                insumo_id=insumo_id,
                nombre_insumo=insumo.get('nombre', ''),
                cantidad=float(comp.get('cantidad')),
            ))

        costo = compute_kit_cost(parsed, insumos)
        precio = sale_price_from_margin(costo, margen)
        max_kits, limiting = calculate_kit_limits(parsed, insumos)

        kit = Kit(
            nombre=clean_text(nombre).upper(),
            componentes=parsed,
            costo_compra=costo,
            precio_venta=precio,
            ganancia=round(precio - costo, 2),
            ganancia_porcentaje=margen,
            cantidad=stock_inicial or 0,
            max_kits_posibles=max_kits,
            insumo_limitante=limiting,
            user_id=user_id,
        )
        kit_id = self.kit_repo.create(kit.to_dict())

        if self.audit_service:
            self.audit_service.log_kit_created(user_id, kit_id, kit.nombre, costo, precio, max_kits)

        return {'ok': True, 'id': kit_id, 'kit': self.kit_repo.get(kit_id)}

    def update_kit_stock(self, user_id: str, kit_id: str, delta: Any) -> Dict[str, Any]:
        """
        Suma kits armados al stock del kit (delta > 0), de forma atómica.
        """
        amount, error = parse_number(delta, 'cantidad a agregar', strictly_positive=True)
        if error:
            return fail(error)

        ref = (COL_KITS, kit_id)
        observed = {}

        def predicate(snapshot):
            doc = snapshot[ref]
            if doc is None or doc.get('user_id') != user_id:
                return 'Kit no encontrado'
            return None

        def build_writes(snapshot):
            old = float(snapshot[ref].get('cantidad', 0) or 0)
            observed.update(old=old, new=old + amount, nombre=snapshot[ref].get('nombre', ''))
            return [WriteOp.update(COL_KITS, kit_id, {'cantidad': observed['new']})]

        result = self.store.run_atomic([ref], predicate, build_writes)
        if not result.committed:
            return fail(result.reason, NO_ENCONTRADO)

        if self.audit_service:
            self.audit_service.log_stock_add(
                user_id, kit_id, observed['nombre'], amount, observed['old'], observed['new'], 'kit'
            )

        return {'ok': True, 'id': kit_id, 'cantidad': observed['new']}

    def delete_kit(self, user_id: str, kit_id: str) -> Dict[str, Any]:
        current = self.kit_repo.get(kit_id, user_id)
        if current is None:
            return fail('Kit no encontrado', NO_ENCONTRADO)
        if not self.kit_repo.delete(kit_id):
            return fail('Kit no encontrado', NO_ENCONTRADO)
        if self.audit_service:
            self.audit_service.log_product_deleted(user_id, kit_id, current.get('nombre', ''), 'kit')
        return {'ok': True, 'id': kit_id}
