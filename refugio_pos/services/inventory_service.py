# ==============================================================================
# SERVICIO DE INVENTARIO
# ==============================================================================
# Centraliza la lógica de negocio de insumos: alta con código generado,
# edición, ingresos de stock, eliminación y consultas.
# ==============================================================================

import re
from typing import Any, Dict, List, Optional

from refugio_pos.models import COL_INSUMOS, UNIDADES_MEDIDA, Insumo
from refugio_pos.performance_logger import profile_function
from refugio_pos.repositories import InsumoRepository, KitRepository, WriteOp
from refugio_pos.repositories.interfaces import IDocumentStore
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.validation import (
    NO_ENCONTRADO,
    clean_text,
    fail,
    parse_number,
)


def sale_price_from_margin(costo_compra: float, ganancia_porcentaje: float) -> float:
    """Precio de venta = costo × (1 + margen/100), redondeado a 2 decimales."""
    return round(costo_compra * (1 + ganancia_porcentaje / 100), 2)


class InventoryService:
    """
    Servicio para gestión de insumos.

    Responsabilidades:
    - Alta de insumos con validación y código automático
    - Edición (nunca modifica la cantidad)
    - Ingresos de stock (delta > 0)
    - Eliminación
    - Búsqueda y stock bajo
    """

    def __init__(
        self,
        store: IDocumentStore,
        insumo_repo: InsumoRepository,
        kit_repo: KitRepository,
        audit_service: AuditService = None
    ):
        """
        Args:
            store: Almacén de documentos (para ingresos de stock atómicos)
            insumo_repo: Repositorio de insumos
            kit_repo: Repositorio de kits
            audit_service: Servicio de auditoría (opcional)
        """
        self.store = store
        self.insumo_repo = insumo_repo
        self.kit_repo = kit_repo
        self.audit_service = audit_service

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def get_insumo(self, user_id: str, insumo_id: str) -> Optional[Dict[str, Any]]:
        return self.insumo_repo.get(insumo_id, user_id)

    def list_insumos(self, user_id: str, query: str = '') -> List[Dict[str, Any]]:
        """
        Lista insumos filtrados por nombre o código, con bandera de stock bajo.
        """
        items = self.insumo_repo.search(user_id, query)
        for item in items:
            item['stock_bajo'] = Insumo.from_dict(item).stock_bajo
        return items

    def get_low_stock(self, user_id: str) -> List[Dict[str, Any]]:
        return self.insumo_repo.get_low_stock(user_id)

    # =========================================================================
    # CÓDIGOS
    # =========================================================================

    @staticmethod
    def code_prefix(categoria: str, nombre: str) -> str:
        """
        Prefijo del código según la categoría.

        - AGUA    → 'A'
        - GASEOSA → dos primeras letras del nombre sin espacios (o 'G')
        - otras   → primera letra de la categoría (o 'X')
        """
        categoria = clean_text(categoria).upper()
        if categoria == 'AGUA':
            return 'A'
        if categoria == 'GASEOSA':
            compact = re.sub(r'\s+', '', clean_text(nombre).upper())
            return compact[:2] or 'G'
        return categoria[:1] or 'X'

    def generate_code(self, user_id: str, categoria: str, nombre: str) -> str:
        """
        Genera el siguiente código para un insumo.

        Returns:
            Prefijo + secuencia de 3 dígitos (ej: 'A004')
        """
        prefix = self.code_prefix(categoria, nombre)
        highest = 0
        for code in self.insumo_repo.codes_with_prefix(user_id, prefix):
            suffix = str(code)[len(prefix):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{prefix}{highest + 1:03d}"

    # =========================================================================
    # VALIDACIÓN
    # =========================================================================

    def _validate_fields(self, data: Dict[str, Any], creating: bool) -> Dict[str, Any]:
        """
        Valida y normaliza los campos de un insumo.

        Returns:
            {'ok': True, 'fields': {...}} o resultado de error
        """
        nombre = clean_text(data.get('nombre')).upper()
        categoria = clean_text(data.get('categoria')).upper()
        if not nombre:
            return fail('El nombre es obligatorio.')
        if not categoria:
            return fail('La categoría es obligatoria.')

        fields = {'nombre': nombre, 'categoria': categoria}

        if creating:
            cantidad, error = parse_number(data.get('cantidad'), 'cantidad')
            if error:
                return fail(error)
            fields['cantidad'] = cantidad

        stock_minimo, error = parse_number(data.get('stock_minimo'), 'stock mínimo')
        if error:
            return fail(error)
        costo_compra, error = parse_number(data.get('costo_compra'), 'costo de compra', strictly_positive=True)
        if error:
            return fail(error)
        fields['stock_minimo'] = stock_minimo
        fields['costo_compra'] = round(costo_compra, 2)

        unidad = clean_text(data.get('unidad_medida') or 'UNIDAD').upper()
        if unidad not in UNIDADES_MEDIDA:
            return fail(f"Unidad de medida inválida. Opciones: {', '.join(UNIDADES_MEDIDA)}")
        fields['unidad_medida'] = unidad

        sin_precio = bool(data.get('sin_precio_venta', False))
        fields['sin_precio_venta'] = sin_precio
        if sin_precio:
            fields['ganancia'] = None
            fields['precio_venta'] = None
        else:
            ganancia, error = parse_number(data.get('ganancia'), 'ganancia')
            if error:
                return fail(error)
            manual, error = parse_number(data.get('precio_venta'), 'precio de venta', required=False)
            if error:
                return fail(error)
            fields['ganancia'] = ganancia / 100
            if manual is not None and manual > 0:
                fields['precio_venta'] = round(manual, 2)
            else:
                fields['precio_venta'] = sale_price_from_margin(costo_compra, ganancia)

        fields['proveedor'] = clean_text(data.get('proveedor'))
        return {'ok': True, 'fields': fields}

    # =========================================================================
    # ALTA / EDICIÓN / BAJA
    # =========================================================================

    @profile_function(name="Crear insumo")
    def add_insumo(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Crea un insumo.

        Args:
            user_id: Usuario dueño
            data: Campos del formulario (nombre, categoria, cantidad,
                stock_minimo, unidad_medida, costo_compra, ganancia en %,
                precio_venta manual opcional, sin_precio_venta, proveedor)

        Returns:
            Dict con resultado (ok, id, insumo) o error de validación
        """
        result = self._validate_fields(data, creating=True)
        if not result['ok']:
            return result
        fields = result['fields']

        fields['codigo'] = self.generate_code(user_id, fields['categoria'], fields['nombre'])
        fields['user_id'] = user_id
        insumo = Insumo.from_dict(fields)

        insumo_id = self.insumo_repo.create(insumo.to_dict())

        if self.audit_service:
            self.audit_service.log_insumo_created(user_id, insumo_id, insumo.nombre, insumo.codigo)

        return {'ok': True, 'id': insumo_id, 'insumo': self.insumo_repo.get(insumo_id)}

    def update_insumo(self, user_id: str, insumo_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Edita un insumo. La cantidad nunca se modifica por esta vía
        (solo con update_stock o al vender).
        """
        current = self.insumo_repo.get(insumo_id, user_id)
        if current is None:
            return fail('Insumo no encontrado', NO_ENCONTRADO)

        result = self._validate_fields(data, creating=False)
        if not result['ok']:
            return result
        fields = result['fields']

        if not self.insumo_repo.update(insumo_id, fields):
            return fail('Insumo no encontrado', NO_ENCONTRADO)

        if self.audit_service:
            changes = {
                k: {'from': current.get(k), 'to': v}
                for k, v in fields.items()
                if current.get(k) != v
            }
            self.audit_service.log_insumo_updated(user_id, insumo_id, fields['nombre'], changes)

        return {'ok': True, 'insumo': self.insumo_repo.get(insumo_id)}

    def update_stock(self, user_id: str, insumo_id: str, delta: Any) -> Dict[str, Any]:
        """
        Agrega stock a un insumo: nueva cantidad = cantidad + delta.

        La lectura y la escritura se hacen en una operación atómica para no
        pisar un cobro concurrente.

        Args:
            delta: Cantidad a sumar (> 0)
        """
        amount, error = parse_number(delta, 'cantidad a agregar', strictly_positive=True)
        if error:
            return fail(error)

        ref = (COL_INSUMOS, insumo_id)
        observed = {}

        def predicate(snapshot):
            doc = snapshot[ref]
            if doc is None or doc.get('user_id') != user_id:
                return 'Insumo no encontrado'
            return None

        def build_writes(snapshot):
            old = float(snapshot[ref].get('cantidad', 0) or 0)
            observed['old'] = old
            observed['new'] = old + amount
            observed['nombre'] = snapshot[ref].get('nombre', '')
            return [WriteOp.update(COL_INSUMOS, insumo_id, {'cantidad': observed['new']})]

        result = self.store.run_atomic([ref], predicate, build_writes)
        if not result.committed:
            return fail(result.reason, NO_ENCONTRADO)

        if self.audit_service:
            self.audit_service.log_stock_add(
                user_id, insumo_id, observed['nombre'], amount, observed['old'], observed['new']
            )

        return {'ok': True, 'id': insumo_id, 'cantidad': observed['new']}

    def delete_insumo(self, user_id: str, insumo_id: str) -> Dict[str, Any]:
        """
        Elimina un insumo.

        Los kits que lo usan no se modifican: quedan con un componente
        huérfano, se reportan como no armables y su cobro se rechaza.

        Returns:
            Dict con resultado y los nombres de kits afectados
        """
        current = self.insumo_repo.get(insumo_id, user_id)
        if current is None:
            return fail('Insumo no encontrado', NO_ENCONTRADO)

        affected = [k.get('nombre', '') for k in self.kit_repo.find_using_insumo(user_id, insumo_id)]
        if not self.insumo_repo.delete(insumo_id):
            return fail('Insumo no encontrado', NO_ENCONTRADO)

        if self.audit_service:
            self.audit_service.log_product_deleted(user_id, insumo_id, current.get('nombre', ''), 'insumo')

        return {'ok': True, 'id': insumo_id, 'kits_afectados': affected}
