# ==============================================================================
# SERVICIO DE EGRESOS
# ==============================================================================
# Dos tipos de egreso:
#   - producto: factura con artículos (total = suma de totales de artículos)
#   - servicio: pago de un servicio con monto
#
# Listado filtrado por pagador, tipo, rango de fechas o "solo hoy", paginado
# de a 100, con suma de totales.
# ==============================================================================

import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from refugio_pos.models import ArticuloEgreso, Egreso, TipoEgreso
from refugio_pos.repositories import ExpenseRepository, parse_timestamp
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.validation import (
    NO_ENCONTRADO,
    clean_text,
    end_of_day,
    fail,
    parse_date,
    parse_number,
    start_of_day,
)

PAGE_SIZE = 100
SUMMARY_LIMIT = 150

# Campos editables de un egreso
UPDATABLE_FIELDS = ('tipo', 'descripcion', 'nombre_servicio', 'numero_factura', 'total', 'quien_pago')


def invoice_description(numero_factura: str, articulos: List[ArticuloEgreso]) -> str:
    """
    Descripción de una factura: 'Factura #N (2x ARROZ, 1x ACEITE)'.
    El resumen se corta a 150 caracteres.
    """
    summary = ', '.join(f"{a.cantidad:g}x {a.descripcion}" for a in articulos)
    if len(summary) > SUMMARY_LIMIT:
        summary = summary[:SUMMARY_LIMIT] + '...'
    return f"Factura #{numero_factura} ({summary})"


def filter_by_date(
    docs: List[Dict[str, Any]],
    desde: Optional[date] = None,
    hasta: Optional[date] = None,
    solo_hoy: bool = False,
    ts_field: str = 'timestamp',
) -> List[Dict[str, Any]]:
    """
    Filtra documentos por fecha local. 'solo_hoy' tiene prioridad sobre el
    rango; 'hasta' incluye todo el día.
    """
    if solo_hoy:
        desde = hasta = datetime.now().date()
    if desde is None and hasta is None:
        return docs
    from_dt = start_of_day(desde) if desde else None
    to_dt = end_of_day(hasta) if hasta else None
    filtered = []
    for doc in docs:
        dt = parse_timestamp(doc.get(ts_field))
        if dt is None:
            continue
        if from_dt and dt < from_dt:
            continue
        if to_dt and dt > to_dt:
            continue
        filtered.append(doc)
    return filtered


class ExpenseService:
    """
    Servicio para egresos.

    Responsabilidades:
    - Registrar facturas de productos y pagos de servicios
    - Listado filtrado y paginado con suma
    - Edición y eliminación
    """

    def __init__(self, expense_repo: ExpenseRepository, audit_service: AuditService = None):
        self.expense_repo = expense_repo
        self.audit_service = audit_service

    # =========================================================================
    # ALTA
    # =========================================================================

    def create_expense(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registra un egreso.

        Args:
            data: Para tipo 'producto': numero_factura, quien_pago,
                articulos [{descripcion, cantidad, total}].
                Para tipo 'servicio': nombre_servicio, total, quien_pago,
                descripcion (opcional).

        Returns:
            Dict con resultado (ok, id, egreso) o error de validación
        """
        try:
            tipo = TipoEgreso(clean_text(data.get('tipo')).lower())
        except ValueError:
            return fail("Tipo de egreso inválido. Use 'producto' o 'servicio'.")

        quien_pago = clean_text(data.get('quien_pago'))
        if not quien_pago:
            return fail('Indique quién pagó.')

        if tipo == TipoEgreso.PRODUCTO:
            result = self._build_invoice(data, quien_pago, user_id)
        else:
            result = self._build_service(data, quien_pago, user_id)
        if not result['ok']:
            return result
        egreso = result['egreso']

        fecha = parse_date(data.get('fecha'))
        if fecha is not None:
            egreso.timestamp = start_of_day(fecha).astimezone(timezone.utc).isoformat()

        egreso_id = self.expense_repo.create(egreso.to_dict())

        if self.audit_service:
            self.audit_service.log_expense_event(user_id, egreso_id, egreso.descripcion, egreso.total, 'registrado')

        return {'ok': True, 'id': egreso_id, 'egreso': self.expense_repo.get(egreso_id)}

    def _build_invoice(self, data: Dict[str, Any], quien_pago: str, user_id: str) -> Dict[str, Any]:
        numero = clean_text(data.get('numero_factura'))
        if not numero:
            return fail('El número de factura es obligatorio.')
        raw_articulos = data.get('articulos') or []
        if not raw_articulos:
            return fail('Agregue al menos un artículo.')

        articulos = []
        for index, raw in enumerate(raw_articulos, start=1):
            descripcion = clean_text(raw.get('descripcion'))
            if not descripcion:
                return fail(f'Falta la descripción del artículo {index}.')
            cantidad, error = parse_number(raw.get('cantidad'), f'cantidad del artículo {index}',
                                           strictly_positive=True)
            if error:
                return fail(error)
            total, error = parse_number(raw.get('total'), f'total del artículo {index}')
            if error:
                return fail(error)
            articulos.append(ArticuloEgreso(descripcion, cantidad, round(total, 2)))

        egreso = Egreso(
            tipo=TipoEgreso.PRODUCTO,
            total=round(sum(a.total for a in articulos), 2),
            quien_pago=quien_pago,
            numero_factura=numero,
            articulos=articulos,
            descripcion=invoice_description(numero, articulos),
            user_id=user_id,
        )
        return {'ok': True, 'egreso': egreso}

    def _build_service(self, data: Dict[str, Any], quien_pago: str, user_id: str) -> Dict[str, Any]:
        nombre_servicio = clean_text(data.get('nombre_servicio'))
        if not nombre_servicio:
            return fail('El nombre del servicio es obligatorio.')
        total, error = parse_number(data.get('total'), 'total', strictly_positive=True)
        if error:
            return fail(error)
        egreso = Egreso(
            tipo=TipoEgreso.SERVICIO,
            total=round(total, 2),
            quien_pago=quien_pago,
            nombre_servicio=nombre_servicio,
            descripcion=clean_text(data.get('descripcion')) or nombre_servicio,
            user_id=user_id,
        )
        return {'ok': True, 'egreso': egreso}

    # =========================================================================
    # LISTADO
    # =========================================================================

    def list_expenses(
        self,
        user_id: str,
        quien_pago: str = '',
        tipo: str = '',
        desde: Any = None,
        hasta: Any = None,
        solo_hoy: bool = False,
        page: int = 1,
        page_size: int = PAGE_SIZE
    ) -> Dict[str, Any]:
        """
        Lista egresos (más recientes primero) con filtros y paginación.

        Returns:
            Dict con items de la página, total filtrado, página, páginas
            y suma de totales del conjunto filtrado
        """
        docs = self.expense_repo.list_recent(user_id)

        q = clean_text(quien_pago).lower()
        if q:
            docs = [d for d in docs if q in str(d.get('quien_pago', '')).lower()]
        tipo = clean_text(tipo).lower()
        if tipo:
            docs = [d for d in docs if d.get('tipo') == tipo]
        docs = filter_by_date(docs, parse_date(desde), parse_date(hasta), solo_hoy)

        page_size = max(1, int(page_size or PAGE_SIZE))
        pages = max(1, math.ceil(len(docs) / page_size))
        page = min(max(1, int(page or 1)), pages)
        start = (page - 1) * page_size

        return {
            'ok': True,
            'items': docs[start:start + page_size],
            'count': len(docs),
            'page': page,
            'pages': pages,
            'suma_total': round(sum(float(d.get('total', 0) or 0) for d in docs), 2),
        }

    # =========================================================================
    # EDICIÓN / BAJA
    # =========================================================================

    def update_expense(self, user_id: str, egreso_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Edita campos simples del egreso (los artículos no se editan)."""
        current = self.expense_repo.get(egreso_id, user_id)
        if current is None:
            return fail('Egreso no encontrado', NO_ENCONTRADO)

        updates = {}
        for key in UPDATABLE_FIELDS:
            if key not in data:
                continue
            if key == 'total':
                total, error = parse_number(data['total'], 'total')
                if error:
                    return fail(error)
                updates['total'] = round(total, 2)
            elif key == 'tipo':
                try:
                    updates['tipo'] = TipoEgreso(clean_text(data['tipo']).lower()).value
                except ValueError:
                    return fail("Tipo de egreso inválido. Use 'producto' o 'servicio'.")
            else:
                updates[key] = clean_text(data[key])

        if 'quien_pago' in updates and not updates['quien_pago']:
            return fail('Indique quién pagó.')
        if not updates:
            return fail('No hay cambios para guardar.')

        if not self.expense_repo.update(egreso_id, updates):
            return fail('Egreso no encontrado', NO_ENCONTRADO)

        egreso = self.expense_repo.get(egreso_id)
        if self.audit_service:
            self.audit_service.log_expense_event(
                user_id, egreso_id, egreso.get('descripcion', ''), float(egreso.get('total', 0) or 0), 'editado'
            )
        return {'ok': True, 'egreso': egreso}

    def delete_expense(self, user_id: str, egreso_id: str) -> Dict[str, Any]:
        current = self.expense_repo.get(egreso_id, user_id)
        if current is None:
            return fail('Egreso no encontrado', NO_ENCONTRADO)
        if not self.expense_repo.delete(egreso_id):
            return fail('Egreso no encontrado', NO_ENCONTRADO)
        if self.audit_service:
            self.audit_service.log_expense_event(
                user_id, egreso_id, current.get('descripcion', ''), float(current.get('total', 0) or 0), 'eliminado'
            )
        return {'ok': True, 'id': egreso_id}
