# ==============================================================================
# SERVICIO DE GASTOS DIARIOS
# ==============================================================================
# Gastos de caja chica: factura, productos (nombre, precio, cantidad),
# pagador de la lista autorizada y fecha/hora del gasto.
# ==============================================================================

from datetime import datetime, timezone
from typing import Any, Dict, List

from refugio_pos.models import PAGADORES, GastoDiario, ProductoGasto
from refugio_pos.repositories import DailyExpenseRepository, parse_timestamp
from refugio_pos.services.audit_service import AuditService
from refugio_pos.services.expense_service import filter_by_date
from refugio_pos.services.validation import NO_ENCONTRADO, clean_text, fail, parse_number


class DailyExpenseService:
    """
    Servicio de gastos diarios.

    Responsabilidades:
    - Registrar gastos (total = suma de precio × cantidad)
    - Listado filtrado por nombre de producto y "solo hoy" con suma
    - Eliminación
    """

    def __init__(self, daily_repo: DailyExpenseRepository, audit_service: AuditService = None):
        self.daily_repo = daily_repo
        self.audit_service = audit_service

    def create_daily_expense(self, user_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registra un gasto diario.

        Args:
            data: numero_factura, pagado_por, fecha_hora (ISO, opcional),
                productos [{nombre, precio, cantidad}]

        Returns:
            Dict con resultado (ok, id, gasto) o error de validación
        """
        numero = clean_text(data.get('numero_factura'))
        if not numero:
            return fail('El número de factura es obligatorio.')

        pagado_por = clean_text(data.get('pagado_por'))
        if pagado_por not in PAGADORES:
            return fail(f"Pagador inválido. Opciones: {', '.join(PAGADORES)}")

        raw_productos = data.get('productos') or []
        if not raw_productos:
            return fail('Agregue al menos un producto.')
        productos = []
        for index, raw in enumerate(raw_productos, start=1):
            nombre = clean_text(raw.get('nombre'))
            if not nombre:
                return fail(f'Falta el nombre del producto {index}.')
            precio, error = parse_number(raw.get('precio'), f'precio del producto {index}')
            if error:
                return fail(error)
            cantidad, error = parse_number(raw.get('cantidad'), f'cantidad del producto {index}',
                                           strictly_positive=True)
            if error:
                return fail(error)
            productos.append(ProductoGasto(nombre, precio, cantidad))

        fecha_hora = clean_text(data.get('fecha_hora'))
        if fecha_hora:
            dt = parse_timestamp(fecha_hora)
            if dt is None:
                return fail('Fecha y hora inválidas.')
        else:
            dt = datetime.now().astimezone()

        gasto = GastoDiario(
            numero_factura=numero,
            productos=productos,
            total=round(sum(p.precio * p.cantidad for p in productos), 2),
            pagado_por=pagado_por,
            timestamp=dt.astimezone(timezone.utc).isoformat(),
            user_id=user_id,
        )
        gasto_id = self.daily_repo.create(gasto.to_dict())

        if self.audit_service:
            self.audit_service.log_expense_event(
                user_id, gasto_id, f"Factura #{numero}", gasto.total, 'registrado', 'gasto diario'
            )

        return {'ok': True, 'id': gasto_id, 'gasto': self.daily_repo.get(gasto_id)}

    def list_daily_expenses(self, user_id: str, query: str = '', solo_hoy: bool = True) -> Dict[str, Any]:
        """
        Lista gastos (más recientes primero).

        Args:
            query: Texto a buscar en los nombres de productos
            solo_hoy: Solo gastos de hoy (activado por defecto)
        """
        docs = self.daily_repo.list_recent(user_id)
        q = clean_text(query).lower()
        if q:
            docs = [
                d for d in docs
                if any(q in str(p.get('nombre', '')).lower() for p in d.get('productos', []))
            ]
        docs = filter_by_date(docs, solo_hoy=solo_hoy)
        return {
            'ok': True,
            'items': docs,
            'count': len(docs),
            'suma_total': round(sum(float(d.get('total', 0) or 0) for d in docs), 2),
        }

    def delete_daily_expense(self, user_id: str, gasto_id: str) -> Dict[str, Any]:
        current = self.daily_repo.get(gasto_id, user_id)
        if current is None:
            return fail('Gasto no encontrado', NO_ENCONTRADO)
        if not self.daily_repo.delete(gasto_id):
            return fail('Gasto no encontrado', NO_ENCONTRADO)
        if self.audit_service:
            self.audit_service.log_expense_event(
                user_id, gasto_id, f"Factura #{current.get('numero_factura', '')}",
                float(current.get('total', 0) or 0), 'eliminado', 'gasto diario'
            )
        return {'ok': True, 'id': gasto_id}

    @staticmethod
    def payers() -> List[str]:
        return list(PAGADORES)
