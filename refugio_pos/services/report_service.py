# ==============================================================================
# SERVICIO DE REPORTES
# ==============================================================================
# Reportes de lectura:
#   - Reporte total: ventas, egresos y gastos diarios en un rango de fechas
#   - Ventas esperadas: valor de venta del stock actual
#   - Productos más vendidos con recomendación de stock
# ==============================================================================

from typing import Any, Dict, List

from refugio_pos.models import Insumo, TipoProducto
from refugio_pos.performance_logger import profile_function
from refugio_pos.repositories import (
    DailyExpenseRepository,
    ExpenseRepository,
    InsumoRepository,
    KitRepository,
    SalesRepository,
)
from refugio_pos.services.validation import end_of_day, parse_date, start_of_day

# Umbrales de la recomendación de stock
HIGH_SELLER_THRESHOLD = 50
LOW_SELLER_THRESHOLD = 10

DECISIONS = {
    'MAS': 'Comprar/Producir MÁS',
    'QUITAR': 'Considerar Quitar',
    'NORMAL': 'Stock Normal',
}


def stock_decision(vendidos: float) -> str:
    """Recomendación según unidades vendidas (> 50 MÁS, < 10 QUITAR)."""
    if vendidos > HIGH_SELLER_THRESHOLD:
        return 'MAS'
    if vendidos < LOW_SELLER_THRESHOLD:
        return 'QUITAR'
    return 'NORMAL'


def _sum_totals(docs: List[Dict[str, Any]]) -> float:
    return round(sum(float(d.get('total', 0) or 0) for d in docs), 2)


class ReportService:
    """
    Servicio de reportes agregados.
    Solo lectura: no modifica el almacén.
    """

    def __init__(
        self,
        sales_repo: SalesRepository,
        expense_repo: ExpenseRepository,
        daily_repo: DailyExpenseRepository,
        insumo_repo: InsumoRepository,
        kit_repo: KitRepository
    ):
        self.sales_repo = sales_repo
        self.expense_repo = expense_repo
        self.daily_repo = daily_repo
        self.insumo_repo = insumo_repo
        self.kit_repo = kit_repo

    # =========================================================================
    # REPORTE TOTAL
    # =========================================================================

    @profile_function(name="Reporte total")
    def total_report(self, user_id: str, desde: Any = None, hasta: Any = None) -> Dict[str, Any]:
        """
        Totales de ventas, egresos y gastos diarios.

        Args:
            desde: Fecha inicial (YYYY-MM-DD, opcional)
            hasta: Fecha final inclusiva (YYYY-MM-DD, opcional)

        Returns:
            Dict con ingresos, egresos, gastos, inversión, ganancia bruta,
            pérdidas, saldo neto y las listas consultadas. Con rango, las
            listas van en orden cronológico; sin rango, más recientes primero.
        """
        desde_d = parse_date(desde)
        hasta_d = parse_date(hasta)
        from_dt = start_of_day(desde_d) if desde_d else None
        to_dt = end_of_day(hasta_d) if hasta_d else None
        descending = from_dt is None and to_dt is None

        ventas = self.sales_repo.list_in_range(user_id, from_dt, to_dt, descending=descending)
        egresos = self.expense_repo.list_in_range(user_id, from_dt, to_dt, descending=descending)
        gastos = self.daily_repo.list_in_range(user_id, from_dt, to_dt, descending=descending)

        ingresos = _sum_totals(ventas)
        total_egresos = _sum_totals(egresos)
        total_gastos = _sum_totals(gastos)
        inversion = round(total_egresos + total_gastos, 2)
        ganancia_bruta = round(ingresos - inversion, 2)

        return {
            'ok': True,
            'desde': desde_d.isoformat() if desde_d else None,
            'hasta': hasta_d.isoformat() if hasta_d else None,
            'ingresos': ingresos,
            'egresos': total_egresos,
            'gastos_diarios': total_gastos,
            'inversion': inversion,
            'ganancia_bruta': ganancia_bruta,
            'perdidas': abs(ganancia_bruta) if ganancia_bruta < 0 else 0.0,
            'saldo_neto': ganancia_bruta,
            'ventas': ventas,
            'lista_egresos': egresos,
            'lista_gastos': gastos,
        }

    # =========================================================================
    # INVENTARIO
    # =========================================================================

    def expected_sales(self, user_id: str) -> Dict[str, Any]:
        """
        Valor de venta del stock actual: suma de precio × cantidad de los
        insumos y kits con precio de venta > 0.
        """
        items = []
        for doc in self.insumo_repo.list_sorted(user_id):
            insumo = Insumo.from_dict(doc)
            precio = insumo.precio_venta or 0
            if insumo.sin_precio_venta or precio <= 0:
                continue
            items.append({
                'id': insumo.id,
                'nombre': insumo.nombre,
                'tipo': TipoProducto.INSUMO.value,
                'cantidad': insumo.cantidad,
                'precio_venta': precio,
                'valor': round(precio * insumo.cantidad, 2),
            })
        for doc in self.kit_repo.list_sorted(user_id):
            precio = float(doc.get('precio_venta', 0) or 0)
            if precio <= 0:
                continue
            cantidad = float(doc.get('cantidad', 0) or 0)
            items.append({
                'id': doc['id'],
                'nombre': doc.get('nombre', ''),
                'tipo': TipoProducto.KIT.value,
                'cantidad': cantidad,
                'precio_venta': precio,
                'valor': round(precio * cantidad, 2),
            })
        return {
            'ok': True,
            'items': items,
            'total': round(sum(i['valor'] for i in items), 2),
        }

    def best_sellers(self, user_id: str) -> Dict[str, Any]:
        """
        Unidades vendidas por producto, separadas en insumos y kits,
        ordenadas de mayor a menor, con recomendación de stock.
        """
        counts = {TipoProducto.INSUMO.value: {}, TipoProducto.KIT.value: {}}
        for venta in self.sales_repo.list_for_user(user_id):
            for articulo in venta.get('articulos', []):
                tipo = articulo.get('tipo', TipoProducto.INSUMO.value)
                bucket = counts.setdefault(tipo, {})
                nombre = articulo.get('nombre', '')
                bucket[nombre] = bucket.get(nombre, 0) + float(articulo.get('cantidad', 0) or 0)

        result = {'ok': True}
        for tipo, bucket in counts.items():
            ranking = []
            for nombre, vendidos in sorted(bucket.items(), key=lambda kv: kv[1], reverse=True):
                decision = stock_decision(vendidos)
                ranking.append({
                    'nombre': nombre,
                    'vendidos': vendidos,
                    'decision': decision,
                    'recomendacion': DECISIONS[decision],
                })
            result[f'{tipo}s'] = ranking
        return result
