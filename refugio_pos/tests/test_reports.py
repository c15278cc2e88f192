from datetime import date, datetime, timedelta, timezone

import pytest

from conftest import OTHER_USER, USER, make_insumo
from refugio_pos.services.report_service import DECISIONS, stock_decision


def _iso_days_ago(days):
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def _venta(container, total, days_ago=0, articulos=None, user=USER):
    container.store.create_one('ventas', {
        'user_id': user,
        'total': total,
        'timestamp': _iso_days_ago(days_ago),
        'articulos': articulos or [],
    })


def test_total_report_balances(container):
    _venta(container, 100)
    _venta(container, 50)
    _venta(container, 999, user=OTHER_USER)
    container.expense_service.create_expense(USER, {
        'tipo': 'servicio', 'nombre_servicio': 'Luz', 'total': 80, 'quien_pago': 'Caja',
    })
    container.daily_expense_service.create_daily_expense(USER, {
        'numero_factura': '1', 'pagado_por': 'Caja',
        'productos': [{'nombre': 'Hielo', 'precio': 10, 'cantidad': 2}],
    })

    report = container.report_service.total_report(USER)
    assert report['ingresos'] == pytest.approx(150)
    assert report['egresos'] == pytest.approx(80)
    assert report['gastos_diarios'] == pytest.approx(20)
    assert report['inversion'] == pytest.approx(100)
    assert report['ganancia_bruta'] == pytest.approx(50)
    assert report['perdidas'] == 0
    assert report['saldo_neto'] == pytest.approx(50)
    assert len(report['ventas']) == 2


def test_total_report_losses(container):
    _venta(container, 10)
    container.expense_service.create_expense(USER, {
        'tipo': 'servicio', 'nombre_servicio': 'Alquiler', 'total': 40, 'quien_pago': 'Caja',
    })
    report = container.report_service.total_report(USER)
    assert report['ganancia_bruta'] == pytest.approx(-30)
    assert report['perdidas'] == pytest.approx(30)


def test_total_report_date_range(container):
    _venta(container, 100, days_ago=0)
    _venta(container, 40, days_ago=5)
    _venta(container, 7, days_ago=30)

    desde = (date.today() - timedelta(days=7)).isoformat()
    hasta = date.today().isoformat()
    report = container.report_service.total_report(USER, desde, hasta)
    assert report['ingresos'] == pytest.approx(140)
    assert report['desde'] == desde
    # Con rango la lista va en orden cronológico
    assert [v['total'] for v in report['ventas']] == [40, 100]


def test_expected_sales(container):
    make_insumo(container, nombre='Cerveza', cantidad=10, precio_venta=12)
    make_insumo(container, nombre='Hielo', cantidad=50, sin_precio_venta=True)
    ron = make_insumo(container, nombre='Ron', cantidad=4, costo_compra=40, ganancia=100)
    kit_id = container.kit_service.create_kit(USER, 'Trago', [{'insumo_id': ron['id'], 'cantidad': 1}], 50)['id']
    container.kit_service.update_kit_stock(USER, kit_id, 2)

    result = container.report_service.expected_sales(USER)
    valores = {i['nombre']: i['valor'] for i in result['items']}
    # Ron: 4 × 80; Trago: costo 10, precio 15, 2 armados
    assert valores == {'CERVEZA': pytest.approx(120), 'RON': pytest.approx(320), 'TRAGO': pytest.approx(30)}
    assert result['total'] == pytest.approx(470)


def test_stock_decision_thresholds():
    assert stock_decision(51) == 'MAS'
    assert stock_decision(50) == 'NORMAL'
    assert stock_decision(10) == 'NORMAL'
    assert stock_decision(9) == 'QUITAR'
    assert DECISIONS['QUITAR'] == 'Considerar Quitar'


def test_best_sellers_split_by_type(container):
    _venta(container, 0, articulos=[
        {'producto_id': 'a', 'tipo': 'insumo', 'nombre': 'CERVEZA', 'precio_venta': 1, 'cantidad': 60},
        {'producto_id': 'b', 'tipo': 'kit', 'nombre': 'BALDE', 'precio_venta': 1, 'cantidad': 3},
    ])
    _venta(container, 0, articulos=[
        {'producto_id': 'c', 'tipo': 'insumo', 'nombre': 'AGUA', 'precio_venta': 1, 'cantidad': 12},
    ])

    result = container.report_service.best_sellers(USER)
    assert [(i['nombre'], i['decision']) for i in result['insumos']] == [('CERVEZA', 'MAS'), ('AGUA', 'NORMAL')]
    assert result['kits'][0]['recomendacion'] == 'Considerar Quitar'
