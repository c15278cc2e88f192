import re

import pytest

from conftest import OTHER_USER, USER, make_client
from refugio_pos.services.client_service import ClientService, spending_by_client, top_consumers


def _venta(container, cliente_id, total, user=USER):
    container.store.create_one('ventas', {
        'user_id': user, 'cliente_id': cliente_id, 'total': total, 'articulos': [],
    })


def test_create_client_normalizes_and_assigns_code(container):
    cliente = make_client(container, nombre_completo=' maría  lópez', instagram='@maria')
    assert cliente['nombre_completo'] == 'MARÍA  LÓPEZ'
    assert re.fullmatch(r'[A-Z0-9]{6}', cliente['codigo'])
    assert cliente['instagram'] == '@maria'
    assert container.audit_service.search_logs(USER, 'creado', 'CLIENTE')


@pytest.mark.parametrize('overrides, message', [
    ({'nombre_completo': ''}, 'obligatorio'),
    ({'nombre_completo': 'Ana 2'}, 'letras y espacios'),
    ({'ci': '12a'}, 'CI'),
    ({'telefono': ''}, 'teléfono'),
    ({'descuento': 120}, 'mayor a 100'),
    ({'descuento': -5}, 'negativo'),
])
def test_client_validation(container, overrides, message):
    data = {'nombre_completo': 'Ana', 'ci': '1', 'telefono': '2', 'descuento': 0}
    data.update(overrides)
    result = container.client_service.create_client(USER, data)
    assert result['ok'] is False
    assert message in result['error']


def test_generated_code_avoids_existing():
    code = ClientService.generate_client_code(['AAAAAA'])
    assert code != 'AAAAAA'
    assert len(code) == 6


def test_update_and_delete_client(container):
    cliente = make_client(container)
    result = container.client_service.update_client(USER, cliente['id'], {
        'nombre_completo': 'Ana Maria Perez', 'ci': '1234567', 'telefono': '71111111', 'descuento': 15,
    })
    assert result['ok']
    assert result['cliente']['descuento'] == pytest.approx(15)

    assert container.client_service.update_client(OTHER_USER, cliente['id'], {})['error_type'] == 'no_encontrado'
    assert container.client_service.delete_client(USER, cliente['id'])['ok']
    assert container.client_repo.get(cliente['id']) is None


def test_spending_and_top_consumers(container):
    ana = make_client(container, nombre_completo='Ana')
    luis = make_client(container, nombre_completo='Luis')
    make_client(container, nombre_completo='Sin Compras')
    _venta(container, ana['id'], 30)
    _venta(container, ana['id'], 12.5)
    _venta(container, luis['id'], 50)
    _venta(container, None, 99)
    _venta(container, ana['id'], 1000, user=OTHER_USER)

    clientes = {c['nombre_completo']: c['total_gastado'] for c in container.client_service.list_clients(USER)}
    assert clientes == {'ANA': pytest.approx(42.5), 'LUIS': pytest.approx(50), 'SIN COMPRAS': 0.0}

    top = container.client_service.get_top_consumers(USER)
    assert [c['nombre_completo'] for c in top] == ['LUIS', 'ANA']


def test_top_consumers_limit():
    clientes = [{'id': str(i), 'nombre_completo': f'C{i}'} for i in range(15)]
    totals = {str(i): float(i) for i in range(15)}
    top = top_consumers(clientes, totals)
    assert len(top) == 10
    assert top[0]['nombre_completo'] == 'C14'


def test_spending_ignores_sales_without_client():
    ventas = [{'cliente_id': None, 'total': 5}, {'cliente_id': 'a', 'total': 2}, {'cliente_id': 'a', 'total': 3}]
    assert spending_by_client(ventas) == {'a': pytest.approx(5)}


def test_filter_clients_by_query(container):
    make_client(container, nombre_completo='Ana Perez', ci='555')
    make_client(container, nombre_completo='Luis Rojas', ci='777')
    assert [c['nombre_completo'] for c in container.client_service.list_clients(USER, 'luis')] == ['LUIS ROJAS']
