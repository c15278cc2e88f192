import os

import pytest

# Sin logs de rendimiento durante los tests
os.environ.setdefault('REFUGIO_PROFILING', '0')

from refugio_pos.app_container import AppContainer
from refugio_pos.models import PosSession

USER = 'usuario-a'
OTHER_USER = 'usuario-b'


@pytest.fixture
def container(tmp_path):
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path / 'data'))
    yield c
    AppContainer.reset_instance()


@pytest.fixture
def store(container):
    return container.store


@pytest.fixture
def pos():
    return PosSession()


@pytest.fixture
def client(tmp_path):
    from refugio_pos.main import app
    AppContainer.reset_instance()
    app.config['TESTING'] = True
    app.config['DATA_DIR'] = str(tmp_path / 'api-data')
    with app.test_client() as c:
        yield c
    AppContainer.reset_instance()


def csrf_token(client):
    r = client.get('/api/session')
    assert r.status_code == 200
    return r.get_json()['csrf_token']


def make_insumo(container, user=USER, **overrides):
    data = {
        'nombre': 'Coca Cola',
        'categoria': 'BEBIDAS',
        'cantidad': 10,
        'stock_minimo': 2,
        'unidad_medida': 'UNIDAD',
        'costo_compra': 5,
        'ganancia': 100,
    }
    data.update(overrides)
    result = container.inventory_service.add_insumo(user, data)
    assert result['ok'], result
    return result['insumo']


def make_client(container, user=USER, **overrides):
    data = {
        'nombre_completo': 'Ana Perez',
        'ci': '1234567',
        'telefono': '70000000',
        'descuento': 0,
    }
    data.update(overrides)
    result = container.client_service.create_client(user, data)
    assert result['ok'], result
    return result['cliente']
