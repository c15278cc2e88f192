import pytest

from conftest import csrf_token


def _post(client, url, token, payload=None, method='post'):
    return getattr(client, method)(url, json=payload or {}, headers={'X-CSRF-Token': token})


def _crear_insumo(client, token, **overrides):
    data = {
        'nombre': 'Cerveza', 'categoria': 'BEBIDAS', 'cantidad': 5, 'stock_minimo': 1,
        'costo_compra': 20, 'ganancia': 50, 'precio_venta': 10,
    }
    data.update(overrides)
    r = _post(client, '/api/insumos', token, data)
    assert r.status_code == 201, r.get_json()
    return r.get_json()['id']


def test_session_assigns_anonymous_user(client):
    first = client.get('/api/session').get_json()
    second = client.get('/api/session').get_json()
    assert first['user_id'] == second['user_id']
    assert first['csrf_token']


def test_mutations_require_csrf(client):
    r = client.post('/api/insumos', json={'nombre': 'X'})
    assert r.status_code == 403
    assert r.get_json()['ok'] is False


def test_security_headers(client):
    r = client.get('/api/session')
    assert r.headers['X-Frame-Options'] == 'DENY'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_validation_error_is_400(client):
    token = csrf_token(client)
    r = _post(client, '/api/insumos', token, {'nombre': '', 'categoria': 'X'})
    assert r.status_code == 400
    assert r.get_json()['error_type'] == 'validacion'


def test_full_sale_flow(client):
    token = csrf_token(client)
    cerveza_id = _crear_insumo(client, token)
    agua_id = _crear_insumo(client, token, nombre='Agua', precio_venta=2.5)

    assert _post(client, '/api/pos/mesas/Mesa%201/seleccionar', token).status_code == 200
    _post(client, '/api/pos/carrito', token, {'tipo': 'insumo', 'producto_id': cerveza_id})
    _post(client, f'/api/pos/carrito/{cerveza_id}/incrementar', token)
    r = _post(client, '/api/pos/carrito', token, {'tipo': 'insumo', 'producto_id': agua_id})
    assert r.get_json()['pos']['total'] == pytest.approx(22.50)

    # El estado del punto de venta vive en la sesión
    state = client.get('/api/pos').get_json()['pos']
    assert state['mesa_seleccionada'] == 'Mesa 1'
    assert state['items_count'] == 3

    r = _post(client, '/api/pos/cobrar', token, {'metodo_pago': 'mixto', 'pagos': {'efectivo': 20, 'qr': 2}})
    assert r.status_code == 400

    r = _post(client, '/api/pos/cobrar', token, {'metodo_pago': 'mixto', 'pagos': {'efectivo': 20, 'qr': 2.5}})
    assert r.status_code == 201, r.get_json()
    venta_id = r.get_json()['venta_id']

    assert client.get(f'/api/ventas/{venta_id}').get_json()['venta']['total'] == pytest.approx(22.50)
    assert client.get('/api/ventas').get_json()['count'] == 1
    assert client.get('/api/pos').get_json()['pos']['carrito'] == []

    insumos = {i['nombre']: i['cantidad'] for i in client.get('/api/insumos').get_json()['insumos']}
    assert insumos == {'CERVEZA': 3, 'AGUA': 4}


def test_insufficient_stock_is_409(client):
    token = csrf_token(client)
    cerveza_id = _crear_insumo(client, token, cantidad=1)
    _post(client, '/api/pos/mesas/Mesa%202/seleccionar', token)
    _post(client, '/api/pos/carrito', token, {'tipo': 'insumo', 'producto_id': cerveza_id})
    _post(client, f'/api/pos/carrito/{cerveza_id}/incrementar', token)

    r = _post(client, '/api/pos/cobrar', token, {'metodo_pago': 'tarjeta'})
    assert r.status_code == 409
    assert 'Cantidad insuficiente para: CERVEZA' in r.get_json()['error']
    assert len(client.get('/api/pos').get_json()['pos']['carrito']) == 1


def test_delete_requires_confirmation(client):
    token = csrf_token(client)
    insumo_id = _crear_insumo(client, token)

    r = _post(client, f'/api/insumos/{insumo_id}', token, method='delete')
    assert r.status_code == 400

    r = _post(client, f'/api/insumos/{insumo_id}', token, {'confirmar': True}, method='delete')
    assert r.status_code == 200

    r = _post(client, f'/api/insumos/{insumo_id}', token, {'confirmar': True}, method='delete')
    assert r.status_code == 404


def test_data_is_isolated_per_session(client):
    from refugio_pos.main import app

    token = csrf_token(client)
    _crear_insumo(client, token)

    with app.test_client() as other:
        assert other.get('/api/insumos').get_json()['count'] == 0
    assert client.get('/api/insumos').get_json()['count'] == 1


def test_clients_expenses_and_report(client):
    token = csrf_token(client)
    r = _post(client, '/api/clientes', token, {
        'nombre_completo': 'Ana Perez', 'ci': '123', 'telefono': '700', 'descuento': 10,
    })
    assert r.status_code == 201

    r = _post(client, '/api/egresos', token, {
        'tipo': 'servicio', 'nombre_servicio': 'Luz', 'total': 30, 'quien_pago': 'Caja',
    })
    assert r.status_code == 201

    r = _post(client, '/api/gastos-diarios', token, {
        'numero_factura': '5', 'pagado_por': 'Caja', 'productos': [{'nombre': 'Hielo', 'precio': 5, 'cantidad': 2}],
    })
    assert r.status_code == 201

    assert client.get('/api/clientes').get_json()['clientes'][0]['total_gastado'] == 0
    assert client.get('/api/egresos?tipo=servicio').get_json()['count'] == 1
    diarios = client.get('/api/gastos-diarios').get_json()
    assert diarios['count'] == 1
    assert 'Caja' in diarios['pagadores']

    report = client.get('/api/reporte').get_json()
    assert report['inversion'] == pytest.approx(40)
    assert report['saldo_neto'] == pytest.approx(-40)

    logs = client.get('/api/auditoria?tipo=EGRESO').get_json()
    assert logs['count'] == 2


def test_unknown_sale_is_404(client):
    r = client.get('/api/ventas/no-existe')
    assert r.status_code == 404
    assert r.get_json()['error_type'] == 'no_encontrado'


def test_performance_summary(client):
    data = client.get('/api/sistema/rendimiento').get_json()
    assert data['ok'] is True
    assert isinstance(data['funciones'], dict)
    assert set(data['logs']) == {'performance', 'slow_routes', 'slow_functions'}
