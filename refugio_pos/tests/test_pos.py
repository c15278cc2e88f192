import pytest

from conftest import OTHER_USER, USER, make_client, make_insumo
from refugio_pos.models import PosSession
from refugio_pos.services.cart_service import CartService


@pytest.fixture
def productos(container):
    cerveza = make_insumo(container, nombre='Cerveza', costo_compra=5, ganancia=50, precio_venta=10)
    agua = make_insumo(container, nombre='Agua', costo_compra=1, ganancia=50, precio_venta=2.5)
    return cerveza, agua


def test_catalog_lists_sellable_insumos_and_kits(container, productos):
    cerveza, _ = productos
    make_insumo(container, nombre='Hielo', sin_precio_venta=True)
    container.kit_service.create_kit(USER, 'Balde', [{'insumo_id': cerveza['id'], 'cantidad': 6}], 20)

    catalog = container.cart_service.get_catalog(USER)
    assert sorted((p.nombre, p.tipo.value) for p in catalog) == [
        ('AGUA', 'insumo'), ('BALDE', 'kit'), ('CERVEZA', 'insumo'),
    ]
    assert [p.nombre for p in container.cart_service.get_catalog(USER, 'bal')] == ['BALDE']
    assert container.cart_service.get_catalog(OTHER_USER) == []


def test_add_requires_selected_table(container, productos, pos):
    cerveza, _ = productos
    result = container.cart_service.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    assert result['ok'] is False
    assert pos.carrito == []


def test_cart_total(container, productos, pos):
    cerveza, agua = productos
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', agua['id'])

    assert [(l.nombre, l.cantidad) for l in pos.carrito] == [('CERVEZA', 2), ('AGUA', 1)]
    assert cart.compute_total(pos) == pytest.approx(22.50)


def test_increment_decrement_remove(container, productos, pos):
    cerveza, agua = productos
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', agua['id'])

    cart.increment_line(pos, cerveza['id'])
    assert pos.find_line(cerveza['id']).cantidad == 2

    cart.decrement_line(pos, agua['id'])
    assert pos.find_line(agua['id']) is None

    assert cart.remove_line(pos, cerveza['id'])['ok']
    assert pos.carrito == []
    assert cart.remove_line(pos, cerveza['id'])['error_type'] == 'no_encontrado'


def test_price_is_captured_when_added(container, productos, pos):
    cerveza, _ = productos
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    container.insumo_repo.update(cerveza['id'], {'precio_venta': 99})
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    assert cart.compute_total(pos) == pytest.approx(20.0)


def test_client_discount(container, productos, pos):
    cerveza, agua = productos
    cliente = make_client(container, descuento=10)
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', agua['id'])

    assert cart.attach_client(USER, pos, cliente['id'])['ok']
    totals = CartService.compute_totals(pos)
    assert totals['subtotal'] == pytest.approx(22.50)
    assert totals['descuento_monto'] == pytest.approx(2.25)
    assert totals['total'] == pytest.approx(20.25)

    cart.detach_client(pos)
    assert cart.compute_total(pos) == pytest.approx(22.50)
    assert cart.attach_client(USER, pos, 'no-existe')['error_type'] == 'no_encontrado'


def test_switching_tables_keeps_each_order(container, productos, pos):
    cerveza, agua = productos
    cliente = make_client(container, descuento=5)
    cart = container.cart_service

    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.attach_client(USER, pos, cliente['id'])

    cart.select_table(USER, pos, 'Mesa 2')
    assert pos.carrito == []
    assert pos.cliente_id is None
    cart.add_to_cart(USER, pos, 'insumo', agua['id'])

    cart.select_table(USER, pos, 'Mesa 1')
    assert [l.nombre for l in pos.carrito] == ['CERVEZA']
    assert pos.cliente_id == cliente['id']
    assert pos.descuento == pytest.approx(5)

    cart.select_table(USER, pos, 'Mesa 2')
    assert [l.nombre for l in pos.carrito] == ['AGUA']

    # Las comandas pendientes son por usuario
    assert container.comanda_repo.load(OTHER_USER, 'Mesa 1') is None


def test_pos_session_survives_serialization(container, productos, pos):
    cerveza, _ = productos
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 3')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])

    restored = PosSession.from_dict(pos.to_dict())
    assert restored.mesa_seleccionada == 'Mesa 3'
    assert restored.carrito[0].producto_id == cerveza['id']
    assert cart.compute_total(restored) == pytest.approx(10.0)


def test_add_table_and_unknown_table(container, pos):
    cart = container.cart_service
    assert pos.mesas == ['Mesa 1', 'Mesa 2', 'Mesa 3', 'Mesa 4']
    assert cart.add_table(pos) == 'Mesa 5'
    assert cart.add_table(pos) == 'Mesa 6'
    assert cart.select_table(USER, pos, 'Mesa 9')['error_type'] == 'no_encontrado'
    assert cart.select_table(USER, pos, 'Mesa 6')['ok']


def test_search_clients_by_name_or_ci(container):
    make_client(container, nombre_completo='Ana Perez', ci='111')
    make_client(container, nombre_completo='Luis Rojas', ci='222')
    assert [c['nombre_completo'] for c in container.cart_service.search_clients(USER, 'rojas')] == ['LUIS ROJAS']
    assert [c['nombre_completo'] for c in container.cart_service.search_clients(USER, '111')] == ['ANA PEREZ']


def test_discounted_total_rounds_to_cents(container, pos):
    diez = make_insumo(container, nombre='Trago', precio_venta=10)
    cinco = make_insumo(container, nombre='Refresco', precio_venta=5)
    cliente = make_client(container, descuento=10)
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 4')
    cart.add_to_cart(USER, pos, 'insumo', diez['id'])
    cart.increment_line(pos, diez['id'])
    cart.add_to_cart(USER, pos, 'insumo', cinco['id'])
    cart.attach_client(USER, pos, cliente['id'])
    assert cart.compute_total(pos) == pytest.approx(22.50)
