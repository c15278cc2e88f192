import threading

import pytest

from conftest import USER, make_client, make_insumo
from refugio_pos.models import PosSession
from refugio_pos.services.payment_service import PaymentService


# ==============================================================================
# VALIDACIÓN DE PAGOS
# ==============================================================================

@pytest.fixture
def payments():
    return PaymentService()


def test_split_payment_must_match_total(payments):
    ok = payments.validate_payment(22.50, 'mixto', {'efectivo': 20, 'qr': 2.50})
    assert ok['ok']
    assert ok['pagos'] == {'efectivo': 20.0, 'qr': 2.5}

    short = payments.validate_payment(22.50, 'mixto', {'efectivo': 20, 'qr': 2})
    assert short['ok'] is False
    assert short['error_type'] == 'validacion'

    # Montos con más de dos decimales se comparan tal como se declararon
    assert payments.validate_payment(22.50, 'mixto', {'efectivo': 20.004, 'tarjeta': 2.5})['ok'] is False
    assert payments.validate_payment(22.50, 'mixto', {'efectivo': 19.996, 'tarjeta': 2.5})['ok'] is False

    assert payments.validate_payment(22.50, 'mixto', {'efectivo': 20, 'cheque': 2.5})['ok'] is False
    assert payments.validate_payment(22.50, 'mixto', {})['ok'] is False


def test_cash_returns_change(payments):
    result = payments.validate_payment(22.50, 'efectivo', {'efectivo': 50})
    assert result['ok']
    assert result['cambio'] == pytest.approx(27.50)

    assert payments.validate_payment(22.50, 'efectivo', {'efectivo': 20})['ok'] is False
    # Sin monto se asume pago exacto
    assert payments.validate_payment(22.50, 'efectivo')['cambio'] == pytest.approx(0)


def test_non_cash_must_be_exact(payments):
    assert payments.validate_payment(22.50, 'tarjeta', {'tarjeta': 22.50})['ok']
    assert payments.validate_payment(22.50, 'QR')['ok']
    assert payments.validate_payment(22.50, 'transferencia', {'transferencia': 25})['ok'] is False
    assert payments.validate_payment(22.50, 'bitcoin')['ok'] is False


# ==============================================================================
# COBRO
# ==============================================================================

@pytest.fixture
def mesa_lista(container, pos):
    """Mesa 1 con 2 cervezas y 1 agua (total 22.50)."""
    cerveza = make_insumo(container, nombre='Cerveza', cantidad=5, precio_venta=10)
    agua = make_insumo(container, nombre='Agua', cantidad=3, precio_venta=2.5)
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', cerveza['id'])
    cart.add_to_cart(USER, pos, 'insumo', agua['id'])
    return cerveza, agua


def test_checkout_commits_everything(container, pos, mesa_lista):
    cerveza, agua = mesa_lista
    # Guardar la comanda de la mesa para verificar que se elimina
    container.cart_service.select_table(USER, pos, 'Mesa 2')
    container.cart_service.select_table(USER, pos, 'Mesa 1')
    assert container.comanda_repo.load(USER, 'Mesa 1') is not None

    result = container.sales_service.checkout(USER, pos, 'efectivo', {'efectivo': 50})
    assert result['ok'], result
    assert result['total'] == pytest.approx(22.50)
    assert result['cambio'] == pytest.approx(27.50)

    assert container.insumo_repo.get(cerveza['id'])['cantidad'] == pytest.approx(3)
    assert container.insumo_repo.get(agua['id'])['cantidad'] == pytest.approx(2)

    venta = container.sales_service.get_sale(USER, result['venta_id'])
    assert venta['mesa_id'] == 'Mesa 1'
    assert venta['total'] == pytest.approx(22.50)
    assert venta['metodo_pago'] == 'efectivo'
    assert venta['timestamp']
    assert len(venta['articulos']) == 2

    assert container.comanda_repo.load(USER, 'Mesa 1') is None
    assert pos.carrito == []
    assert pos.mesa_seleccionada is None
    assert container.audit_service.search_logs(USER, 'Mesa 1', 'VENTA')


def test_checkout_with_client_discount(container, pos, mesa_lista):
    cliente = make_client(container, descuento=10)
    container.cart_service.attach_client(USER, pos, cliente['id'])

    result = container.sales_service.checkout(USER, pos, 'mixto', {'efectivo': 20, 'tarjeta': 0.25})
    assert result['ok'], result
    venta = container.sales_service.get_sale(USER, result['venta_id'])
    assert venta['cliente_id'] == cliente['id']
    assert venta['subtotal'] == pytest.approx(22.50)
    assert venta['total'] == pytest.approx(20.25)


def test_invalid_payment_does_not_touch_store(container, pos, mesa_lista):
    cerveza, _ = mesa_lista
    result = container.sales_service.checkout(USER, pos, 'mixto', {'efectivo': 20, 'qr': 2})
    assert result['ok'] is False
    assert container.sales_repo.list_for_user(USER) == []
    assert container.insumo_repo.get(cerveza['id'])['cantidad'] == pytest.approx(5)
    assert len(pos.carrito) == 2


def test_checkout_needs_table_and_items(container, pos):
    assert container.sales_service.checkout(USER, pos, 'efectivo')['ok'] is False
    container.cart_service.select_table(USER, pos, 'Mesa 1')
    result = container.sales_service.checkout(USER, pos, 'efectivo')
    assert result['error'] == 'El carrito está vacío.'


def test_stock_depleted_between_add_and_checkout_aborts(container, pos, mesa_lista):
    cerveza, agua = mesa_lista
    # Otra caja deja 1 cerveza antes del cobro
    container.insumo_repo.update(cerveza['id'], {'cantidad': 1})

    result = container.sales_service.checkout(USER, pos, 'tarjeta')
    assert result['ok'] is False
    assert result['error_type'] == 'stock_insuficiente'
    assert result['error'] == 'Cantidad insuficiente para: CERVEZA. Disponible: 1'

    # Nada se escribió y el carrito sigue intacto
    assert container.insumo_repo.get(cerveza['id'])['cantidad'] == pytest.approx(1)
    assert container.insumo_repo.get(agua['id'])['cantidad'] == pytest.approx(3)
    assert container.sales_repo.list_for_user(USER) == []
    assert pos.mesa_seleccionada == 'Mesa 1'
    assert len(pos.carrito) == 2


def test_deleted_product_aborts_checkout(container, pos, mesa_lista):
    _, agua = mesa_lista
    container.inventory_service.delete_insumo(USER, agua['id'])
    result = container.sales_service.checkout(USER, pos, 'tarjeta')
    assert result['error'] == 'El documento de inventario para AGUA no existe.'


def test_selling_a_kit_uses_kit_stock(container, pos):
    ron = make_insumo(container, nombre='Ron', cantidad=10)
    kit_id = container.kit_service.create_kit(USER, 'Cuba', [{'insumo_id': ron['id'], 'cantidad': 1}], 50)['id']
    cart = container.cart_service
    cart.select_table(USER, pos, 'Mesa 1')
    cart.add_to_cart(USER, pos, 'kit', kit_id)

    result = container.sales_service.checkout(USER, pos, 'efectivo')
    assert result['error'] == 'Cantidad insuficiente para: CUBA. Disponible: 0'

    container.kit_service.update_kit_stock(USER, kit_id, 2)
    assert container.sales_service.checkout(USER, pos, 'efectivo')['ok']
    assert container.kit_repo.get(kit_id)['cantidad'] == pytest.approx(1)
    # El kit armado ya descontó sus insumos al armarse
    assert container.insumo_repo.get(ron['id'])['cantidad'] == pytest.approx(10)


def test_two_registers_race_for_the_last_unit(container):
    ultima = make_insumo(container, nombre='Ultima', cantidad=1, precio_venta=10)
    sessions = []
    for mesa in ('Mesa 1', 'Mesa 2'):
        pos = PosSession()
        container.cart_service.select_table(USER, pos, mesa)
        container.cart_service.add_to_cart(USER, pos, 'insumo', ultima['id'])
        sessions.append(pos)

    results = []
    barrier = threading.Barrier(len(sessions))

    def cobrar(pos):
        barrier.wait()
        results.append(container.sales_service.checkout(USER, pos, 'qr'))

    threads = [threading.Thread(target=cobrar, args=(pos,)) for pos in sessions]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(r['ok'] for r in results) == [False, True]
    assert container.insumo_repo.get(ultima['id'])['cantidad'] == pytest.approx(0)
    assert len(container.sales_repo.list_for_user(USER)) == 1
