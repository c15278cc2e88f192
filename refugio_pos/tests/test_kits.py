import pytest

from conftest import USER, make_insumo
from refugio_pos.models import KitComponent
from refugio_pos.services.kit_service import KitService, calculate_kit_limits, compute_kit_cost


def _components(*pairs):
    return [KitComponent(insumo_id=i, nombre_insumo='', cantidad=q) for i, q in pairs]


def test_kit_limits_use_the_scarcest_component():
    insumos = {
        'ron': {'id': 'ron', 'nombre': 'RON', 'cantidad': 10},
        'coca': {'id': 'coca', 'nombre': 'COCA COLA', 'cantidad': 15},
    }
    assert calculate_kit_limits(_components(('ron', 1), ('coca', 2)), insumos) == (7, 'COCA COLA')


def test_kit_limits_edge_cases():
    insumos = {'ron': {'id': 'ron', 'nombre': 'RON', 'cantidad': 3}}
    assert calculate_kit_limits([], insumos) == (0, 'Sin componentes')
    assert calculate_kit_limits(_components(('hielo', 1)), insumos) == (0, 'Insumo ID hielo no encontrado')
    assert calculate_kit_limits(_components(('ron', 0)), insumos) == (0, 'N/A')
    assert calculate_kit_limits(_components(('ron', 4)), insumos) == (0, 'RON')


def test_kit_cost_uses_unit_cost_of_components():
    insumos = {
        'ron': {'id': 'ron', 'cantidad': 10, 'costo_compra': 50},
        'coca': {'id': 'coca', 'cantidad': 0, 'costo_compra': 20},
    }
    # Un insumo sin stock aporta costo 0
    assert compute_kit_cost(_components(('ron', 1), ('coca', 2)), insumos) == pytest.approx(5.0)


def test_create_kit_computes_snapshot(container):
    ron = make_insumo(container, nombre='Ron', cantidad=10, costo_compra=50)
    coca = make_insumo(container, nombre='Coca Cola', cantidad=15, costo_compra=15)

    result = container.kit_service.create_kit(
        USER, 'cuba libre',
        [{'insumo_id': ron['id'], 'cantidad': 1}, {'insumo_id': coca['id'], 'cantidad': 2}],
        50,
    )
    assert result['ok'], result
    kit = result['kit']
    assert kit['nombre'] == 'CUBA LIBRE'
    assert kit['costo_compra'] == pytest.approx(7.0)
    assert kit['precio_venta'] == pytest.approx(10.5)
    assert kit['ganancia'] == pytest.approx(3.5)
    assert kit['max_kits_posibles'] == 7
    assert kit['insumo_limitante'] == 'COCA COLA'
    assert kit['cantidad'] == 0
    assert [c['nombre_insumo'] for c in kit['componentes']] == ['RON', 'COCA COLA']


def test_list_kits_recomputes_buildable_without_touching_snapshot(container):
    ron = make_insumo(container, nombre='Ron', cantidad=10)
    result = container.kit_service.create_kit(USER, 'Trago', [{'insumo_id': ron['id'], 'cantidad': 2}], 10)
    kit_id = result['id']

    container.inventory_service.update_stock(USER, ron['id'], 10)
    [kit] = container.kit_service.list_kits(USER)
    assert kit['max_kits_posibles'] == 5
    assert kit['max_kits_actual'] == 10

    container.inventory_service.delete_insumo(USER, ron['id'])
    [kit] = container.kit_service.list_kits(USER)
    assert kit['max_kits_actual'] == 0
    assert kit['insumo_limitante_actual'] == f"Insumo ID {ron['id']} no encontrado"
    assert container.kit_repo.get(kit_id)['max_kits_posibles'] == 5


@pytest.mark.parametrize('nombre, componentes, message', [
    ('', [{'insumo_id': 'x', 'cantidad': 1}], 'obligatorio'),
    ('Combo 2', [{'insumo_id': 'x', 'cantidad': 1}], 'letras y espacios'),
    ('Combo', [], 'al menos un componente'),
    ('Combo', [{'insumo_id': '', 'cantidad': 1}], 'Seleccione un insumo'),
    ('Combo', [{'insumo_id': 'x', 'cantidad': 0}], 'mayor a 0'),
    ('Combo', [{'insumo_id': 'x', 'cantidad': 1}, {'insumo_id': 'x', 'cantidad': 2}], 'repetir'),
])
def test_validate_kit(nombre, componentes, message):
    error = KitService.validate_kit(nombre, componentes)
    assert error is not None
    assert message in error


def test_create_kit_rejects_invalid_without_writing(container):
    result = container.kit_service.create_kit(USER, 'Combo', [], 10)
    assert result['ok'] is False
    assert container.kit_repo.list_for_user(USER) == []


def test_kit_stock_and_delete(container):
    ron = make_insumo(container, nombre='Ron')
    kit_id = container.kit_service.create_kit(USER, 'Trago', [{'insumo_id': ron['id'], 'cantidad': 1}], 10)['id']

    result = container.kit_service.update_kit_stock(USER, kit_id, 3)
    assert result['ok']
    assert result['cantidad'] == pytest.approx(3)
    assert container.kit_service.update_kit_stock(USER, kit_id, -1)['ok'] is False

    assert container.kit_service.delete_kit(USER, kit_id)['ok']
    assert container.kit_service.get_kit(USER, kit_id) is None
    assert container.kit_service.delete_kit(USER, kit_id)['error_type'] == 'no_encontrado'
