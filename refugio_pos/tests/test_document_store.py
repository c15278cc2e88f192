import json
import os
import threading

import pytest

from refugio_pos.repositories import (
    SERVER_TIMESTAMP,
    JSONDocumentStore,
    StoreError,
    SubscriptionGroup,
    WriteOp,
)
from refugio_pos.repositories.interfaces import IDocumentStore


@pytest.fixture
def doc_store(tmp_path):
    return JSONDocumentStore(str(tmp_path))


def test_store_implements_interface(doc_store):
    assert isinstance(doc_store, IDocumentStore)


def test_create_get_and_server_timestamp(doc_store):
    doc_id = doc_store.create_one('insumos', {'nombre': 'HIELO', 'user_id': 'u', 'creado_en': SERVER_TIMESTAMP})
    doc = doc_store.get_one('insumos', doc_id)
    assert doc['id'] == doc_id
    assert doc['nombre'] == 'HIELO'
    # El marcador se reemplaza por un ISO con zona UTC
    assert doc['creado_en'].endswith('+00:00')


def test_query_filters_and_order(doc_store):
    doc_store.create_one('insumos', {'nombre': 'B', 'user_id': 'u', 'cantidad': 3})
    doc_store.create_one('insumos', {'nombre': 'A', 'user_id': 'u', 'cantidad': 1})
    doc_store.create_one('insumos', {'nombre': 'C', 'user_id': 'otro', 'cantidad': 7})

    docs = doc_store.query('insumos', [('user_id', '==', 'u')], order_by='nombre')
    assert [d['nombre'] for d in docs] == ['A', 'B']

    docs = doc_store.query('insumos', [('cantidad', '>=', 3)], order_by='cantidad', descending=True)
    assert [d['nombre'] for d in docs] == ['C', 'B']


def test_update_and_delete_missing_documents(doc_store):
    assert doc_store.update_one('insumos', 'nope', {'cantidad': 1}) is False
    assert doc_store.delete_one('insumos', 'nope') is False


def test_corrupt_collection_raises_store_error(tmp_path):
    with open(os.path.join(str(tmp_path), 'ventas.json'), 'w', encoding='utf-8') as f:
        f.write('{no es json')
    doc_store = JSONDocumentStore(str(tmp_path))
    with pytest.raises(StoreError):
        doc_store.query('ventas')


def test_atomic_abort_writes_nothing(doc_store):
    doc_id = doc_store.create_one('insumos', {'nombre': 'X', 'user_id': 'u', 'cantidad': 1})
    ref = ('insumos', doc_id)

    result = doc_store.run_atomic(
        [ref],
        lambda snap: 'no alcanza' if snap[ref]['cantidad'] < 5 else None,
        lambda snap: [WriteOp.update('insumos', doc_id, {'cantidad': 0}),
                      WriteOp.create('ventas', {'user_id': 'u'})],
    )

    assert not result.committed
    assert result.reason == 'no alcanza'
    assert doc_store.get_one('insumos', doc_id)['cantidad'] == 1
    assert doc_store.query('ventas') == []


def test_atomic_commit_applies_all_writes(doc_store, tmp_path):
    doc_id = doc_store.create_one('insumos', {'nombre': 'X', 'user_id': 'u', 'cantidad': 5})
    doc_store.set_one('comandosPendientes', 'u__Mesa 1', {'user_id': 'u', 'carrito': []})
    ref = ('insumos', doc_id)

    result = doc_store.run_atomic(
        [ref],
        lambda snap: None,
        lambda snap: [
            WriteOp.update('insumos', doc_id, {'cantidad': snap[ref]['cantidad'] - 2}),
            WriteOp.create('ventas', {'user_id': 'u', 'timestamp': SERVER_TIMESTAMP}),
            WriteOp.delete('comandosPendientes', 'u__Mesa 1'),
        ],
    )

    assert result.committed
    assert len(result.created_ids) == 1
    assert doc_store.get_one('insumos', doc_id)['cantidad'] == 3
    assert doc_store.get_one('comandosPendientes', 'u__Mesa 1') is None

    # Persistido en disco como {doc_id: campos}
    with open(os.path.join(str(tmp_path), 'ventas.json'), encoding='utf-8') as f:
        raw = json.load(f)
    assert list(raw.keys()) == result.created_ids


def test_subscription_receives_initial_and_changes(doc_store):
    snapshots = []
    sub = doc_store.subscribe('clientes', snapshots.append, [('user_id', '==', 'u')])

    doc_store.create_one('clientes', {'nombre_completo': 'ANA', 'user_id': 'u'})
    doc_store.create_one('clientes', {'nombre_completo': 'OTRO', 'user_id': 'x'})

    assert [len(s) for s in snapshots] == [0, 1, 1]
    assert sub.active

    sub.unsubscribe()
    doc_store.create_one('clientes', {'nombre_completo': 'LUIS', 'user_id': 'u'})
    assert len(snapshots) == 3
    assert doc_store.subscriber_count('clientes') == 0


def test_subscription_group_closes_everything(doc_store):
    group = SubscriptionGroup()
    with group:
        group.add(doc_store.subscribe('clientes', lambda docs: None))
        group.add(doc_store.subscribe('ventas', lambda docs: None))
        assert group.active_count == 2
        assert doc_store.subscriber_count() == 2
    assert group.active_count == 0
    assert doc_store.subscriber_count() == 0


def test_concurrent_atomic_decrements_never_oversell(doc_store):
    doc_id = doc_store.create_one('insumos', {'nombre': 'X', 'user_id': 'u', 'cantidad': 10})
    ref = ('insumos', doc_id)
    committed = []

    def take_one():
        result = doc_store.run_atomic(
            [ref],
            lambda snap: None if snap[ref]['cantidad'] >= 1 else 'agotado',
            lambda snap: [WriteOp.update('insumos', doc_id, {'cantidad': snap[ref]['cantidad'] - 1})],
        )
        if result.committed:
            committed.append(1)

    threads = [threading.Thread(target=take_one) for _ in range(25)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(committed) == 10
    assert doc_store.get_one('insumos', doc_id)['cantidad'] == 0
