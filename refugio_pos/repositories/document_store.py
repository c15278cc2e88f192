# ==============================================================================
# ALMACÉN DE DOCUMENTOS - Colecciones JSON con suscripciones y transacciones
# ==============================================================================
# Implementación concreta de IDocumentStore sobre archivos JSON:
#   - Lecturas puntuales y consultas filtradas por colección
#   - Suscripciones en vivo (snapshot inicial + snapshot tras cada cambio)
#   - Operación atómica condicional (read set + predicado + write set)
#
# Todas las lecturas para escritura y todas las escrituras se serializan con
# el lock global de BaseRepository. La operación atómica retiene el lock
# desde la lectura hasta la última escritura.
# ==============================================================================

import copy
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from refugio_pos.repositories.base import BaseRepository, CollectionFile, StoreError


# ==============================================================================
# TIPOS AUXILIARES
# ==============================================================================

class _ServerTimestamp:
    """Marcador que el almacén reemplaza por la hora UTC al escribir."""

    def __repr__(self) -> str:
        return 'SERVER_TIMESTAMP'


SERVER_TIMESTAMP = _ServerTimestamp()

# (campo, operador, valor)
Filter = Tuple[str, str, Any]
DocRef = Tuple[str, str]

_OPERATORS = {
    '==': lambda a, b: a == b,
    '!=': lambda a, b: a != b,
    '<': lambda a, b: a is not None and a < b,
    '<=': lambda a, b: a is not None and a <= b,
    '>': lambda a, b: a is not None and a > b,
    '>=': lambda a, b: a is not None and a >= b,
}


@dataclass
class WriteOp:
    """
    Escritura dentro de una operación atómica.

    kind: 'create' | 'set' | 'update' | 'delete'
    """
    kind: str
    collection: str
    doc_id: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, collection: str, fields: Dict[str, Any]) -> 'WriteOp':
        return cls('create', collection, None, fields)

    @classmethod
    def set(cls, collection: str, doc_id: str, fields: Dict[str, Any]) -> 'WriteOp':
        return cls('set', collection, doc_id, fields)

    @classmethod
    def update(cls, collection: str, doc_id: str, fields: Dict[str, Any]) -> 'WriteOp':
        return cls('update', collection, doc_id, fields)

    @classmethod
    def delete(cls, collection: str, doc_id: str) -> 'WriteOp':
        return cls('delete', collection, doc_id)


@dataclass
class AtomicResult:
    """Resultado de run_atomic: committed o abortada con motivo."""
    committed: bool
    reason: str = ''
    created_ids: List[str] = field(default_factory=list)


# ==============================================================================
# SUSCRIPCIONES
# ==============================================================================

class Subscription:
    """
    Handle de una suscripción en vivo.

    Se libera con unsubscribe() o al salir de un bloque `with`. Después de
    liberada, cualquier entrega pendiente se descarta.
    """

    def __init__(
        self,
        store: 'JSONDocumentStore',
        collection: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        filters: Optional[List[Filter]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._store = store
        self.collection = collection
        self.filters = list(filters or [])
        self._callback = callback
        self._on_error = on_error
        self._lock = threading.Lock()
        self.active = True

    def deliver(self, docs: List[Dict[str, Any]]) -> None:
        with self._lock:
            if not self.active:
                return
        self._callback(docs)

    def fail(self, error: Exception) -> None:
        with self._lock:
            if not self.active:
                return
        if self._on_error is None:
            raise error
        self._on_error(error)

    def unsubscribe(self) -> None:
        """Libera la suscripción (idempotente)."""
        with self._lock:
            if not self.active:
                return
            self.active = False
        self._store._remove_subscription(self)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.unsubscribe()


class SubscriptionGroup:
    """Conjunto de suscripciones que se liberan juntas."""

    def __init__(self):
        self._subscriptions: List[Subscription] = []

    def add(self, subscription: Subscription) -> Subscription:
        self._subscriptions.append(subscription)
        return subscription

    @property
    def active_count(self) -> int:
        return sum(1 for s in self._subscriptions if s.active)

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def __enter__(self) -> 'SubscriptionGroup':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# ==============================================================================
# ALMACÉN
# ==============================================================================

class JSONDocumentStore:
    """
    Almacén de documentos respaldado por un archivo JSON por colección.

    Los documentos se devuelven como diccionarios con la clave 'id'
    agregada; el id no se guarda dentro de los campos.

    Uso:
        store = JSONDocumentStore('/ruta/data')
        doc_id = store.create_one('insumos', {'nombre': 'AGUA', ...})
        store.update_one('insumos', doc_id, {'cantidad': 10})
    """

    def __init__(self, data_dir: str):
        """
        Args:
            data_dir: Directorio donde se guardan los archivos de colecciones
        """
        self.data_dir = data_dir
        self._files: Dict[str, CollectionFile] = {}
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._subs_lock = threading.Lock()

    @property
    def lock(self):
        return BaseRepository._file_lock

    # =========================================================================
    # UTILIDADES INTERNAS
    # =========================================================================

    def _file(self, collection: str) -> CollectionFile:
        with self.lock:
            if collection not in self._files:
                self._files[collection] = CollectionFile(self.data_dir, collection)
            return self._files[collection]

    @staticmethod
    def _new_id() -> str:
        return uuid.uuid4().hex[:20]

    @staticmethod
    def _resolve(fields: Dict[str, Any]) -> Dict[str, Any]:
        """Reemplaza SERVER_TIMESTAMP por la hora UTC en formato ISO."""
        now = None
        resolved = {}
        for key, value in fields.items():
            if value is SERVER_TIMESTAMP:
                if now is None:
                    now = datetime.now(timezone.utc).isoformat()
                value = now
            resolved[key] = value
        return resolved

    @staticmethod
    def _with_id(doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        doc = copy.deepcopy(fields)
        doc['id'] = doc_id
        return doc

    @staticmethod
    def _strip_id(fields: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in fields.items() if k != 'id'}

    @staticmethod
    def _matches(doc: Dict[str, Any], filters: Iterable[Filter]) -> bool:
        for field_name, op, value in filters:
            if op not in _OPERATORS:
                raise ValueError(f"Operador de filtro no soportado: {op}")
            try:
                if not _OPERATORS[op](doc.get(field_name), value):
                    return False
            except TypeError:
                return False
        return True

    # =========================================================================
    # LECTURAS
    # =========================================================================

    def get_one(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Lectura puntual.

        Returns:
            Documento con 'id' o None si no existe
        """
        if not doc_id:
            return None
        data = self._file(collection).read_all()
        fields = data.get(doc_id)
        if fields is None:
            return None
        return self._with_id(doc_id, fields)

    def query(
        self,
        collection: str,
        filters: Optional[List[Filter]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Consulta filtrada sobre una colección.

        Args:
            collection: Nombre de la colección
            filters: Lista de (campo, operador, valor); todos deben cumplirse
            order_by: Campo de ordenamiento (None = orden de inserción)
            descending: Orden descendente

        Returns:
            Lista de documentos con 'id'
        """
        data = self._file(collection).read_all()
        docs = [
            self._with_id(doc_id, fields)
            for doc_id, fields in data.items()
            if self._matches(fields, filters or [])
        ]
        if order_by:
            present = [d for d in docs if d.get(order_by) is not None]
            missing = [d for d in docs if d.get(order_by) is None]
            present.sort(key=lambda d: d[order_by], reverse=descending)
            docs = present + missing
        return docs

    # =========================================================================
    # ESCRITURAS
    # =========================================================================

    def create_one(self, collection: str, fields: Dict[str, Any]) -> str:
        """Crea un documento con ID generado. Retorna el ID."""
        with self.lock:
            file = self._file(collection)
            data = file.read_all()
            doc_id = self._new_id()
            data[doc_id] = self._resolve(self._strip_id(fields))
            file.write_all(data)
        self._notify([collection])
        return doc_id

    def set_one(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        merge: bool = False,
    ) -> None:
        """Crea o reemplaza un documento con ID conocido (merge opcional)."""
        with self.lock:
            file = self._file(collection)
            data = file.read_all()
            resolved = self._resolve(self._strip_id(fields))
            if merge and doc_id in data:
                data[doc_id].update(resolved)
            else:
                data[doc_id] = resolved
            file.write_all(data)
        self._notify([collection])

    def update_one(self, collection: str, doc_id: str, partial: Dict[str, Any]) -> bool:
        """
        Actualización parcial.

        Returns:
            False si el documento no existe
        """
        with self.lock:
            file = self._file(collection)
            data = file.read_all()
            if doc_id not in data:
                return False
            data[doc_id].update(self._resolve(self._strip_id(partial)))
            file.write_all(data)
        self._notify([collection])
        return True

    def delete_one(self, collection: str, doc_id: str) -> bool:
        """
        Elimina un documento.

        Returns:
            False si el documento no existía
        """
        with self.lock:
            file = self._file(collection)
            data = file.read_all()
            if data.pop(doc_id, None) is None:
                return False
            file.write_all(data)
        self._notify([collection])
        return True

    # =========================================================================
    # OPERACIÓN ATÓMICA CONDICIONAL
    # =========================================================================

    def run_atomic(
        self,
        read_set: List[DocRef],
        predicate: Callable[[Dict[DocRef, Optional[Dict[str, Any]]]], Optional[str]],
        build_writes: Callable[[Dict[DocRef, Optional[Dict[str, Any]]]], List[WriteOp]],
    ) -> AtomicResult:
        """
        Ejecuta lectura + verificación + escrituras sin interferencia.

        Args:
            read_set: Documentos (colección, id) a leer
            predicate: Recibe el snapshot {ref: doc|None}; retorna None para
                continuar o un mensaje para abortar
            build_writes: Recibe el snapshot y retorna las escrituras

        Returns:
            AtomicResult. Si se aborta, nada se escribe.

        Raises:
            StoreError: Si falla la lectura o la escritura. Las colecciones
                ya escritas se restauran antes de propagar el error.
        """
        with self.lock:
            snapshot: Dict[DocRef, Optional[Dict[str, Any]]] = {}
            for ref in read_set:
                snapshot[ref] = self.get_one(*ref)

            reason = predicate(snapshot)
            if reason:
                return AtomicResult(committed=False, reason=reason)

            writes = build_writes(snapshot)
            collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
            for op in writes:
                if op.collection not in collections:
                    collections[op.collection] = self._file(op.collection).read_all()
            originals = copy.deepcopy(collections)

            created_ids = []
            for op in writes:
                data = collections[op.collection]
                if op.kind == 'create':
                    doc_id = self._new_id()
                    data[doc_id] = self._resolve(self._strip_id(op.fields))
                    created_ids.append(doc_id)
                elif op.kind == 'set':
                    data[op.doc_id] = self._resolve(self._strip_id(op.fields))
                elif op.kind == 'update':
                    if op.doc_id not in data:
                        return AtomicResult(
                            committed=False,
                            reason=f"El documento {op.collection}/{op.doc_id} no existe."
                        )
                    data[op.doc_id].update(self._resolve(self._strip_id(op.fields)))
                elif op.kind == 'delete':
                    data.pop(op.doc_id, None)
                else:
                    raise ValueError(f"Tipo de escritura desconocido: {op.kind}")

            written = []
            try:
                for name, data in collections.items():
                    self._file(name).write_all(data)
                    written.append(name)
            except StoreError:
                for name in written:
                    self._file(name).write_all(originals[name])
                raise

        self._notify(collections.keys())
        return AtomicResult(committed=True, created_ids=created_ids)

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(
        self,
        collection: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        filters: Optional[List[Filter]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> Subscription:
        """
        Se suscribe a una colección filtrada.

        El callback recibe el snapshot completo de inmediato y luego después
        de cada cambio confirmado en la colección.

        Returns:
            Handle de la suscripción (liberar con unsubscribe())
        """
        subscription = Subscription(self, collection, callback, filters, on_error)
        with self._subs_lock:
            self._subscriptions.setdefault(collection, []).append(subscription)
        self._deliver(subscription)
        return subscription

    def subscriber_count(self, collection: str = None) -> int:
        with self._subs_lock:
            if collection is not None:
                return len(self._subscriptions.get(collection, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def _remove_subscription(self, subscription: Subscription) -> None:
        with self._subs_lock:
            subs = self._subscriptions.get(subscription.collection, [])
            if subscription in subs:
                subs.remove(subscription)

    def _deliver(self, subscription: Subscription) -> None:
        try:
            docs = self.query(subscription.collection, subscription.filters)
        except StoreError as e:
            subscription.fail(e)
            return
        subscription.deliver(docs)

    def _notify(self, collections: Iterable[str]) -> None:
        for collection in list(collections):
            with self._subs_lock:
                subs = list(self._subscriptions.get(collection, []))
            for subscription in subs:
                self._deliver(subscription)
