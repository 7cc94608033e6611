import copy
import itertools
import os

import pytest

os.environ.setdefault("FLASK_ENV", "test")
os.environ.setdefault("RATE_LIMIT_FIRESTORE_ENABLED", "0")


def _get_path(data, dotted):
    current = data
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _set_path(data, dotted, value):
    parts = dotted.split(".")
    current = data
    for part in parts[:-1]:
        current = current.setdefault(part, {})
    current[parts[-1]] = value


def _deep_merge(target, updates):
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


_OPS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a is not None and a < b,
    "<=": lambda a, b: a is not None and a <= b,
    ">": lambda a, b: a is not None and a > b,
    ">=": lambda a, b: a is not None and a >= b,
    "array_contains": lambda a, b: isinstance(a, list) and b in a,
}


class FakeSnapshot:
    def __init__(self, ref, data):
        self.reference = ref
        self.id = ref.id
        self._data = copy.deepcopy(data) if data is not None else None

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, store, path, doc_id):
        self._store = store
        self.path = path
        self.id = doc_id

    def get(self, transaction=None):
        return FakeSnapshot(self, self._store.docs.get(self.path))

    def set(self, data, merge=False):
        existing = self._store.docs.get(self.path)
        if merge and existing is not None:
            _deep_merge(existing, data)
        else:
            self._store.docs[self.path] = copy.deepcopy(data)

    def update(self, updates):
        existing = self._store.docs.get(self.path)
        if existing is None:
            raise KeyError(f"No document to update: {self.path}")
        for key, value in updates.items():
            _set_path(existing, key, copy.deepcopy(value))

    def delete(self):
        self._store.docs.pop(self.path, None)

    def collection(self, name):
        return FakeCollection(self._store, f"{self.path}/{name}")


class FakeQuery:
    def __init__(self, store, path, filters=None, order=None, limit_count=None):
        self._store = store
        self._path = path
        self._filters = list(filters or [])
        self._order = order
        self._limit = limit_count

    def where(self, *args, **kwargs):
        if "filter" in kwargs:
            raise TypeError("filter keyword unsupported")
        field_path, op_string, value = args
        return FakeQuery(self._store, self._path, self._filters + [(field_path, op_string, value)], self._order, self._limit)

    def order_by(self, field_path, direction="ASCENDING"):
        return FakeQuery(self._store, self._path, self._filters, (field_path, direction), self._limit)

    def limit(self, count):
        return FakeQuery(self._store, self._path, self._filters, self._order, count)

    def stream(self):
        prefix = self._path + "/"
        rows = []
        for path, data in list(self._store.docs.items()):
            if not path.startswith(prefix) or "/" in path[len(prefix):]:
                continue
            if all(_OPS[op](_get_path(data, field), value) for field, op, value in self._filters):
                rows.append((path, data))
        if self._order:
            field_path, direction = self._order
            rows.sort(key=lambda row: _get_path(row[1], field_path) or 0, reverse=direction == "DESCENDING")
        if self._limit is not None:
            rows = rows[: self._limit]
        return iter(FakeSnapshot(FakeDocumentRef(self._store, path, path.rsplit("/", 1)[1]), data) for path, data in rows)


class FakeCollection(FakeQuery):
    def __init__(self, store, path):
        super().__init__(store, path)

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"auto{next(self._store.ids)}"
        return FakeDocumentRef(self._store, f"{self._path}/{doc_id}", doc_id)

    def add(self, data):
        ref = self.document()
        ref.set(data)
        return None, ref


class FakeTransaction:
    def set(self, ref, data, merge=False):
        ref.set(data, merge=merge)

    def update(self, ref, updates):
        ref.update(updates)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.ids = itertools.count(1)

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction()

    def data(self, path):
        return self.docs.get(path)


class FakeFirestoreModule:
    class Query:
        DESCENDING = "DESCENDING"
        ASCENDING = "ASCENDING"

    @staticmethod
    def transactional(func):
        def wrapper(transaction, *args, **kwargs):
            return func(transaction, *args, **kwargs)

        return wrapper


@pytest.fixture()
def fake_db():
    return FakeFirestore()


@pytest.fixture()
def fake_firestore_module():
    return FakeFirestoreModule()
