from __future__ import annotations

from types import SimpleNamespace

import pytest


class FakeSnapshot:
    def __init__(self, doc_id: str, data: dict | None):
        self.id = doc_id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return dict(self._data) if self._data is not None else None


class FakeDocumentRef:
    def __init__(self, store: dict[str, dict], doc_id: str):
        self._store = store
        self.id = doc_id

    def get(self, transaction=None):  # noqa: ARG002
        return FakeSnapshot(self.id, self._store.get(self.id))

    def set(self, data: dict) -> None:
        self._store[self.id] = dict(data)

    def update(self, data: dict) -> None:
        if self.id not in self._store:
            raise KeyError(f"No document to update: {self.id}")
        self._store[self.id].update(data)

    def delete(self) -> None:
        self._store.pop(self.id, None)


class FakeQuery:
    def __init__(self, store: dict[str, dict], filters: list[tuple[str, str, object]]):
        self._store = store
        self._filters = filters

    def where(self, field: str, op: str, value):
        return FakeQuery(self._store, [*self._filters, (field, op, value)])

    def limit(self, *_):
        return self

    def stream(self):
        for doc_id, data in list(self._store.items()):
            if all(op == "==" and data.get(field) == value for field, op, value in self._filters):
                yield FakeSnapshot(doc_id, data)


class FakeCollection:
    def __init__(self, store: dict[str, dict]):
        self.docs = store
        self._counter = 0

    def document(self, doc_id: str | None = None):
        if doc_id is None:
            self._counter += 1
            doc_id = f"doc{self._counter}"
        return FakeDocumentRef(self.docs, doc_id)

    def where(self, field: str, op: str, value):
        return FakeQuery(self.docs, [(field, op, value)])

    def limit(self, *_):
        return FakeQuery(self.docs, [])


class FakeTransaction:
    def set(self, doc_ref: FakeDocumentRef, data: dict) -> None:
        doc_ref.set(data)


class FakeFirestoreClient:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection({}))

    def transaction(self) -> FakeTransaction:
        return FakeTransaction()


@pytest.fixture
def fake_firestore(monkeypatch):
    """Route record_store's Firestore access to an in-memory client."""

    import record_store

    client = FakeFirestoreClient()
    monkeypatch.setattr(record_store, "get_firestore_client", lambda: client)
    monkeypatch.setattr(
        record_store,
        "firestore",
        SimpleNamespace(transactional=lambda fn: fn),
    )
    return client
