"""
Shared fixtures for the marketplace tests.

Provides:
- An in-memory Firestore fake understanding where(filter=FieldFilter), limit,
  stream and document().get()
- A mocked Booking Provider client and a TestClient wired to it
"""

from typing import Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from models.booking import Booking
from services import tenant


# =============================================================================
# Firestore fake
# =============================================================================


class FakeDoc:
    def __init__(self, doc_id: str, data: Optional[dict]):
        self.id     = doc_id
        self._data  = data
        self.exists = data is not None

    def to_dict(self):
        return dict(self._data) if self._data is not None else None


def _match(data: dict, f) -> bool:
    value  = data.get(f.field_path)
    target = f.value
    op     = f.op_string
    if op == "==":
        return value == target
    if op == ">":
        return value is not None and value > target
    if op == "array_contains":
        return target in (value or [])
    if op == "array_contains_any":
        return bool(set(value or []) & set(target))
    raise NotImplementedError(op)


class FakeQuery:
    def __init__(self, docs: Dict[str, dict], filters=None, limit_to: Optional[int] = None):
        self._docs     = docs
        self._filters  = filters or []
        self._limit_to = limit_to

    def where(self, filter=None):
        return FakeQuery(self._docs, self._filters + [filter], self._limit_to)

    def limit(self, n: int):
        return FakeQuery(self._docs, self._filters, n)

    def stream(self):
        out = [
            FakeDoc(doc_id, data)
            for doc_id, data in self._docs.items()
            if all(_match(data, f) for f in self._filters)
        ]
        return iter(out[: self._limit_to] if self._limit_to is not None else out)


class FakeDocumentRef:
    def __init__(self, docs: Dict[str, dict], doc_id: str):
        self._docs = docs
        self.id    = doc_id

    def get(self):
        return FakeDoc(self.id, self._docs.get(self.id))


class FakeCollection(FakeQuery):
    def document(self, doc_id: str):
        return FakeDocumentRef(self._docs, doc_id)


class FakeFirestore:
    def __init__(self):
        self.data: Dict[str, Dict[str, dict]] = {}

    def add(self, collection: str, doc_id: str, **fields):
        self.data.setdefault(collection, {})[doc_id] = fields

    def collection(self, name: str):
        return FakeCollection(self.data.setdefault(name, {}))


@pytest.fixture
def fake_db(monkeypatch):
    db = FakeFirestore()
    monkeypatch.setattr("services.tenant.get_db", lambda: db)
    monkeypatch.setattr("services.catalog_service.get_db", lambda: db)
    tenant.clear_site_cache()
    yield db
    tenant.clear_site_cache()


# =============================================================================
# Provider client mock
# =============================================================================


@pytest.fixture
def provider():
    """Booking Provider client with every network call mocked."""
    client = MagicMock()
    for name in (
        "discover_products", "get_products_by_provider", "get_product",
        "discover_availability", "get_availability", "set_availability_options",
        "get_availability_pricing", "set_availability_pricing",
        "create_booking", "add_availability_to_booking", "get_booking_questions",
        "answer_booking_questions", "commit_booking", "wait_for_confirmation",
        "get_booking",
    ):
        setattr(client, name, AsyncMock())
    client.create_booking.return_value = Booking(id="book-1", state="OPEN")
    client.add_availability_to_booking.return_value = True
    return client


@pytest.fixture
def api(provider, monkeypatch):
    """TestClient for the app with the default site and the mocked provider."""
    from fastapi.testclient import TestClient

    from main import app
    from services.tenant import DEFAULT_SITE, get_site

    for module in ("routers.experiences", "routers.availability", "routers.booking",
                   "routers.wizard", "routers.pages"):
        monkeypatch.setattr(f"{module}.get_provider_client", lambda site=None: provider)
    app.dependency_overrides[get_site] = lambda: DEFAULT_SITE
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
