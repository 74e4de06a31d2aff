"""Pytest configuration for tests.

The app modules read their configuration at import time, so the
environment is prepared here before anything from the project is imported.
"""

import os
import tempfile
from pathlib import Path

os.environ.setdefault("ADMIN_USER", "admin")
os.environ.setdefault("ADMIN_PASSWORD", "admin-pass")
os.environ.setdefault("BACKOFFICE_API_KEY", "test-api-key")
os.environ.setdefault("SESSION_SECRET_KEY", "test-secret")
os.environ.setdefault("VALMORE_DB_PATH", str(Path(tempfile.mkdtemp()) / "valmore-test.db"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from valmore.database import get_store  # noqa: E402
from valmore.documents import DocumentStore, DocumentStoreError  # noqa: E402
from valmore.guest_storage import GuestStorage  # noqa: E402
from valmore.schemas import Product  # noqa: E402

API_KEY = os.environ["BACKOFFICE_API_KEY"]


class FailingStore(DocumentStore):
    """Store whose writes (and the next N reads) can be made to fail on demand."""

    def __init__(self, db_path):
        super().__init__(db_path)
        self.fail_updates = False
        self.fail_reads = 0
        self.update_calls = []

    def get(self, collection, doc_id):
        if self.fail_reads > 0:
            self.fail_reads -= 1
            raise DocumentStoreError("offline")
        return super().get(collection, doc_id)

    def update(self, collection, doc_id, changes):
        self.update_calls.append((collection, doc_id, dict(changes)))
        if self.fail_updates:
            raise DocumentStoreError("permission denied")
        super().update(collection, doc_id, changes)


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite-backed document store per test."""
    s = FailingStore(tmp_path / "store.db")
    s.init_db()
    return s


@pytest.fixture
def storage():
    """Guest storage backed by a plain dict."""
    return GuestStorage({})


@pytest.fixture
def make_product(store):
    """Factory that saves a product document and returns it as a model."""

    def _make(**overrides) -> Product:
        data = {
            "name": "Oxford Gömlek",
            "description": "Pamuklu oxford gömlek, regular fit.",
            "price": 500,
            "originalPrice": 650,
            "isDiscounted": True,
            "images": [{"url": "https://img.test/oxford.jpg", "color": "Genel"}],
            "category": "Gömlekler",
            "brand": "Valmoré",
            "gender": "Male",
            "sizes": ["S", "M", "L"],
            "colors": ["Kırmızı", "Mavi"],
            "inStock": True,
            "featured": False,
            "createdAt": "2024-03-15T10:00:00+00:00",
        }
        data.update(overrides)
        product_id = store.add("products", data)
        return Product.model_validate({**data, "id": product_id})

    return _make


@pytest.fixture
def storefront_client(store):
    from storefront_app import app

    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def backoffice_client(store):
    import backoffice_app

    backoffice_app._login_attempts.clear()
    backoffice_app.app.dependency_overrides[get_store] = lambda: store
    yield TestClient(backoffice_app.app)
    backoffice_app.app.dependency_overrides.clear()
