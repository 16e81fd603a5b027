import os
import tempfile

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="taskmaster-uploads-"))

from taskmaster.counters import InMemoryLifetimeCounter, get_lifetime_counter  # noqa: E402
from taskmaster.main import app  # noqa: E402
from taskmaster.repositories import InMemoryRepository, get_repository  # noqa: E402


@pytest.fixture
def repo():
    return InMemoryRepository()


@pytest.fixture
def counter():
    return InMemoryLifetimeCounter()


@pytest.fixture
def client(repo, counter):
    """TestClient over fresh in-memory stores, so every test starts empty."""
    app.dependency_overrides[get_repository] = lambda: repo
    app.dependency_overrides[get_lifetime_counter] = lambda: counter
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
