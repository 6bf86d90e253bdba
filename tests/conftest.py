"""
tests/conftest.py -- Shared test fixtures for CareShop unit and integration tests.

This module provides:
  - documents: DocumentStore over a temp directory
  - user_store: UserStore over the `documents` fixture
  - _make_test_services(): isolated stores for one TestClient
  - _patch_lifespan(): wires test services into app.state, bypassing real startup
  - api_client: TestClient with an admin bearer token for API integration tests

Design: file-backed stores live in pytest's tmp_path, never in ./data.
SQL backend tests use a SQLite file under tmp_path rather than :memory: because
TestClient and the concurrency tests run handlers in worker threads, and a
plain :memory: database is private to one connection.

Environment variables must be set before any api/ or core/ import:
  - DEBUG=true so get_settings() auto-generates SECRET_KEY instead of raising.
  - LOGIN_RATE_LIMIT high so the module-scoped client never trips [H2];
    test_api_auth.py exercises the limiter with its own Limiter reset.
  - CORS_ALLOWED_ORIGINS with one allow-listed origin for test_origins.py.
  api/main.py reads settings at import time for the middleware stack.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from pathlib import Path

# CRITICAL: Set before any core/api import so get_settings() sees them.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("CORS_ALLOWED_ORIGINS", '["https://shop.example.com"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.credentials import hash_password
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import APP_VERSION
from handshake.registry import HandshakeRegistry
from shop.store import ShopStore
from storage.backends import FileBackend
from storage.documents import DocumentStore

ADMIN_EMAIL = "testadmin@example.com"
ADMIN_PASSWORD = "testpass123"
BASE_URL = "http://localhost"


# ---------------------------------------------------------------------------
# Unit-test fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def documents(tmp_path: Path) -> Generator[DocumentStore, None, None]:
    """DocumentStore over JSON files in a fresh temp directory."""
    store = DocumentStore(FileBackend(tmp_path / "data"))
    yield store
    store.close()


@pytest.fixture
def user_store(documents: DocumentStore) -> UserStore:
    return UserStore(documents)


# ---------------------------------------------------------------------------
# App wiring helpers
# ---------------------------------------------------------------------------


def _make_test_services(data_dir: Path) -> dict:
    """Create the app.state services over an isolated data directory."""
    documents = DocumentStore(FileBackend(data_dir))
    user_store = UserStore(documents)
    return {
        "documents": documents,
        "user_store": user_store,
        "session_manager": SessionManager(documents, user_store),
        "shop_store": ShopStore(documents),
        "handshake_registry": HandshakeRegistry("careshop-test", APP_VERSION, ["auth"]),
    }


def _patch_lifespan(services: dict):
    """Return an async context manager that replaces the real lifespan.

    Wires pre-created test services into app.state so TestClient routes see
    isolated test data rather than ./data. Shutdown mirrors the real
    lifespan: cancel handshake timers, close the store.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        for name, service in services.items():
            setattr(app.state, name, service)
        yield
        services["handshake_registry"].close()
        services["documents"].close()

    return test_lifespan


# ---------------------------------------------------------------------------
# Module-scoped fixtures -- one TestClient per test module for speed
# ---------------------------------------------------------------------------


@pytest.fixture(scope="module")
def api_client(tmp_path_factory) -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so
    tests hit real route handlers and middleware but use an isolated data
    directory. An admin user is created and logged in before the client
    starts; the token goes in Authorization headers.

    base_url is http://localhost so TrustedHostMiddleware accepts the Host.
    """
    services = _make_test_services(tmp_path_factory.mktemp("data"))
    admin = services["user_store"].create_user("Test Admin", ADMIN_EMAIL, hash_password(ADMIN_PASSWORD), "admin")
    token = services["session_manager"].issue(admin.id).token

    app.router.lifespan_context = _patch_lifespan(services)

    with TestClient(app, base_url=BASE_URL, raise_server_exceptions=True) as client:
        yield client, token, admin.id
