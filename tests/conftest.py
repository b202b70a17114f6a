from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import fastapi.concurrency
import fastapi.routing
import httpx
import pytest
import starlette.concurrency

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.pop("AIRELAY_ADMIN_TOKEN", None)
os.environ.pop("AIRELAY_DATABASE_URL", None)


@pytest.fixture
def async_client_factory():
    def _factory(app):
        transport = httpx.ASGITransport(app=app)
        return httpx.AsyncClient(transport=transport, base_url="http://testserver")

    return _factory


@pytest.fixture
def db():
    from airelay.config import DatabaseConfig
    from airelay.storage.database import DatabaseManager

    manager = DatabaseManager(DatabaseConfig(url="sqlite:///:memory:"))
    yield manager
    manager.close()


@pytest.fixture
def store(db):
    from airelay.storage.store import EndpointStore

    return EndpointStore(db)


@pytest.fixture
def mock_client_factory():
    """Build an ``http_client_factory`` that routes every call to ``handler``."""

    def _build(handler):
        def _factory(**kwargs):
            return httpx.AsyncClient(transport=httpx.MockTransport(handler), **kwargs)

        return _factory

    return _build


@pytest.fixture(autouse=True)
def _disable_threadpool(monkeypatch: pytest.MonkeyPatch) -> None:
    async def _run_in_threadpool(func, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(fastapi.concurrency, "run_in_threadpool", _run_in_threadpool)
    monkeypatch.setattr(fastapi.routing, "run_in_threadpool", _run_in_threadpool)
    monkeypatch.setattr(starlette.concurrency, "run_in_threadpool", _run_in_threadpool)

    async def _to_thread(func, *args, **kwargs):
        return func(*args, **kwargs)

    monkeypatch.setattr(asyncio, "to_thread", _to_thread)


@pytest.fixture
def anyio_backend():
    return "asyncio"
