"""Test configuration and shared fixtures for the session store tests.

Uses an in-memory Elasticsearch stand-in and a fake event loop so expiry
timers can be driven deterministically. No cluster is needed.
"""

import asyncio
import copy
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from elastic_transport import ApiResponseMeta, HttpHeaders, NodeConfig
from elasticsearch import BadRequestError, NotFoundError
from httpx import ASGITransport, AsyncClient

from elastic_session_store.config import SessionStoreSettings
from elastic_session_store.services import record_store as record_store_module
from elastic_session_store.services.expiry_clock import ExpiryClock
from elastic_session_store.services.session_store import ElasticsearchSessionStore

T0 = 1_700_000_000.0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_settings(**overrides) -> SessionStoreSettings:
    defaults = {
        "es_host": "localhost:9200",
        "es_index": "express",
        "es_type_name": "session",
        "ttl_ms": 1000,
        "prefix": "",
        "auto_init": False,
    }
    defaults.update(overrides)
    return SessionStoreSettings(**defaults)


def make_api_error(cls, status: int, error_type: str):
    """Build an elasticsearch ApiError the way the client raises it."""
    meta = ApiResponseMeta(
        status=status,
        http_version="1.1",
        headers=HttpHeaders(),
        duration=0.0,
        node=NodeConfig("http", "localhost", 9200),
    )
    return cls(
        message=error_type,
        meta=meta,
        body={"error": {"type": error_type}, "status": status},
    )


def iso_ms(epoch_ms: int) -> str:
    dt = datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ---------------------------------------------------------------------------
# Fake event loop
# ---------------------------------------------------------------------------

class FakeTimerHandle:
    def __init__(self, when, callback, args):
        self._when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def cancelled(self):
        return self._cancelled

    def when(self):
        return self._when

    def run(self):
        self._callback(*self._args)


class FakeLoop:
    """Virtual clock with ``call_later``; tasks go to the real running loop."""

    def __init__(self, start: float = T0):
        self._now = start
        self._handles: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self._now

    def now_ms(self) -> int:
        return round(self._now * 1000)

    def call_later(self, delay, callback, *args):
        handle = FakeTimerHandle(self._now + delay, callback, args)
        self._handles.append(handle)
        return handle

    def create_task(self, coro):
        return asyncio.get_running_loop().create_task(coro)

    def pending(self) -> list[FakeTimerHandle]:
        return [h for h in self._handles if not h.cancelled()]

    def advance(self, seconds: float):
        """Move time forward, running due timers in deadline order."""
        target = self._now + seconds
        while True:
            due = [h for h in self.pending() if h.when() <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when())
            self._handles.remove(handle)
            self._now = max(self._now, handle.when())
            handle.run()
        self._now = target


# ---------------------------------------------------------------------------
# Fake Elasticsearch
# ---------------------------------------------------------------------------

class FakeIndices:
    def __init__(self):
        self.mappings: dict[str, dict] = {}

    async def create(self, index, mappings=None):
        if index in self.mappings:
            raise make_api_error(BadRequestError, 400, "resource_already_exists_exception")
        self.mappings[index] = mappings or {}
        return {"acknowledged": True, "index": index}

    async def exists(self, index):
        return index in self.mappings

    async def get_mapping(self, index):
        if index not in self.mappings:
            raise make_api_error(NotFoundError, 404, "index_not_found_exception")
        return {index: {"mappings": self.mappings[index]}}


class FakeElasticsearch:
    """Document API subset used by the store, backed by a dict."""

    def __init__(self):
        self.docs: dict[tuple[str, str], dict] = {}
        self.indices = FakeIndices()
        self.errors: dict[str, Exception] = {}
        self.scan_error: Exception | None = None

    def _maybe_fail(self, op):
        if op in self.errors:
            raise self.errors[op]

    async def get(self, index, id):
        self._maybe_fail("get")
        if (index, id) not in self.docs:
            raise make_api_error(NotFoundError, 404, "not_found")
        return {"_index": index, "_id": id, "found": True,
                "_source": copy.deepcopy(self.docs[(index, id)])}

    async def index(self, index, id, document):
        self._maybe_fail("index")
        result = "updated" if (index, id) in self.docs else "created"
        self.docs[(index, id)] = copy.deepcopy(document)
        return {"_id": id, "result": result}

    async def delete(self, index, id):
        self._maybe_fail("delete")
        if (index, id) not in self.docs:
            raise make_api_error(NotFoundError, 404, "not_found")
        del self.docs[(index, id)]
        return {"_id": id, "result": "deleted"}

    async def update(self, index, id, script):
        # Mirrors TOUCH_SCRIPT in Python; scripts/integration_test.py runs the
        # real script against a live node.
        self._maybe_fail("update")
        if (index, id) not in self.docs:
            raise make_api_error(NotFoundError, 404, "document_missing_exception")
        source = self.docs[(index, id)]
        now = script["params"]["now"]
        source["timestamp"] = now
        cookie = source.get("cookie")
        if cookie is not None and cookie.get("originalMaxAge") is not None:
            cookie["expires"] = iso_ms(now + cookie["originalMaxAge"])
        return {"_id": id, "result": "updated"}

    async def ping(self):
        return True

    async def close(self):
        pass


async def fake_async_scan(client, query=None, index=None, **kwargs):
    for (doc_index, doc_id), doc in list(client.docs.items()):
        if doc_index != index:
            continue
        source = {"timestamp": doc["timestamp"]} if "timestamp" in doc else {}
        yield {"_index": doc_index, "_id": doc_id, "_source": source}
    if client.scan_error is not None:
        raise client.scan_error


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def fake_loop():
    return FakeLoop()


@pytest.fixture
def fake_es(monkeypatch):
    monkeypatch.setattr(record_store_module, "async_scan", fake_async_scan)
    return FakeElasticsearch()


@pytest.fixture
def make_store(fake_es, fake_loop):
    """Factory for stores sharing one fake cluster and one virtual clock."""

    def _make(**overrides):
        return ElasticsearchSessionStore(
            fake_es,
            _make_settings(**overrides),
            clock=ExpiryClock(fake_loop),
            now_ms=fake_loop.now_ms,
        )

    return _make


@pytest.fixture
def store(make_store):
    return make_store()


@pytest_asyncio.fixture
async def app_no_es():
    """FastAPI app with no Elasticsearch client. Sessions unavailable (503)."""
    from elastic_session_store.main import app

    app.state.settings = _make_settings()
    app.state.client = None
    app.state.conn_mgr = None
    app.state.session_store = None
    app.state.recovered = None
    yield app


@pytest_asyncio.fixture
async def app_with_fakes(fake_es, store):
    """FastAPI app wired to a real store over the fake cluster."""
    from elastic_session_store.main import app

    conn_mgr = AsyncMock()
    conn_mgr.ping = AsyncMock(return_value=True)

    app.state.settings = store.settings
    app.state.client = fake_es
    app.state.conn_mgr = conn_mgr
    app.state.session_store = store
    app.state.recovered = 0
    yield app


@pytest_asyncio.fixture
async def client_no_es(app_no_es):
    transport = ASGITransport(app=app_no_es)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def client(app_with_fakes):
    transport = ASGITransport(app=app_with_fakes)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
