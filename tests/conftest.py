"""
Shared fixtures: in-memory database and a scripted remote store client.
"""
import asyncio
import socket
from typing import Any, Dict, List, Optional

import pytest

from storesync.connectors.base_connector import BaseStoreClient, RemoteResponse
from storesync.models.base import Base, build_engine, build_session_factory
from storesync.models.store import StoreConnection
from storesync.models import audit, entities, store  # noqa: F401


def _run(coro):
    return asyncio.run(coro)


class FakeStoreClient(BaseStoreClient):
    """
    Serves GET list endpoints from `records` page by page. Any queued
    item in `script` is returned (or raised) first, in order.
    """

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None, script: Optional[list] = None):
        super().__init__("fake")
        self.records = records or []
        self.script = list(script or [])
        self.calls: List[tuple] = []
        self.closed = False

    async def request(self, method, endpoint, params=None, json=None):
        self.calls.append((method, endpoint, dict(params or {}), json))
        if self.script:
            item = self.script.pop(0)
            if isinstance(item, BaseException):
                self._record_request(failed=True)
                raise item
            self._record_request()
            return item

        self._record_request()
        if method == "GET":
            per_page = int(params["per_page"])
            start = (int(params["page"]) - 1) * per_page
            return RemoteResponse(status=200, data=self.records[start:start + per_page])
        return RemoteResponse(status=200, data=json)

    async def close(self):
        self.closed = True


@pytest.fixture
def run():
    return _run


@pytest.fixture
def fake_client():
    return FakeStoreClient


@pytest.fixture
def closed_port():
    """A local port with nothing listening on it"""
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def connection():
    return StoreConnection(
        store_id="7",
        url="https://shop.example.com",
        api_key="ck_test",
        secret_key="cs_test",
        name="Example Shop",
    )
