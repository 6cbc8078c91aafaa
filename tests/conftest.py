from pathlib import Path

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from appcollection import db
from appcollection.config import Settings
from appcollection.main import create_app
from appcollection.remote import RemoteLinkBackend
from appcollection.storage import LocalLinkBackend, LocalStorage


class FakeClock:
    """Millisecond clock that moves forward by one on every read."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        self.now += 1
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage_path(tmp_path: Path) -> Path:
    return tmp_path / "local_storage.json"


@pytest.fixture
def storage(storage_path: Path) -> LocalStorage:
    return LocalStorage(storage_path)


@pytest.fixture
def local_backend(storage: LocalStorage, clock: FakeClock) -> LocalLinkBackend:
    return LocalLinkBackend(storage, clock=clock)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'links.db'}",
        static_dir=tmp_path / "dist",
    )


@pytest.fixture
def engine(settings: Settings):
    engine = db.make_engine(settings.database_url)
    yield engine
    engine.dispose()


@pytest.fixture
def bare_api(settings: Settings, engine) -> FastAPI:
    """App whose links table has not been created yet."""
    return create_app(settings, engine)


@pytest.fixture
def api(bare_api: FastAPI, engine) -> FastAPI:
    db.setup_schema(engine)
    return bare_api


@pytest.fixture
def client(api: FastAPI) -> TestClient:
    return TestClient(api)


@pytest.fixture
async def remote_backend(api: FastAPI, clock: FakeClock):
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=api), base_url="http://testserver")
    backend = RemoteLinkBackend(client=http, clock=clock)
    yield backend
    await http.aclose()
