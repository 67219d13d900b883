"""
Shared test fixtures — async DB, fake hosted backend, FastAPI test client.
"""

from datetime import date
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker

from vastu_api.config import Settings
from vastu_api.database import Base, get_archive_session
from vastu_api.main import app
from vastu_api.routes.pages import get_page_views
from vastu_api.schemas.registration import FloorPlanUpload
from vastu_api.services.page_views import PageViewRegistry


# ── Test Database (SQLite in-memory) ────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture()
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session_factory(db_engine):
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(db_session_factory):
    async with db_session_factory() as session:
        yield session


# ── Fake hosted backend ─────────────────────────────────

class FakeBackend:
    """
    In-memory blob storage + record store.

    ``calls`` records every operation in order. Set ``upload_error`` or
    ``insert_errors[table]`` to make the next calls fail.
    """

    def __init__(self):
        self.calls: list[tuple] = []
        self.blobs: dict[tuple[str, str], bytes] = {}
        self.rows: dict[str, list[dict]] = {}
        self.upload_error = None
        self.insert_errors: dict[str, Exception] = {}

    async def upload(self, bucket, key, data, content_type):
        self.calls.append(("upload", bucket, key))
        if self.upload_error is not None:
            raise self.upload_error
        self.blobs[(bucket, key)] = data
        return key

    async def get_public_url(self, bucket, key):
        self.calls.append(("get_public_url", bucket, key))
        return f"https://storage.test/{bucket}/{key}"

    async def insert(self, table, row):
        self.calls.append(("insert", table))
        if table in self.insert_errors:
            raise self.insert_errors[table]
        self.rows.setdefault(table, []).append(row)
        return f"-push{len(self.rows[table])}"

    def events(self) -> list[str]:
        return [row["event_type"] for row in self.rows.get("page_analytics", [])]


class FakeBeacon:
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: list[dict] = []

    def send(self, payload: dict) -> bool:
        if self.accept:
            self.sent.append(payload)
        return self.accept

    @property
    def pending(self) -> int:
        return 0

    async def drain(self, timeout=None):
        return None


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, secs: float) -> None:
        self.now += secs


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def beacon():
    return FakeBeacon()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def page_views(backend, beacon, clock):
    return PageViewRegistry(
        backend,
        backend,
        beacon,
        bucket="test-bucket",
        clock=clock,
    )


@pytest_asyncio.fixture()
async def client(db_engine, page_views):
    """FastAPI test client with test DB and fake backend injected."""
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False)

    async def _override_get_archive_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_archive_session] = _override_get_archive_session
    app.dependency_overrides[get_page_views] = lambda: page_views

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Sample Registration Data ────────────────────────────

TODAY = date(2026, 10, 19)

SAMPLE_VALUES = {
    "name": "Asha Sharma",
    "phone": "+91 9876543210",
    "email": "asha.sharma@gmail.com",
    "date_of_birth": "1990-05-14",
    "time_of_birth": "06:30",
    "place_of_birth": "Karnataka",
}


@pytest.fixture
def sample_values():
    return dict(SAMPLE_VALUES)


@pytest.fixture
def floor_plan():
    """A 2 MB PDF floor plan."""
    return FloorPlanUpload(
        filename="plan.pdf",
        content_type="application/pdf",
        data=b"%PDF-1.4\n" + b"0" * (2 * 1024 * 1024),
    )


# ── Mock Settings ───────────────────────────────────────

@pytest.fixture(autouse=True)
def mock_settings():
    """Override settings for tests — patches at ALL import points."""
    test_settings = Settings(
        _env_file=None,
        database_url=TEST_DB_URL,
        firebase_cred_path="",
        firebase_db_url="https://test.firebaseio.com",
        firebase_storage_bucket="test-bucket",
        archive_interval=60,
    )

    with patch("vastu_api.config.settings", test_settings), \
         patch("vastu_api.routes.pages.settings", test_settings), \
         patch("vastu_api.main.settings", test_settings):
        yield test_settings
