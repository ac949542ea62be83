"""Test fixtures for QRLogin tests."""

import os
import tempfile
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import Depends, FastAPI
from httpx import ASGITransport, AsyncClient

from qrlogin import CookieConfig, Identity, InMemoryTokenStore, JWTSessionIssuer, QRLogin, QRTokenEngine
from qrlogin.config import QRLoginConfig
from qrlogin.events import HookRegistry

# SQLite temp file by default. Set DATABASE_URL to run against PostgreSQL.
_raw_url = os.environ.get("DATABASE_URL", "sqlite")

_sqlite_tmp = None
if _raw_url.startswith("sqlite"):
    _sqlite_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
    _sqlite_tmp.close()
    TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_sqlite_tmp.name}"
else:
    TEST_DATABASE_URL = _raw_url

JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"
SERVER_URL = "http://test"


@pytest.fixture(scope="session", autouse=True)
def _cleanup_sqlite():
    """Delete the temp SQLite file after all tests finish."""
    yield
    if _sqlite_tmp is not None and os.path.exists(_sqlite_tmp.name):
        os.remove(_sqlite_tmp.name)


class FakeClock:
    """Settable aware-UTC clock for the engine."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer() -> JWTSessionIssuer:
    return JWTSessionIssuer(JWT_SECRET)


@pytest.fixture
def hooks() -> HookRegistry:
    return HookRegistry()


@pytest.fixture
def mem_store() -> InMemoryTokenStore:
    return InMemoryTokenStore()


@pytest.fixture
def engine(mem_store, issuer, hooks, clock) -> QRTokenEngine:
    """Engine over the in-memory store with a controllable clock."""
    return QRTokenEngine(
        mem_store,
        session_issuer=issuer,
        config=QRLoginConfig(),
        hooks=hooks,
        clock=clock,
    )


@pytest_asyncio.fixture
async def qr(issuer):
    """QRLogin instance on the test database, rate limiting off."""
    instance = QRLogin(
        TEST_DATABASE_URL,
        session_issuer=issuer,
        cookie=CookieConfig(secure=False),
        rate_limit=None,
    )
    await instance.migrate()
    yield instance
    await instance.dispose()


def build_app(qr: QRLogin) -> FastAPI:
    app = FastAPI()
    app.include_router(qr.fastapi_router(), prefix="/auth")

    @app.get("/me")
    async def me(identity: Identity = Depends(qr.current_identity)):
        return {"user_id": identity.user_id}

    return app


@pytest_asyncio.fixture
async def client(qr: QRLogin):
    """Async HTTP client for testing against the FastAPI app."""
    async with AsyncClient(
        transport=ASGITransport(app=build_app(qr)),
        base_url="http://test",
    ) as client:
        yield client


@pytest_asyncio.fixture
async def phone_token(issuer) -> str:
    """Session token of the already signed-in scanning device."""
    issued = await issuer.create_session("user-phone-1")
    return issued.token
