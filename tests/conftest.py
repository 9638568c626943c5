"""Test fixtures — an isolated in-memory database per test.

Learn: Testing pattern for async SQLAlchemy + FastAPI:

1. Settings are read at import time, so the required env vars
   (JWT secret, database URL) are set BEFORE anything from
   streamshort is imported.
2. Each test gets its own in-memory SQLite database (aiosqlite).
   StaticPool keeps one connection alive, so the schema created by
   create_all is the one every query sees.
3. The app's get_db, get_clock and get_sms_sender dependencies are
   overridden: requests share the test's session, time only moves
   when a test calls clock.advance(), and OTP codes are captured
   instead of texted.

Rate limiting is inactive here: the ASGI transport doesn't run the
lifespan, so Redis is never connected.
"""

import os

os.environ.setdefault(
    "STREAMSHORT_JWT_SECRET", "test-secret-key-for-the-suite-0123456789abcdef"
)
os.environ.setdefault("STREAMSHORT_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("STREAMSHORT_ENVIRONMENT", "test")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import Select  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from streamshort.clock import get_clock  # noqa: E402
from streamshort.db.engine import get_db  # noqa: E402
from streamshort.db.models import Base  # noqa: E402
from streamshort.main import app  # noqa: E402
from streamshort.notifications.sms import get_sms_sender  # noqa: E402

TEST_DB_URL = "sqlite+aiosqlite://"
START_TIME = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime = START_TIME):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


class RecordingSmsSender:
    """Captures (phone, code) pairs instead of sending texts."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_otp(self, phone: str, code: str) -> None:
        self.sent.append((phone, code))

    def last_code(self, phone: str) -> str:
        for sent_phone, code in reversed(self.sent):
            if sent_phone == phone:
                return code
        raise AssertionError(f"no OTP sent to {phone}")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sms():
    return RecordingSmsSender()


@pytest_asyncio.fixture()
async def db_session():
    """Fresh schema in a private in-memory database, dropped after the test."""
    engine = create_async_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
    await engine.dispose()


@pytest.fixture
def after_select(db_session, monkeypatch):
    """Run a competing statement right after the session's nth SELECT.

    Stands in for another request that commits between a service's
    read and its write, without needing real concurrency.
    """

    def _install(statement, nth: int = 1) -> None:
        real_execute = db_session.execute
        seen = 0

        async def execute(stmt, *args, **kwargs):
            nonlocal seen
            result = await real_execute(stmt, *args, **kwargs)
            if isinstance(stmt, Select):
                seen += 1
                if seen == nth:
                    await real_execute(statement)
            return result

        monkeypatch.setattr(db_session, "execute", execute)

    return _install


@pytest_asyncio.fixture()
async def client(db_session, clock, sms):
    """HTTP client running the real auth pipeline against the test database."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_sms_sender] = lambda: sms

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def login(client, sms):
    """Factory: phone login over HTTP, returns the token pair as a dict."""

    async def _login(phone: str = "+15550001111") -> dict:
        r = await client.post("/api/v1/auth/otp/send", json={"phone": phone})
        assert r.status_code == 200, r.text
        r = await client.post(
            "/api/v1/auth/otp/verify",
            json={"phone": phone, "otp": sms.last_code(phone)},
        )
        assert r.status_code == 200, r.text
        return r.json()

    return _login


def bearer(tokens: dict) -> dict:
    return {"Authorization": f"Bearer {tokens['access_token']}"}


@pytest.fixture
def creator(client, login):
    """Factory: log in a phone and onboard it as a creator.

    Returns (auth headers, creator profile dict).
    """

    async def _creator(phone: str = "+15550001111", display_name: str = "Maya") -> tuple:
        headers = bearer(await login(phone))
        r = await client.post(
            "/api/v1/creators/onboard",
            json={
                "display_name": display_name,
                "kyc_document_s3_path": f"s3://kyc/{phone}.pdf",
            },
            headers=headers,
        )
        assert r.status_code == 201, r.text
        return headers, r.json()

    return _creator
