"""Shared test fixtures."""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timezone

# In-memory SQLite and test secrets; must be set before the app is imported
os.environ["MENTORA_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["MENTORA_JWT_SECRET_KEY"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["MENTORA_MIDTRANS_SERVER_KEY"] = "SB-Mid-server-test-key"
os.environ["MENTORA_MIDTRANS_CLIENT_KEY"] = "SB-Mid-client-test-key"
os.environ["MENTORA_GRADER_EMAILS"] = '["grader@example.com"]'
os.environ["MENTORA_TOGETHER_API_KEY"] = ""
os.environ["MENTORA_HF_TOKEN"] = ""
os.environ["MENTORA_LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from mentora.config import get_settings  # noqa: E402

get_settings.cache_clear()

from mentora.auth.jwt import create_access_token  # noqa: E402
from mentora.database import close_db, get_engine, init_db  # noqa: E402
from mentora.db.base import Base  # noqa: E402
from mentora.db.models import User  # noqa: E402
from mentora.dependencies import get_now  # noqa: E402
from mentora.main import create_app  # noqa: E402


class FrozenClock:
    """Mutable request clock shared by the app and the test."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    async def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def app(clock: FrozenClock):
    """App bound to a fresh in-memory database; Redis is left uninitialized."""
    settings = get_settings()
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    application = create_app()
    application.dependency_overrides[get_now] = clock
    yield application

    await close_db()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the ASGI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db_session(app) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    async with AsyncSession(get_engine(), expire_on_commit=False) as session:
        yield session


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    """Build a bearer header for a uid (and optional email)."""

    def _headers(uid: str, email: str | None = None) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(uid, email)}"}

    return _headers


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable[..., object]:
    """Insert a user row with arbitrary fields."""

    async def _make(uid: str, **fields: object) -> User:
        fields.setdefault("roles", [])
        fields.setdefault("claimed_courses", [])
        user = User(uid=uid, **fields)
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def fetch(db_session: AsyncSession) -> Callable[..., object]:
    """Re-read a row by primary key, bypassing the session's identity map."""

    async def _fetch(model: type, pk: object) -> object:
        return await db_session.get(model, pk, populate_existing=True)

    return _fetch
