"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database, the app without its
lifespan (nothing external is contacted), an in-memory object store and an
outbound HTTP client backed by `httpx.MockTransport`. Redis is never
initialized, so both rate limiters pass through unless a test patches them.
"""

from __future__ import annotations

import os

os.environ["XDROP_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["XDROP_JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["XDROP_WALLET_WEBHOOK_SECRET"] = "whsec_test"
os.environ["XDROP_LOG_FORMAT"] = "console"
os.environ["XDROP_STORAGE_PUBLIC_URL"] = "https://cdn.test"

from collections.abc import AsyncGenerator, Awaitable, Callable, Iterator  # noqa: E402
from dataclasses import dataclass, field  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from xdrop.auth.api_keys import generate_api_key  # noqa: E402
from xdrop.auth.jwt import create_access_token  # noqa: E402
from xdrop.clients import close_http_client, init_http_client  # noqa: E402
from xdrop.config import get_settings  # noqa: E402
from xdrop.database import close_db, create_schema, get_session, init_db  # noqa: E402
from xdrop.db.models import Profile, SocialBot, UserRole  # noqa: E402
from xdrop.storage.service import BaseObjectStorage, StorageError, get_storage  # noqa: E402

get_settings.cache_clear()

USER_ID = "11111111-1111-4111-8111-111111111111"
OTHER_USER_ID = "22222222-2222-4222-8222-222222222222"
ADMIN_ID = "33333333-3333-4333-8333-333333333333"


class MemoryStorage(BaseObjectStorage):
    """Object store that keeps uploads in a dict."""

    def __init__(self) -> None:
        super().__init__("https://cdn.test")
        self.objects: dict[tuple[str, str], tuple[bytes, str]] = {}
        self.fail = False

    async def put_object(self, bucket: str, key: str, body: bytes, content_type: str) -> None:
        if self.fail:
            raise StorageError("bucket unavailable")
        self.objects[(bucket, key)] = (body, content_type)


@dataclass
class Upstream:
    """Programmable stand-in for every third-party HTTP API.

    Tests set `handler`; every outbound request is recorded in `requests`.
    """

    handler: Callable[[httpx.Request], httpx.Response] = lambda request: httpx.Response(404)
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[Callable[..., None]]:
    """Set XDROP_* variables for one test and refresh cached settings."""

    def _set(**values: object) -> None:
        for key, value in values.items():
            monkeypatch.setenv(f"XDROP_{key.upper()}", str(value))
        get_settings.cache_clear()

    yield _set
    get_settings.cache_clear()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest_asyncio.fixture
async def app(storage: MemoryStorage, upstream: Upstream) -> AsyncGenerator[FastAPI, None]:
    """App wired to a fresh in-memory database and fake integrations."""
    from xdrop.main import create_app

    settings = get_settings()
    await init_db(settings.database_url)
    await create_schema()
    await init_http_client(5.0, transport=httpx.MockTransport(upstream))

    application = create_app()
    application.dependency_overrides[get_storage] = lambda: storage
    yield application

    await close_http_client()
    await close_db()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def db(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """Direct session for seeding and assertions. Commit before making requests."""
    async for session in get_session():
        yield session
        break


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture
def user_headers() -> dict[str, str]:
    return auth_headers(USER_ID)


@pytest.fixture
def other_user_headers() -> dict[str, str]:
    return auth_headers(OTHER_USER_ID)


@pytest_asyncio.fixture
async def admin_headers(db: AsyncSession) -> dict[str, str]:
    db.add(Profile(id=ADMIN_ID, display_name="Admin", credits=0))
    db.add(UserRole(user_id=ADMIN_ID, role="admin"))
    await db.commit()
    return auth_headers(ADMIN_ID)


async def make_bot(
    db: AsyncSession,
    handle: str,
    *,
    status: str = "active",
    owner_id: str | None = USER_ID,
    **fields: object,
) -> tuple[SocialBot, dict[str, str]]:
    """Create a bot with a fresh API key. Returns the bot and its auth headers."""
    full_key, prefix, key_hash = generate_api_key()
    bot = SocialBot(
        owner_id=owner_id,
        name=handle.lstrip("@").title(),
        handle=handle,
        status=status,
        api_key_prefix=prefix,
        api_key_hash=key_hash,
        **fields,
    )
    db.add(bot)
    await db.commit()
    return bot, {"x-bot-api-key": full_key}


BotFactory = Callable[..., Awaitable[tuple[SocialBot, dict[str, str]]]]


@pytest.fixture
def bot_factory(db: AsyncSession) -> BotFactory:
    """`await bot_factory("@handle", status=..., **columns)`"""

    async def _make(handle: str, **kwargs: object) -> tuple[SocialBot, dict[str, str]]:
        return await make_bot(db, handle, **kwargs)

    return _make


@pytest_asyncio.fixture
async def bot(db: AsyncSession) -> tuple[SocialBot, dict[str, str]]:
    return await make_bot(db, "@alpha")


@pytest_asyncio.fixture
async def other_bot(db: AsyncSession) -> tuple[SocialBot, dict[str, str]]:
    return await make_bot(db, "@beta", owner_id=OTHER_USER_ID)
