"""
Test configuration and fixtures.

Provides:
- An in-memory MongoDB (mongomock) behind the async client API Beanie expects
- Settings pointing media and email at throwaway locations
- HTTPX AsyncClient bound to a fresh app per test
- User factories and bearer headers for authenticated calls
"""
import uuid
from typing import AsyncGenerator, Awaitable, Callable

import mongomock
import pytest
from httpx import ASGITransport, AsyncClient

from app.config import Settings
from app.constants import Role
from app.database import close_db, init_db
from app.main import create_app
from app.models import Post, User
from app.rate_limit import limiter
from app.security import create_access_token, hash_password
from app.services.auth_service import generate_unique_referral_code

TEST_PASSWORD = "Password123"


# =============================================================================
# Async adapter over mongomock
# =============================================================================


class AsyncMockCursor:
    """Async iteration over a mongomock cursor (find or aggregate)."""

    def __init__(self, cursor):
        self._iterator = iter(cursor)

    def __aiter__(self):
        return self

    async def __anext__(self):
        try:
            return next(self._iterator)
        except StopIteration:
            raise StopAsyncIteration

    async def to_list(self, length=None):
        docs = []
        async for doc in self:
            docs.append(doc)
            if length and len(docs) >= length:
                break
        return docs


class AsyncMockCollection:
    """Awaitable wrappers around mongomock's collection; sessions are dropped."""

    def __init__(self, collection):
        self._collection = collection

    @property
    def name(self):
        return self._collection.name

    def find(self, *args, session=None, **kwargs):
        return AsyncMockCursor(self._collection.find(*args, **kwargs))

    async def aggregate(self, pipeline, session=None, **kwargs):
        return AsyncMockCursor(self._collection.aggregate(pipeline, **kwargs))

    def __getattr__(self, name):
        method = getattr(self._collection, name)

        async def call(*args, session=None, **kwargs):
            return method(*args, **kwargs)

        return call


class AsyncMockDatabase:
    def __init__(self, client, database):
        self.client = client
        self._database = database

    @property
    def name(self):
        return self._database.name

    async def command(self, command, **kwargs):
        if isinstance(command, str):
            command = {command: 1}
        if "buildInfo" in command:
            return self.client.server_info()
        return self._database.command(command)

    async def list_collection_names(self, **kwargs):
        return self._database.list_collection_names()

    def get_collection(self, name):
        return AsyncMockCollection(self._database[name])

    def __getitem__(self, name):
        return self.get_collection(name)


class AsyncMockClient:
    """Stands in for pymongo.AsyncMongoClient in init_db()."""

    def __init__(self):
        self._client = mongomock.MongoClient(tz_aware=True)

    def __getitem__(self, name):
        return AsyncMockDatabase(self, self._client[name])

    @property
    def admin(self):
        return self["admin"]

    def append_metadata(self, driver_info):
        pass

    def server_info(self):
        return self._client.server_info()

    async def close(self):
        self._client.close()


# =============================================================================
# App / database fixtures
# =============================================================================


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        APP_DEBUG=False,
        MONGODB_URI="mongodb://localhost:27017/healthsocial_test",
        JWT_SECRET="test-secret",
        CLIENT_URL="http://client.test",
        SUCCESS_URL="http://client.test/home",
        GOOGLE_CLIENT_ID="google-client-id",
        GOOGLE_CLIENT_SECRET="google-client-secret",
        EMAIL_PROVIDER="dummy",
        EMAIL_WORKER_ENABLED=False,
        MEDIA_ROOT=str(tmp_path / "media"),
        LOG_DIR="",
        R2_ACCOUNT_ID=None,
        R2_ACCESS_KEY_ID=None,
        R2_SECRET_ACCESS_KEY=None,
        R2_BUCKET_NAME=None,
        R2_PUBLIC_BASE=None,
    )


@pytest.fixture
async def db(settings: Settings) -> AsyncGenerator[None, None]:
    """Fresh in-memory database with every document model registered."""
    await init_db(settings, client=AsyncMockClient())
    yield
    await close_db()


@pytest.fixture(autouse=True)
def disable_ip_rate_limits():
    """Per-IP limits would trip across tests sharing the loopback address."""
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
async def client(settings: Settings, db) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(settings)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c


# =============================================================================
# Auth Fixtures
# =============================================================================


@pytest.fixture
def make_user(settings: Settings, db) -> Callable[..., Awaitable[User]]:
    """Insert an active, verified user directly."""

    async def _make(
        *,
        email: str | None = None,
        role: Role = Role.USER,
        first_name: str = "Kwame",
        last_name: str = "Mensah",
        password: str = TEST_PASSWORD,
    ) -> User:
        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email or f"user-{uuid.uuid4().hex[:8]}@test.com",
            phone="0241234567",
            password_hash=hash_password(password),
            role=role,
            is_active=True,
            is_email_verified=True,
            referral_code=await generate_unique_referral_code(settings),
        )
        await user.insert()
        return user

    return _make


@pytest.fixture
def auth_headers(settings: Settings) -> Callable[[User], dict]:
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user, settings)}"}

    return _headers


@pytest.fixture
async def user(make_user) -> User:
    return await make_user(first_name="Kwame", last_name="Mensah")


@pytest.fixture
async def other_user(make_user) -> User:
    return await make_user(first_name="Abena", last_name="Owusu")


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(role=Role.ADMIN, first_name="Admin", last_name="User")


@pytest.fixture
def make_post(db) -> Callable[..., Awaitable[Post]]:
    """Insert a post directly, bypassing the API and its rate limit."""

    async def _make(author: User, **fields) -> Post:
        fields.setdefault("type", "text")
        fields.setdefault("content", "A short note about staying hydrated")
        post = Post(author_id=author.id, **fields)
        await post.insert()
        return post

    return _make
