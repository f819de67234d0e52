"""
Shared test configuration.

Each test gets its own SQLite database file (aiosqlite) and an in-memory
stand-in for the Redis sorted-set commands the rate limiter issues.
"""

import os

os.environ.setdefault("JWT_SECRET", "test-jwt-secret-please-change")
os.environ.setdefault("ENV", "test")

import pytest
import httpx
from redis.exceptions import ConnectionError as RedisConnectionError

from authcore.core.config import JWTSettings, RateLimitSettings
from authcore.core.security import TokenIssuer
from authcore.db.seed import SEED_USERS, seed_users
from authcore.db.session import Database
from authcore.main import create_app
from authcore.services.auth_service import AuthService
from authcore.services.rate_limiter import RateLimiter, policies_from_settings


class InMemoryPipeline:
    """Queues commands and applies them in order on ``execute``."""

    def __init__(self, redis: "InMemoryRedis"):
        self.redis = redis
        self.commands = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.commands = []

    def _queue(self, name, *args, **kwargs):
        self.commands.append((name, args, kwargs))
        return self

    def zremrangebyscore(self, key, min_score, max_score):
        return self._queue("zremrangebyscore", key, min_score, max_score)

    def zadd(self, key, mapping):
        return self._queue("zadd", key, mapping)

    def zcard(self, key):
        return self._queue("zcard", key)

    def zrange(self, key, start, end, withscores=False):
        return self._queue("zrange", key, start, end, withscores=withscores)

    def expire(self, key, seconds):
        return self._queue("expire", key, seconds)

    async def execute(self):
        if self.redis.unavailable:
            raise RedisConnectionError("Connection refused")
        results = [getattr(self.redis, f"_{name}")(*args, **kwargs) for name, args, kwargs in self.commands]
        self.commands = []
        return results


class InMemoryRedis:
    """Just enough of redis.asyncio.Redis for the sliding-window limiter."""

    def __init__(self):
        self.sorted_sets = {}
        self.ttls = {}
        self.unavailable = False

    def pipeline(self, transaction=True):
        return InMemoryPipeline(self)

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += int(self.sorted_sets.pop(key, None) is not None)
            self.ttls.pop(key, None)
        return removed

    async def aclose(self):
        pass

    def _zremrangebyscore(self, key, min_score, max_score):
        members = self.sorted_sets.get(key, {})
        doomed = [m for m, score in members.items() if min_score <= score <= max_score]
        for member in doomed:
            del members[member]
        return len(doomed)

    def _zadd(self, key, mapping):
        members = self.sorted_sets.setdefault(key, {})
        added = len([m for m in mapping if m not in members])
        members.update(mapping)
        return added

    def _zcard(self, key):
        return len(self.sorted_sets.get(key, {}))

    def _zrange(self, key, start, end, withscores=False):
        ordered = sorted(self.sorted_sets.get(key, {}).items(), key=lambda item: item[1])
        end = len(ordered) if end == -1 else end + 1
        selected = ordered[start:end]
        return selected if withscores else [member for member, _ in selected]

    def _expire(self, key, seconds):
        self.ttls[key] = seconds
        return key in self.sorted_sets


@pytest.fixture
def fake_redis():
    return InMemoryRedis()


@pytest.fixture
def jwt_settings():
    return JWTSettings(jwt_secret="unit-test-secret")


@pytest.fixture
def token_issuer(jwt_settings):
    return TokenIssuer(jwt_settings)


@pytest.fixture
def rate_limiter(fake_redis):
    return RateLimiter(fake_redis, policies_from_settings(RateLimitSettings()))


@pytest.fixture
async def database(tmp_path):
    """A fresh SQLite database file with all tables created."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'authcore-test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database):
    async with database.session_maker() as session:
        yield session


@pytest.fixture
def auth_service(session, token_issuer, rate_limiter):
    return AuthService(session, token_issuer, rate_limiter)


@pytest.fixture
def customer_credentials():
    return {"email": SEED_USERS[0]["email"], "password": SEED_USERS[0]["password"]}


@pytest.fixture
async def customer(session):
    """The seeded CUSTOMER user (test@example.com / Test123!@#)."""
    users = await seed_users(session, users=SEED_USERS[:1])
    return users[0]


@pytest.fixture
async def admin(session):
    users = await seed_users(session, users=SEED_USERS[2:3])
    return users[0]


@pytest.fixture
def app(database, fake_redis):
    """Application wired to the test database and Redis stand-in."""
    application = create_app()
    application.state.database = database
    application.state.redis = fake_redis
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client


@pytest.fixture
async def make_client(app):
    """Factory for extra clients with their own cookie jars."""
    clients = []

    def _make(cookies=None):
        transport = httpx.ASGITransport(app=app)
        new_client = httpx.AsyncClient(transport=transport, base_url="http://testserver", cookies=cookies)
        clients.append(new_client)
        return new_client

    yield _make

    for extra_client in clients:
        await extra_client.aclose()


def pytest_collection_modifyitems(config, items):
    """Automatically mark all tests in integration/ as integration tests."""
    for item in items:
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
