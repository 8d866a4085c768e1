"""
Test infrastructure for the POS API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- Redis is replaced by ``FakeRedis``, an in-memory double of the handful of
  client calls ``CacheStore`` makes (with expiry), so cache-aside paths run
  for real and tests can inspect or corrupt stored payloads.
- Every test gets its own Prometheus ``CollectorRegistry`` and an SDK tracer
  exporting to memory, so counters and span status can be asserted.
"""
import time
from collections import Counter

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from prometheus_client import CollectorRegistry
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pos.cache import CacheStore
from pos.database import Base, get_db
from pos.main import app
from pos.messaging import EmailPublisher
from pos.models import Category, Merchant, Role, User
from pos.observability import MetricsRegistry

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ---------------------------------------------------------------------------
# Dependency override — replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class FakeRedis:
    """In-memory stand-in for ``redis.asyncio.Redis`` (get / set / delete)."""

    def __init__(self) -> None:
        self.store: dict[str, object] = {}
        self.ttls: dict[str, int] = {}
        self._expires: dict[str, float] = {}
        self.closed = False

    async def ping(self) -> bool:
        return True

    async def get(self, key: str):
        expires = self._expires.get(key)
        if expires is not None and expires <= time.monotonic():
            self.store.pop(key, None)
            self._expires.pop(key, None)
        return self.store.get(key)

    async def set(self, key: str, value, ex: int | None = None) -> bool:
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
            self._expires[key] = time.monotonic() + ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self._expires.pop(key, None)
        return removed

    async def aclose(self) -> None:
        self.closed = True

    def expire_now(self, key: str) -> None:
        self._expires[key] = time.monotonic() - 1


class CountingRepository:
    """Proxy that counts awaited calls per repository method."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.calls: Counter = Counter()

    def __getattr__(self, name: str):
        attr = getattr(self.inner, name)
        if not callable(attr):
            return attr

        async def counted(*args, **kwargs):
            self.calls[name] += 1
            return await attr(*args, **kwargs)

        return counted


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that need to interact with the
    database directly (e.g. seeding data, asserting ORM state).
    """
    async with async_session_test() as session:
        yield session


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def cache(fake_redis: FakeRedis) -> CacheStore:
    return CacheStore(client=fake_redis, operation_timeout=1.0)


@pytest.fixture
def metrics() -> MetricsRegistry:
    return MetricsRegistry(CollectorRegistry())


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer(span_exporter: InMemorySpanExporter):
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    return provider.get_tracer("pos-tests")


@pytest.fixture
def counting():
    """Wrap a repository so tests can assert how often it was hit."""
    return CountingRepository


@pytest_asyncio.fixture
async def catalog(db_session: AsyncSession) -> dict:
    """A merchant (with its owner) and a category that products can refer to."""
    role = Role(name="ROLE_ADMIN")
    owner = User(firstname="Shop", lastname="Owner", email="owner@example.com", password="x")
    db_session.add_all([role, owner])
    await db_session.flush()

    merchant = Merchant(user_id=owner.id, name="Corner Store")
    category = Category(name="Shoes", slug_category="shoes")
    db_session.add_all([merchant, category])
    await db_session.commit()
    return {"role": role, "owner": owner, "merchant": merchant, "category": category}


@pytest_asyncio.fixture
async def async_client(cache: CacheStore, metrics: MetricsRegistry) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.

    ASGITransport does not run the lifespan, so the shared resources it
    would create are installed on ``app.state`` here instead.
    """
    app.state.cache = cache
    app.state.metrics = metrics
    app.state.publisher = EmailPublisher(bootstrap_servers=None)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
