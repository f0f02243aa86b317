import os

# must be in place before app.config is imported
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./forum_engine_test.db"
os.environ["SECRET_KEY"] = "test-secret-key-that-is-long-enough-123456"
os.environ.pop("REDIS_URL", None)
os.environ.pop("DB_SCHEMA", None)

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.database import Base
from app.deps.services import build_services
from app.models import contact_model, flow_model, forum_model, notification_model  # noqa: F401
from app.models.user_model import User, ROLE_ADMIN, ROLE_GENERAL, ROLE_MODERATOR
from app.services.dispatch import BackgroundDispatcher
from app.services.view_cache import MemoryViewCache
from app.utils.slug import SlugAllocator


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture
async def engine(tmp_path):
    # a file, not :memory:, so every session gets its own connection
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'engine.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def view_cache(clock):
    return MemoryViewCache(namespace="post", ttl_seconds=60, clock=clock)


@pytest.fixture
def background():
    return BackgroundDispatcher()


@pytest.fixture
def services(session_factory, view_cache, background):
    return build_services(session_factory, view_cache=view_cache, background=background)


@pytest.fixture
def flows(services):
    return services.flows


@pytest.fixture
def posts(services):
    return services.posts


async def make_user(db, username: str, role: str = ROLE_GENERAL, nickname=None) -> User:
    user = User(username=username, nickname=nickname, role=role, email=f"{username}@example.com")
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def alice(db):
    return await make_user(db, "alice", nickname="Alice A.")


@pytest_asyncio.fixture
async def bob(db):
    return await make_user(db, "bob")


@pytest_asyncio.fixture
async def moderator(db):
    return await make_user(db, "mod", role=ROLE_MODERATOR)


@pytest_asyncio.fixture
async def admin(db):
    return await make_user(db, "root", role=ROLE_ADMIN)


async def fresh(db, model, pk):
    """Re-read a row, ignoring whatever the session has cached."""
    return await db.get(model, pk, populate_existing=True)


class StaleAllocator(SlugAllocator):
    """First answer is stale: another writer took the slug after the check."""

    def __init__(self, *args, stale_slug: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.stale_slug = stale_slug
        self.calls = 0

    async def allocate(self, db, seed_text):
        self.calls += 1
        if self.calls == 1:
            return self.stale_slug
        return await super().allocate(db, seed_text)
