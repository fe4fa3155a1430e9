"""
Test infrastructure for the blog platform.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI.  Foreign keys are switched on per connection so the
  ON DELETE CASCADE / RESTRICT rules behave as they do in production.
- StaticPool forces all async tasks to share the same in-memory database
  connection; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after.
- The Redis cache is disabled by setting cache._redis = None; the
  CacheManager treats a missing client as a no-op.
- httpx.ASGITransport does not run the lifespan, so the default roles are
  created by the setup fixture itself.
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.auth import ADMINISTRATOR, DEFAULT_USER, MODERATOR
from app.cache import cache
from app.database import Base, commit, enable_sqlite_foreign_keys, get_db
from app.main import app
from app.middleware import install_query_counter
from app.schemas import TagCreate, UserCreate
from app.services import role_service, tag_service, user_service

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "secret123"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

enable_sqlite_foreign_keys(engine_test)
install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await commit(session)
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def create_account(role_name: str, email: str, first_name: str = "Test") -> dict:
    """Insert a user holding *role_name* directly through the service layer."""
    async with async_session_test() as session:
        roles = await role_service.ensure_default_roles(session)
        user = await user_service.create_user(
            session,
            UserCreate(
                first_name=first_name,
                last_name="User",
                email=email,
                phone="555-0100",
                password=PASSWORD,
                role_id=roles[role_name]["id"],
            ),
        )
        await session.commit()
    return user


async def login(client: AsyncClient, email: str, password: str = PASSWORD):
    resp = await client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return resp


async def seed_tags(*names: str) -> list[dict]:
    """Create tags directly, bypassing the moderator-only endpoint."""
    async with async_session_test() as session:
        tags = [await tag_service.create_tag(session, TagCreate(name=name)) for name in names]
        await session.commit()
    return tags


async def create_tag(client: AsyncClient, name: str) -> dict:
    """Create a tag; *client* must be signed in as an administrator or moderator."""
    resp = await client.post("/api/v1/tags", json={"name": name})
    assert resp.status_code == 201, resp.text
    return resp.json()


async def create_article(client: AsyncClient, title: str, tag_ids: list[int], content: str = "Body") -> dict:
    resp = await client.post(
        "/api/v1/articles",
        json={"title": title, "content": content, "tag_ids": tag_ids},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables and the default roles before each test, drop after."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_session_test() as session:
        await role_service.ensure_default_roles(session)
        await session.commit()
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """A live AsyncSession for tests that call services directly."""
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """An anonymous httpx.AsyncClient wired to the app via ASGITransport."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def admin(async_client: AsyncClient) -> dict:
    return await create_account(ADMINISTRATOR, "admin@example.com", "Ada")


@pytest_asyncio.fixture
async def moderator(async_client: AsyncClient) -> dict:
    return await create_account(MODERATOR, "moderator@example.com", "Max")


@pytest_asyncio.fixture
async def author(async_client: AsyncClient) -> dict:
    return await create_account(DEFAULT_USER, "author@example.com", "Una")


@pytest_asyncio.fixture
async def admin_client(async_client: AsyncClient, admin: dict) -> AsyncClient:
    """The shared client, signed in as the administrator."""
    await login(async_client, admin["email"])
    return async_client


@pytest_asyncio.fixture
async def author_client(async_client: AsyncClient, author: dict) -> AsyncClient:
    """The shared client, signed in as a DefaultUser."""
    await login(async_client, author["email"])
    return async_client
