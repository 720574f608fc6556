"""
Test fixtures for the Card Cross-Reference API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - session_factory: Session factory bound to the test engine
  - xref_store / xref_index: Write-through index over the test database
  - memory_index: Index with no store at all
  - integrity_validator / cascade_coordinator / cursor_pager: Engine parts
    wired to xref_index
  - client: Async HTTP test client with the engine attached to app.state
  - seed_account / seed_customer: Register resolver rows directly

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) on a StaticPool, so every session
    of a test sees the same database and no state leaks between tests.
  - The HTTP client gets its engine from init_xref_engine(), the same
    function the application lifespan uses, and get_db is overridden to
    use the test database.
"""

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.database import Base, get_db
from app.dependencies import init_xref_engine
from app.main import app
from app.models.account import Account
from app.models.customer import Customer
from app.services.cascade_service import CascadeCoordinator
from app.services.integrity_service import IntegrityValidator
from app.services.pagination import CursorPager
from app.services.xref_index import CrossReferenceIndex
from app.services.xref_store import SqlEntityDirectory, SqlXrefStore


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

CARD_A = "4111111111111111"
CARD_B = "4222222222222222"
CARD_C = "4333333333333333"
ACCOUNT_ID = 12345678901
OTHER_ACCOUNT_ID = 98765432109
CUSTOMER_ID = 123456789
OTHER_CUSTOMER_ID = 987654321


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def xref_store(session_factory):
    return SqlXrefStore(session_factory)


@pytest_asyncio.fixture
async def xref_index(xref_store):
    index = CrossReferenceIndex(xref_store)
    await index.load()
    return index


@pytest.fixture
def memory_index():
    return CrossReferenceIndex()


@pytest.fixture
def integrity_validator(xref_index, session_factory):
    return IntegrityValidator(
        xref_index,
        accounts=SqlEntityDirectory(session_factory, Account),
        customers=SqlEntityDirectory(session_factory, Customer),
    )


@pytest.fixture
def cascade_coordinator(xref_index):
    return CascadeCoordinator(xref_index)


@pytest.fixture
def cursor_pager(xref_index):
    return CursorPager(xref_index)


@pytest.fixture
def seed_customer(db_session):
    """Insert a customer row and commit it."""

    async def _seed(customer_id: int = CUSTOMER_ID) -> Customer:
        customer = Customer(id=customer_id, first_name="Test", last_name="Customer")
        db_session.add(customer)
        await db_session.commit()
        return customer

    return _seed


@pytest.fixture
def seed_account(db_session):
    """Insert an account row and commit it."""

    async def _seed(account_id: int = ACCOUNT_ID, customer_id: int | None = CUSTOMER_ID) -> Account:
        account = Account(id=account_id, customer_id=customer_id)
        db_session.add(account)
        await db_session.commit()
        return account

    return _seed


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database and engine injected.

    The get_db override hands out sessions from the test engine; the
    cross-reference engine is built on the same factory and attached to
    app.state exactly as the lifespan does.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    await init_xref_engine(app.state, session_factory)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
