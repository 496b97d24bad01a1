"""
DeenVerse Backend: Test Configuration (conftest.py)
====================================================

What:  Shared pytest fixtures for the whole suite.
How:   Every test gets a fresh SQLite database file (aiosqlite) with the ORM
       schema created from Base.metadata. Service tests use one session
       directly; API tests go through the FastAPI app with the session
       dependency pointed at the same database.

Fixture Hierarchy:
    engine ─── session_factory ─┬── db                 (service tests)
                                ├── seeded accounts    (student, teacher, ...)
                                └── test_client        (API tests)
    mock_db_session                                    (pure unit tests)
"""

import os
import tempfile
from dataclasses import dataclass
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

# Override settings BEFORE any deenverse import so the module-level engine
# and settings never point at a real database
_TEST_DIR = tempfile.mkdtemp(prefix="deenverse_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/app.db"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["NOTIFICATION_RETRY_WAIT"] = "0"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import deenverse.models  # noqa: F401  (registers tables)
from deenverse.database import Base, get_db_session
from deenverse.models.account import Account, AccountRole
from deenverse.services.account_directory import account_directory


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    A throwaway SQLite database per test.

    pysqlite's own transaction handling breaks SAVEPOINT; the two listeners
    hand BEGIN over to SQLAlchemy so begin_nested() behaves like it does on
    PostgreSQL.
    """
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path}/test.db",
        poolclass=NullPool,
    )

    @event.listens_for(test_engine.sync_engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(test_engine.sync_engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    """One open session; tests flush but never need to commit."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """
    A mock AsyncSession for tests that only check how services talk to the
    database.
    """
    session = AsyncMock()
    session.execute = AsyncMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════════════════

@dataclass
class SeededAccount:
    account: Account
    token: str

    @property
    def id(self):
        return self.account.id

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}


async def _create_account(
    db: AsyncSession,
    display_name: str,
    role: AccountRole = AccountRole.STUDENT,
    verified: Optional[bool] = None,
    email: Optional[str] = None,
) -> Account:
    """Create an account in `db`. Admins are inserted directly (no self-registration)."""
    email = email or f"{display_name.lower().replace(' ', '.')}@example.com"
    if role == AccountRole.ADMIN:
        account = Account(
            email=email,
            display_name=display_name,
            role=AccountRole.ADMIN,
            specializations=[],
            is_verified=True,
            is_active=True,
            connections_count=0,
        )
        db.add(account)
        await db.flush()
    else:
        account = await account_directory.register(db, email, display_name, role)
    if verified is not None and account.is_verified != verified:
        await account_directory.set_verified(db, account.id, verified)
    return account


async def seed(
    session_factory,
    display_name: str,
    role: AccountRole = AccountRole.STUDENT,
    verified: Optional[bool] = None,
) -> SeededAccount:
    """Create and commit an account with a bearer token, for API tests."""
    async with session_factory() as session:
        account = await _create_account(session, display_name, role, verified)
        token = await account_directory.open_session(session, account)
        await session.commit()
    return SeededAccount(account=account, token=token)


@pytest.fixture
def make_account(db):
    """
    Factory for accounts in the test's `db` session.

    Usage:
        teacher = await make_account("Imaam Yusuf", AccountRole.TEACHER, verified=True)
    """

    async def factory(display_name, role=AccountRole.STUDENT, verified=None, email=None):
        return await _create_account(db, display_name, role, verified, email)

    return factory


@pytest_asyncio.fixture
async def student(session_factory):
    return await seed(session_factory, "Student Sara")


@pytest_asyncio.fixture
async def teacher(session_factory):
    return await seed(session_factory, "Imaam Yusuf", AccountRole.TEACHER, verified=True)


@pytest_asyncio.fixture
async def unverified_teacher(session_factory):
    return await seed(session_factory, "Imaam Pending", AccountRole.TEACHER)


@pytest_asyncio.fixture
async def admin(session_factory):
    return await seed(session_factory, "Admin Amina", AccountRole.ADMIN)


# ══════════════════════════════════════════════════════════════════════════
# HTTP client
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def test_client(session_factory):
    """
    HTTPX AsyncClient talking to the app through ASGITransport, with the
    request session bound to the per-test database.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    from deenverse.main import app

    async def override_get_db_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
