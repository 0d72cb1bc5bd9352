"""
Pytest configuration and fixtures for blog analytics tests
"""

import os
import sys
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.future import select
from sqlalchemy.pool import NullPool

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))  # noqa: PTH100, PTH118, PTH119, PTH120

# Settings are read at import time, so configure them before importing the app
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

import blog_api.database as database_module  # noqa: E402
from blog_api.auth import create_access_token  # noqa: E402
from blog_api.database import Base  # noqa: E402
from blog_api.models.user import Role, User  # noqa: E402
from main import app  # noqa: E402


@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """
    A fresh SQLite database file per test.

    Each session gets its own connection, so concurrent tracking calls
    behave like separate requests.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
async def session_factory(test_engine, monkeypatch):
    """Point the app's session maker at the test database and seed roles."""
    factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(database_module, "engine", test_engine)
    monkeypatch.setattr(database_module, "AsyncSessionLocal", factory)

    async with factory() as session:
        for name, permissions in (("user", []), ("admin", ["*"]), ("superadmin", ["*"])):
            session.add(Role(name=name, permissions=permissions))
        await session.commit()

    return factory


@pytest.fixture(scope="function")
async def test_db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for tests that need it."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the app, backed by the test database."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def _create_user(db: AsyncSession, username: str, email: str, role_name: str) -> User:
    result = await db.execute(select(Role).where(Role.name == role_name))
    role = result.scalars().first()

    user = User(username=username, email=email, hashed_password="not-used", role_id=role.id)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def test_user(test_db: AsyncSession) -> User:
    """Create a test author with 'user' role"""
    return await _create_user(test_db, "author", "author@example.com", "user")


@pytest.fixture
async def other_user(test_db: AsyncSession) -> User:
    """Create a second regular user"""
    return await _create_user(test_db, "reader", "reader@example.com", "user")


@pytest.fixture
async def test_admin(test_db: AsyncSession) -> User:
    """Create a test admin user"""
    return await _create_user(test_db, "admin", "admin@example.com", "admin")


def bearer(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.email})}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    return bearer(test_user)


@pytest.fixture
def other_auth_headers(other_user: User) -> dict[str, str]:
    return bearer(other_user)


@pytest.fixture
def admin_auth_headers(test_admin: User) -> dict[str, str]:
    return bearer(test_admin)
