"""
Shared test fixtures for the account service test suite.

Each test gets its own in-memory SQLite database (aiosqlite + StaticPool).
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["SECRET_KEY"] = "test-secret-key-not-for-production"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.security import PasswordHasher, token_issuer
from app.db.base import Base
from app.main import app
from app.models.user import User, UserRole
from app.repositories.user_repository import SqlAlchemyUserRepository
from app.services.user_service import UserService

hasher = PasswordHasher(rounds=4)


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create a fresh database with all tables, dropped after the test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def user_service(db_session: AsyncSession) -> UserService:
    return UserService(
        repository=SqlAlchemyUserRepository(db_session),
        hasher=hasher,
        token_issuer=token_issuer,
    )


@pytest.fixture
async def async_client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app and the test database."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


async def create_user(
    session: AsyncSession,
    username: str,
    password: str = "password123",
    role: UserRole = UserRole.USER,
    email: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
) -> User:
    """Insert a user directly, bypassing the service."""
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        hashed_password=hasher.hash(password),
        first_name=first_name,
        last_name=last_name,
        role=role.value,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


def auth_headers(user: User) -> dict[str, str]:
    issued = token_issuer.issue(user.id, user.username, user.email, user.role)
    return {"Authorization": f"Bearer {issued.token}"}


@pytest.fixture
async def admin(db_session: AsyncSession) -> User:
    return await create_user(db_session, "root", role=UserRole.ADMIN)


@pytest.fixture
def admin_headers(admin: User) -> dict[str, str]:
    return auth_headers(admin)
