"""
Test configuration and shared fixtures for AI Job Master.

This module provides pytest fixtures and configuration for testing the FastAPI backend,
including database setup, authenticated users of each plan and the async HTTP client.
"""

import os

# Settings are read when the app modules are imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-at-least-32-characters-long")
os.environ.setdefault("ENCRYPTION_KEY", "0123456789abcdef0123456789abcdef")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("REQUIRE_EMAIL_VERIFICATION", "true")
os.environ.setdefault("COINBASE_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("COINBASE_COMMERCE_API_KEY", "test-commerce-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_FORMAT", "text")

from typing import AsyncGenerator, Dict

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.core.cache import clear_all_caches
from app.core.database import Base, enable_sqlite_foreign_keys, get_db, utcnow
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.models.settings import UsageLimitSettings
from app.models.user import User, UserType

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_PASSWORD = "TestPassword123!"


@pytest.fixture
async def async_engine():
    """Create a fresh in-memory database engine for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function", autouse=True)
async def setup_database(async_engine):
    """Setup and teardown test database for each test."""
    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def reset_caches():
    """Usage limits, model lists and idempotency keys must not leak between tests."""
    clear_all_caches()
    yield
    clear_all_caches()


@pytest.fixture
async def db_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    session_maker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    async with session_maker() as session:
        yield session


@pytest.fixture
def override_get_db(db_session):
    """Override the get_db dependency; commits like the real one on success."""
    async def _override_get_db():
        yield db_session
        await db_session.commit()

    return _override_get_db


@pytest.fixture
async def async_client(override_get_db):
    """Create async test client with dependency overrides."""
    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def _create_user(db_session: AsyncSession, email: str, user_type: UserType, verified: bool = True) -> User:
    user = User(
        email=email,
        full_name="Test User",
        hashed_password=get_password_hash(TEST_PASSWORD),
        user_type=user_type,
        is_active=True,
        email_verified=verified,
        monthly_reset_date=utcnow(),
    )
    db_session.add(user)
    await db_session.commit()
    return user


@pytest.fixture
async def test_user(db_session) -> User:
    """A verified FREE user."""
    return await _create_user(db_session, "test@example.com", UserType.FREE)


@pytest.fixture
async def unverified_user(db_session) -> User:
    return await _create_user(db_session, "unverified@example.com", UserType.FREE, verified=False)


@pytest.fixture
async def plus_user(db_session) -> User:
    return await _create_user(db_session, "plus@example.com", UserType.PLUS)


@pytest.fixture
async def admin_user(db_session) -> User:
    return await _create_user(db_session, "admin@example.com", UserType.ADMIN)


@pytest.fixture
async def usage_limits(db_session) -> Dict[UserType, UsageLimitSettings]:
    """Limit rows for FREE and PLUS users."""
    rows = {
        UserType.FREE: UsageLimitSettings(
            user_type=UserType.FREE,
            max_activities=3,
            max_generations=2,
            max_followup_generations=1,
            include_followups=False,
        ),
        UserType.PLUS: UsageLimitSettings(
            user_type=UserType.PLUS,
            max_activities=500,
            max_generations=100,
            max_followup_generations=50,
            include_followups=False,
        ),
    }
    db_session.add_all(rows.values())
    await db_session.commit()
    return rows


def _auth_headers(user: User) -> Dict[str, str]:
    token = create_access_token(data={"sub": user.id})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user) -> Dict[str, str]:
    """Create authentication headers for the FREE test user."""
    return _auth_headers(test_user)


@pytest.fixture
def unverified_headers(unverified_user) -> Dict[str, str]:
    return _auth_headers(unverified_user)


@pytest.fixture
def plus_headers(plus_user) -> Dict[str, str]:
    return _auth_headers(plus_user)


@pytest.fixture
def admin_headers(admin_user) -> Dict[str, str]:
    """Create authentication headers for the admin user."""
    return _auth_headers(admin_user)
