"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read once at import time, so the test environment is fixed first
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["REDIS_URL"] = ""
os.environ["SENTRY_DSN"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["REPLICATE_API_TOKEN"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["NEWSAPI_KEY"] = ""
os.environ["GNEWS_API_KEY"] = ""
os.environ["BOOTSTRAP_ADMIN_EMAIL"] = ""
os.environ["BOOTSTRAP_ADMIN_PASSWORD"] = ""
os.environ["STRIPE_SECRET_KEY"] = "sk_test_newshub"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_newshub"
os.environ["STRIPE_PRICE_STANDARD"] = "price_standard_test"
os.environ["STRIPE_PRICE_PREMIUM"] = "price_premium_test"
os.environ["STRIPE_PRICE_PRO"] = "price_pro_test"
os.environ["PUBLIC_API_KEY"] = "public-test-key"

import pytest
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Import after path and environment are set
from infrastructure.database.models import Article, Base, User
from infrastructure.database.models.user import UserRole
from infrastructure.database.connection import get_db
from core.security import PasswordHasher, TokenService
from infrastructure.config import get_settings

# Low bcrypt cost keeps the suite fast
password_hasher = PasswordHasher(rounds=4)
settings = get_settings()
token_service = TokenService(secret_key=settings.jwt_secret_key, algorithm=settings.jwt_algorithm)

TEST_PASSWORD = "TestPassword123"

# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


async def _make_user(
    db_session: AsyncSession,
    email: str,
    name: str,
    role: str = UserRole.USER.value,
    tier: str = "free",
) -> User:
    user = User(
        id=str(uuid4()),
        email=email,
        password_hash=password_hasher.hash(TEST_PASSWORD),
        name=name,
        role=role,
        tier=tier,
        status="active",
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


def _headers_for(user: User) -> dict:
    access_token = token_service.create_access_token(
        user_id=user.id, email=user.email, role=user.role
    )
    return {"Authorization": f"Bearer {access_token}"}


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a free-tier reader."""
    return await _make_user(db_session, "test@example.com", "Test User")


@pytest.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@example.com", "Other User")


@pytest.fixture
async def pro_user(db_session: AsyncSession) -> User:
    """Reader on the pro plan (self-serve ads and developer API)."""
    return await _make_user(db_session, "pro@example.com", "Pro User", tier="pro")


@pytest.fixture
async def editor_user(db_session: AsyncSession) -> User:
    return await _make_user(
        db_session, "editor@example.com", "Editor User", role=UserRole.SUB_ADMIN.value
    )


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(
        db_session, "admin@example.com", "Admin User", role=UserRole.ADMIN.value
    )


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user."""
    return _headers_for(test_user)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return _headers_for(other_user)


@pytest.fixture
def pro_headers(pro_user: User) -> dict:
    return _headers_for(pro_user)


@pytest.fixture
def editor_headers(editor_user: User) -> dict:
    return _headers_for(editor_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return _headers_for(admin_user)


@pytest.fixture
def make_article(db_session: AsyncSession):
    """Factory inserting an article; keyword arguments override the defaults."""

    async def factory(**overrides) -> Article:
        values = {
            "title": "Markets rally on rate hopes",
            "description": "Stocks climbed for a third day.",
            "body": "Stocks climbed for a third day. Bond yields fell. Analysts expect a cut.",
            "author": "Jane Reporter",
            "category": "business",
            "tags": ["markets", "economy"],
            "published_at": datetime.now(timezone.utc) - timedelta(hours=1),
        }
        values.update(overrides)
        article = Article(**values)
        db_session.add(article)
        await db_session.commit()
        await db_session.refresh(article)
        return article

    return factory


@pytest.fixture
async def article(make_article) -> Article:
    return await make_article()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app
    from api.middleware.rate_limit import reset_windowed_limiters

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()
    reset_windowed_limiters()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
