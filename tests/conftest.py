"""Test fixtures for the Treebio custom domain service test suite."""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import jwt
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

# Set test environment variables BEFORE importing app modules
os.environ.update({
    "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
    "AUTH_JWT_SECRET": "test-jwt-secret-for-hs256-minimum-32bytes!",
    "PLATFORM_HOST": "treebio.app",
    "DOMAIN_QUOTA": "3",
    "ENVIRONMENT": "test",
    "LOG_LEVEL": "WARNING",
})

from treebio_domains.database import Base, get_session  # noqa: E402
from treebio_domains.dependencies import get_verification_checker  # noqa: E402
from treebio_domains.main import create_app  # noqa: E402
from treebio_domains.services.domain_service import DomainLifecycleManager  # noqa: E402
from treebio_domains.services.domain_store import DomainStore  # noqa: E402
from treebio_domains.services.verification_checker import VerificationChecker  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_JWT_SECRET = os.environ["AUTH_JWT_SECRET"]


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database with all tables for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a transactional database session that rolls back after each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def store(db: AsyncSession) -> DomainStore:
    return DomainStore(db)


@pytest.fixture
def checker() -> VerificationChecker:
    """Real checker logic over fake DNS and HTTP collaborators.

    By default no TXT records exist and the verification file is missing.
    """
    resolver = AsyncMock()
    resolver.resolve_txt.return_value = []
    fetcher = AsyncMock()
    fetcher.get.side_effect = AssertionError("HTTP fetch not expected")
    return VerificationChecker(resolver=resolver, fetcher=fetcher, timeout=1.0)


@pytest.fixture
def manager(store: DomainStore, checker: VerificationChecker) -> DomainLifecycleManager:
    return DomainLifecycleManager(store=store, checker=checker, quota=3)


@pytest.fixture
def app(db: AsyncSession, checker: VerificationChecker) -> FastAPI:
    """Application with database session and checker overrides."""
    app = create_app()

    async def override_get_session():
        yield db

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_verification_checker] = lambda: checker
    return app


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client for the application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[str], dict[str, str]]:
    """Build Authorization headers carrying a signed identity token."""

    def _headers(owner_id: str) -> dict[str, str]:
        token = jwt.encode(
            {
                "sub": owner_id,
                "iat": datetime.now(timezone.utc),
                "exp": datetime.now(timezone.utc) + timedelta(minutes=5),
            },
            TEST_JWT_SECRET,
            algorithm="HS256",
        )
        return {"Authorization": f"Bearer {token}"}

    return _headers
