"""
Global test configuration for the entire test suite.

Fixtures for settings, clocks, databases and bearer tokens shared by the unit
and integration tests.
"""

import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from remitdesk.core.config.settings import Settings
from remitdesk.infrastructure.persistence.sqlalchemy.database import (
    create_engine_and_session_factory,
    create_tables,
)
from remitdesk.infrastructure.security.jwt import JWTService

logging.basicConfig(level=logging.INFO)

TEST_JWT_SECRET = "test_secret_key_for_testing_only"


class FakeClock:
    """Manually advanced unix-time clock for the rate limiter."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUtcClock:
    """Manually advanced UTC datetime clock for the idempotency service."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def utc_clock() -> FakeUtcClock:
    return FakeUtcClock()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings pointing at a throwaway SQLite file."""
    return Settings(
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'remitdesk_test.db'}",
        JWT_SECRET_KEY=TEST_JWT_SECRET,
        JWT_ALGORITHM="HS256",
        LOG_LEVEL="INFO",
        CORS_ORIGINS=[],
        RATE_LIMIT_SWEEP_INTERVAL_SECONDS=3600,
    )


@pytest.fixture
def jwt_service() -> JWTService:
    return JWTService(secret_key=TEST_JWT_SECRET)


@pytest.fixture
def auth_headers(jwt_service):
    """Factory producing Authorization headers for a user and tenant."""

    def _headers(user_id: int = 1, tenant_id: int | None = 7, role: str = "tenant_user") -> dict[str, str]:
        token = jwt_service.create_access_token(user_id, role=role, tenant_id=tenant_id)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    engine, _ = create_engine_and_session_factory(f"sqlite+aiosqlite:///{tmp_path / 'repo_test.db'}")
    await create_tables(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False, class_=AsyncSession)
