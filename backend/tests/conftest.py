"""
Pytest Configuration and Shared Fixtures for All Tests

This conftest.py provides:
- An in-memory SQLite database (aiosqlite) and async session per test
- Factories for users, projects, next actions and tasks
- A scripted completion service mock
- TestClient fixtures with an authenticated bearer token
"""
import json
import os
from datetime import datetime, timedelta
from typing import Any, Optional
from unittest.mock import AsyncMock, MagicMock

# Settings are read at import time; point the app at SQLite before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("GROQ_API_KEY", "test-groq-key")
os.environ.setdefault("AUDIT_LOG_ENABLED", "true")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool


# =============================================================================
# Pytest Markers Configuration
# =============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (requires real API)"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests (mocked, fast)"
    )


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database with all tables."""
    from app.core.database import Base
    from app.models import models  # noqa: F401

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Async session; objects stay usable after commit."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db_session):
    """Persisted test user."""
    from app.models.models import User

    record = User(external_id="ext-test-user", email="testuser@example.com", name="Test User")
    db_session.add(record)
    await db_session.commit()
    return record


@pytest_asyncio.fixture
async def other_user(db_session):
    """A second user, for ownership checks."""
    from app.models.models import User

    record = User(external_id="ext-other-user", email="other@example.com", name="Other User")
    db_session.add(record)
    await db_session.commit()
    return record


# Monotonic timestamps so store order is explicit in every test
_BASE_TIME = datetime(2026, 1, 1, 9, 0, 0)


class RecordFactory:
    """Creates records directly, bypassing counters, with increasing created_at."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self._tick = 0

    def _next_time(self) -> datetime:
        self._tick += 1
        return _BASE_TIME + timedelta(minutes=self._tick)

    async def project(self, user_id: str, name: str, task_count: int = 0, **kwargs):
        from app.models.models import Project

        created = self._next_time()
        record = Project(
            user_id=user_id,
            name=name,
            task_count=task_count,
            created_at=created,
            updated_at=created,
            **kwargs,
        )
        self.session.add(record)
        await self.session.commit()
        return record

    async def context(self, user_id: str, name: str, task_count: int = 0):
        from app.models.models import Context

        created = self._next_time()
        record = Context(
            user_id=user_id,
            name=name,
            task_count=task_count,
            created_at=created,
            updated_at=created,
        )
        self.session.add(record)
        await self.session.commit()
        return record

    async def task(
        self,
        user_id: str,
        title: str,
        project_id: Optional[str] = None,
        context_id: Optional[str] = None,
        completed: bool = False,
        trashed: bool = False,
        category: str = "inbox",
    ):
        from app.models.models import Task

        created = self._next_time()
        record = Task(
            user_id=user_id,
            title=title,
            project_id=project_id,
            context_id=context_id,
            completed=completed,
            trashed=trashed,
            category=category,
            due_date=created,
            created_at=created,
            updated_at=created,
        )
        self.session.add(record)
        await self.session.commit()
        return record


@pytest.fixture
def factory(db_session):
    """Record factory bound to the test session."""
    return RecordFactory(db_session)


# =============================================================================
# Service Mocks
# =============================================================================

@pytest.fixture
def audit_logger():
    """Isolated audit logger."""
    from app.services.audit_logger import AuditLogger

    return AuditLogger(max_entries=100)


def reply(payload: Any) -> str:
    """Serialize a completion reply the way the model would return it."""
    return payload if isinstance(payload, str) else json.dumps(payload)


@pytest.fixture
def scripted_completion():
    """
    Build a completion service mock answering with the given replies in order.

    Usage: completion = scripted_completion({"intent": "chat"}, "Sure!")
    """
    def _build(*replies: Any) -> MagicMock:
        mock = MagicMock()
        mock.complete = AsyncMock(side_effect=[reply(r) for r in replies])
        mock.close = AsyncMock()
        return mock

    return _build


# =============================================================================
# API Test Fixtures
# =============================================================================

@pytest.fixture
def auth_headers():
    """Bearer token for a test identity."""
    from app.core.security import create_access_token

    token = create_access_token("ext-api-user", email="api@example.com", name="API User")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def api_client():
    """
    TestClient running the app lifespan against a fresh in-memory database.

    Yields (client, set_completion) where set_completion installs a mock
    completion service for the AI routes.
    """
    from main import app
    from app.api.deps import get_completion_service

    def set_completion(mock) -> None:
        app.dependency_overrides[get_completion_service] = lambda: mock

    with TestClient(app) as client:
        yield client, set_completion

    app.dependency_overrides.clear()
