"""
Shared test fixtures for the Kitchen Back Office test suite.

Each test gets its own app wired to a fresh in-memory SQLite database
(aiosqlite + StaticPool) whose schema is built by the real migrator.
"""

import os
import uuid
from typing import AsyncGenerator

import pytest

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kitchen.api.endpoints.auth import limiter
from kitchen.core.config import Settings
from kitchen.core.security import get_password_hash
from kitchen.db.migrate import SchemaMigrator
from kitchen.main import create_app
from kitchen.models.user import User


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        JWT_SECRET="test-secret",
        RUN_MIGRATIONS_ON_STARTUP=False,
    )


@pytest.fixture
async def app(settings: Settings) -> AsyncGenerator[FastAPI, None]:
    """App with the bundled migrations applied to its database."""
    application = create_app(settings)
    await SchemaMigrator(application.state.engine, settings.MIGRATIONS_DIR).run_all()
    limiter.reset()

    yield application

    application.dependency_overrides.clear()
    await application.state.engine.dispose()


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def session_factory(app: FastAPI) -> async_sessionmaker[AsyncSession]:
    """Open fresh sessions for assertions so no stale identity map is read."""
    return app.state.session_factory


@pytest.fixture
def make_user(session_factory):
    async def _make_user(
        email: str,
        password: str = "password123",
        role: str = "kitchen_staff",
        name: str | None = None,
    ) -> User:
        user = User(
            email=email,
            password_hash=get_password_hash(password),
            role=role,
            name=name,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user("admin@example.com", "admin123", role="admin", name="Admin")


@pytest.fixture
def auth_headers(app: FastAPI):
    """Bearer headers for a throwaway identity with the given role."""

    def _auth_headers(role: str = "admin", email: str | None = None) -> dict[str, str]:
        subject = User(
            id=str(uuid.uuid4()),
            email=email or f"{role}@example.com",
            role=role,
            name=role.replace("_", " ").title(),
        )
        token = app.state.sessions.issue_session(subject)
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers
