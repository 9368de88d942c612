"""
Async SQLAlchemy engine & session factory (asyncpg driver).

Both are built from an explicit ``Settings`` object by the app factory and
kept on ``app.state``; nothing here is created at import time.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from kitchen.core.config import Settings


def build_engine(settings: Settings) -> AsyncEngine:
    url = settings.DATABASE_URL
    engine_args: dict[str, Any] = {
        "echo": False,
        "pool_pre_ping": True,
    }

    if "postgresql" in url:
        engine_args.update(
            {
                "pool_size": 20,
                "max_overflow": 10,
                "pool_recycle": 300,
            }
        )
    elif url.startswith("sqlite") and ":memory:" in url:
        # One shared connection, otherwise every checkout sees an empty database.
        engine_args.update(
            {
                "connect_args": {"check_same_thread": False},
                "poolclass": StaticPool,
            }
        )

    engine = create_async_engine(url, **engine_args)

    if url.startswith("sqlite"):
        # SQLite ignores REFERENCES ... ON DELETE CASCADE unless asked per connection.
        @event.listens_for(engine.sync_engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
