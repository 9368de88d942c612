"""
Kitchen Back Office — application entry point.

This is the **only** file that assembles the app.  All business logic
lives in the `api/`, `models/`, `db/` and `core/` packages.

Startup order (lifespan): apply pending SQL migrations, seed the first
admin, then serve.  A migration failure aborts startup.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kitchen.api.api import api_router
from kitchen.api.endpoints.auth import limiter
from kitchen.core.config import Settings, get_settings
from kitchen.core.exceptions import register_exception_handlers
from kitchen.core.security import SessionManager, get_password_hash
from kitchen.db.migrate import SchemaMigrator
from kitchen.db.session import build_engine, build_session_factory
from kitchen.models.user import User
from kitchen.schemas.user import Role

logger = logging.getLogger(__name__)


async def seed_first_admin(
    session_factory: async_sessionmaker[AsyncSession], settings: Settings
) -> None:
    """Create the configured admin account unless its email already exists."""
    email = settings.FIRST_ADMIN_EMAIL.strip().lower()
    async with session_factory() as session:
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none() is not None:
            return
        session.add(
            User(
                email=email,
                password_hash=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
                name=settings.FIRST_ADMIN_NAME,
                role=Role.ADMIN.value,
            )
        )
        await session.commit()
        logger.info("Default admin created: %s (password: <redacted>)", email)


# ── Lifespan ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    engine = app.state.engine

    if settings.RUN_MIGRATIONS_ON_STARTUP:
        await SchemaMigrator(engine, settings.MIGRATIONS_DIR).run_all()
    await seed_first_admin(app.state.session_factory, settings)

    logger.info("🚀 %s v%s started", settings.PROJECT_NAME, settings.VERSION)
    yield
    await engine.dispose()
    logger.info("Shutdown complete")


# ── App factory ─────────────────────────────────────────────────────
def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()

    application = FastAPI(
        title=settings.PROJECT_NAME,
        description="Kitchen / restaurant back office API",
        version=settings.VERSION,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    engine = build_engine(settings)
    application.state.settings = settings
    application.state.engine = engine
    application.state.session_factory = build_session_factory(engine)
    application.state.sessions = SessionManager(settings)
    application.state.limiter = limiter

    # CORS
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Global exception handlers (prevent stack-trace leakage)
    register_exception_handlers(application)

    # Mount API
    application.include_router(api_router, prefix=settings.API_PREFIX)

    # Serve the built frontend if present (catch-all mount, must be last)
    frontend_dir = Path.cwd() / "dist"
    if frontend_dir.is_dir():
        application.mount(
            "/",
            StaticFiles(directory=str(frontend_dir), html=True),
            name="frontend",
        )
        logger.info("Frontend mounted from %s", frontend_dir)

    return application


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )


_configure_logging(get_settings())
app = create_app()
