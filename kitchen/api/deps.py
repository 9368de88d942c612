"""
FastAPI dependencies — database session and auth guards.

Everything is resolved from ``request.app.state`` (populated by
``create_app``), never from module-level globals.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen.core.security import SessionManager
from kitchen.schemas.token import SessionIdentity
from kitchen.schemas.user import Role


# ── Database session ────────────────────────────────────────────────
async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    async with request.app.state.session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.sessions


async def get_current_identity(
    request: Request,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionIdentity:
    """Validate the token from Header OR Cookie; no database lookup."""
    return sessions.guard(request)


def require_role(*roles: Role) -> Callable[..., Awaitable[SessionIdentity]]:
    """Build a guard that also requires one of ``roles``."""
    allowed = frozenset(role.value for role in roles)

    async def _require_role(
        identity: SessionIdentity = Depends(get_current_identity),
    ) -> SessionIdentity:
        if identity.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient privileges",
            )
        return identity

    return _require_role


require_admin = require_role(Role.ADMIN)
require_inventory_manager = require_role(Role.ADMIN, Role.INVENTORY_MANAGER)
