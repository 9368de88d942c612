"""
Auth endpoints — login, session introspection, logout & user management.

Annotations are evaluated eagerly here: slowapi wraps ``login`` and FastAPI
resolves the wrapper's signature against this module's globals.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.concurrency import run_in_threadpool
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen.api.deps import get_current_identity, get_db, get_session_manager, require_admin
from kitchen.core.security import SessionManager, get_password_hash
from kitchen.models.user import User
from kitchen.schemas.token import LoginRequest, LoginResponse, LogoutResponse, SessionIdentity
from kitchen.schemas.user import UserCreate, UserRead

# Rate limiter, keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=LoginResponse)
@limiter.limit("5/minute")
async def login(
    request: Request,
    response: Response,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> LoginResponse:
    """Authenticate with email (or username) + password.

    Sets the HttpOnly session cookie and also returns the token for
    clients that prefer the Authorization header.
    """
    session = await sessions.authenticate(db, body.identifier, body.password)
    sessions.set_session_cookie(response, session.token)
    logger.info("User %s logged in", session.user.email)
    return LoginResponse(access_token=session.token, user=session.user)


@router.get("/me", response_model=SessionIdentity)
async def read_current_identity(
    identity: SessionIdentity = Depends(get_current_identity),
) -> SessionIdentity:
    """Return the identity carried by the current session token."""
    return identity


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> LogoutResponse:
    """Clear the session cookies. The token itself stays valid until it expires."""
    sessions.end_session(response)
    return LogoutResponse(message="Logged out")


# ── User management (admin-only) ───────────────────────────────────
@router.post("/users", response_model=UserRead, status_code=201)
async def create_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: SessionIdentity = Depends(require_admin),
) -> User:
    """Create a new user account (admin only)."""
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user = User(
        email=body.email,
        password_hash=await run_in_threadpool(get_password_hash, body.password),
        name=body.name,
        role=body.role.value,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("User %s created with role %s", user.email, user.role)
    return user
