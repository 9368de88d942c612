"""
Password hashing (bcrypt) and stateless JWT sessions.

The server keeps no session table: a token is valid while its signature
checks out and its ``exp`` lies in the future.  Logging out only clears
the cookie, so a copied token keeps working until it expires.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Protocol

from fastapi import Request, Response
from fastapi.concurrency import run_in_threadpool
from fastapi.security.utils import get_authorization_scheme_param
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen.core.config import Settings
from kitchen.core.exceptions import InvalidCredentials, Unauthenticated
from kitchen.models.user import User
from kitchen.schemas.token import SessionIdentity
from kitchen.schemas.user import UserRead

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

Clock = Callable[[], datetime]


# ── Passwords ───────────────────────────────────────────────────────
def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def get_password_hash(plain: str) -> str:
    return pwd_context.hash(plain)


# ── Sessions ────────────────────────────────────────────────────────
class SessionSubject(Protocol):
    id: Any
    email: str
    role: str
    name: str | None


@dataclass(frozen=True)
class AuthenticatedSession:
    token: str
    user: UserRead


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _strip_bearer(value: str) -> str:
    scheme, param = get_authorization_scheme_param(value)
    if scheme.lower() == "bearer" and param:
        return param
    return value


class SessionManager:
    """Issues and validates session tokens.

    Built once at startup from ``Settings``; ``clock`` is injectable so
    expiry can be tested without sleeping.
    """

    def __init__(self, settings: Settings, clock: Clock | None = None) -> None:
        self._secret = settings.JWT_SECRET
        self._algorithm = settings.JWT_ALGORITHM
        self._clock = clock or _utcnow
        self.lifetime = settings.token_lifetime
        self.cookie_names = tuple(settings.AUTH_COOKIE_NAMES)
        self.cookie_secure = settings.COOKIE_SECURE
        self.cookie_samesite = settings.COOKIE_SAMESITE

    # ── Issuance ────────────────────────────────────────────────────
    def issue_session(self, user: SessionSubject) -> str:
        now = self._clock()
        claims = {
            "sub": str(user.id),
            "email": user.email,
            "role": user.role,
            "name": user.name,
            "iat": int(now.timestamp()),
            "exp": int((now + self.lifetime).timestamp()),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    async def authenticate(
        self, db: AsyncSession, identifier: str, password: str
    ) -> AuthenticatedSession:
        """Check credentials against the user store and open a session.

        Unknown email and wrong password both raise ``InvalidCredentials``.
        """
        email = identifier.strip().lower()
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if user is None:
            # Burn the same bcrypt time as a real check.
            await run_in_threadpool(pwd_context.dummy_verify)
            logger.info("Failed login attempt for %s", email)
            raise InvalidCredentials()

        if not await run_in_threadpool(verify_password, password, user.password_hash):
            logger.info("Failed login attempt for %s", email)
            raise InvalidCredentials()

        return AuthenticatedSession(
            token=self.issue_session(user),
            user=UserRead.model_validate(user),
        )

    # ── Validation ──────────────────────────────────────────────────
    def extract_token(self, request: Request) -> str | None:
        """Header first, then the recognised cookies in configured order."""
        scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
        if scheme.lower() == "bearer" and param:
            return param

        for name in self.cookie_names:
            value = request.cookies.get(name)
            if value:
                return _strip_bearer(value)
        return None

    def decode(self, token: str) -> SessionIdentity:
        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # Expiry is checked against the injected clock below.
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise Unauthenticated() from exc

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or exp <= self._clock().timestamp():
            raise Unauthenticated()

        try:
            return SessionIdentity(
                id=claims["sub"],
                email=claims["email"],
                role=claims["role"],
                name=claims.get("name"),
            )
        except (KeyError, ValidationError) as exc:
            raise Unauthenticated() from exc

    def guard(self, request: Request) -> SessionIdentity:
        """Resolve the caller's identity or raise ``Unauthenticated``.

        Missing, malformed, forged and expired tokens are not told apart.
        """
        token = self.extract_token(request)
        if token is None:
            raise Unauthenticated()
        identity = self.decode(token)
        request.state.identity = identity
        return identity

    # ── Cookies ─────────────────────────────────────────────────────
    def set_session_cookie(self, response: Response, token: str) -> None:
        response.set_cookie(
            key=self.cookie_names[0],
            value=token,
            max_age=int(self.lifetime.total_seconds()),
            path="/",
            secure=self.cookie_secure,
            httponly=True,
            samesite=self.cookie_samesite,
        )

    def end_session(self, response: Response) -> None:
        for name in self.cookie_names:
            response.delete_cookie(
                key=name,
                path="/",
                secure=self.cookie_secure,
                httponly=True,
                samesite=self.cookie_samesite,
            )
