"""
Error taxonomy + global exception handlers.

Auth and validation failures become structured JSON responses; anything
unexpected is logged in full and surfaced as a generic 500 so internals
never leak to clients.  ``MigrationFailure`` is never turned into a
response: it aborts startup.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class KitchenError(Exception):
    """Base class for errors raised by this service."""


class InvalidCredentials(KitchenError):
    """Unknown user or wrong password; callers must not learn which."""


class Unauthenticated(KitchenError):
    """No session token, or one that is malformed, expired or forged."""


class MigrationFailure(KitchenError):
    def __init__(self, script: str, reason: str) -> None:
        self.script = script
        self.reason = reason
        super().__init__(f"Migration {script} failed: {reason}")


_BEARER_CHALLENGE = {"WWW-Authenticate": "Bearer"}


async def _invalid_credentials_handler(
    _request: Request, _exc: InvalidCredentials
) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Invalid credentials", "success": False},
        headers=_BEARER_CHALLENGE,
    )


async def _unauthenticated_handler(_request: Request, _exc: Unauthenticated) -> JSONResponse:
    return JSONResponse(
        status_code=401,
        content={"detail": "Not authenticated", "success": False},
        headers=_BEARER_CHALLENGE,
    )


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": jsonable_encoder(exc.errors()),
            "success": False,
        },
    )


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
        headers=getattr(exc, "headers", None),
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.error("Database integrity error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=409,
        content={"detail": "Database constraint violation", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(InvalidCredentials, _invalid_credentials_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Unauthenticated, _unauthenticated_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
