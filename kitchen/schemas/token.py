"""Pydantic schemas for login and session tokens."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator

from kitchen.schemas.user import UserRead


class LoginRequest(BaseModel):
    # ``username`` is accepted for older clients and treated as the email.
    email: str | None = None
    username: str | None = None
    password: str = Field(min_length=1)

    @model_validator(mode="after")
    def _require_identifier(self) -> "LoginRequest":
        if not (self.email or self.username):
            raise ValueError("email or username is required")
        return self

    @property
    def identifier(self) -> str:
        return self.email or self.username or ""


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserRead


class SessionIdentity(BaseModel):
    """Identity decoded from a valid session token."""

    id: str
    email: str
    role: str
    name: str | None = None


class LogoutResponse(BaseModel):
    success: bool = True
    message: str
