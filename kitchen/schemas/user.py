"""Pydantic schemas for User CRUD."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class Role(str, Enum):
    ADMIN = "admin"
    KITCHEN_STAFF = "kitchen_staff"
    INVENTORY_MANAGER = "inventory_manager"
    DELIVERY_STAFF = "delivery_staff"


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=6)
    name: str | None = None
    role: Role = Role.KITCHEN_STAFF

    @field_validator("email")
    @classmethod
    def _normalise_email(cls, v: str) -> str:
        v = v.strip().lower()
        if "@" not in v:
            raise ValueError("Invalid email address")
        return v


class UserRead(BaseModel):
    """Safe user view: never carries the password hash."""

    id: str
    email: str
    role: str
    name: str | None = None

    model_config = {"from_attributes": True}
