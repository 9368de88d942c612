"""
User model — the credential store behind login.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String

from kitchen.db.base import Base


class User(Base):
    __tablename__ = "users"

    id: str = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    password_hash: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    role: str = Column(  # type: ignore[assignment]
        String(32),
        nullable=False,
        default="kitchen_staff",
        server_default="kitchen_staff",
    )  # admin | kitchen_staff | inventory_manager | delivery_staff
    name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
