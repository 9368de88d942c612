"""
Inventory item + stock movement models.

An item's ``quantity`` is the running balance; every change made through
the stock-movement endpoint is recorded as a ``StockMovement`` row in the
same transaction.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text

from kitchen.db.base import Base


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id: str = Column(String(36), primary_key=True, default=_new_id)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False, index=True)  # type: ignore[assignment]
    sku: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    unit: str = Column(String(32), nullable=False)  # type: ignore[assignment]
    quantity: float = Column(Numeric(12, 3, asdecimal=False), nullable=False, default=0)  # type: ignore[assignment]
    reorder_level: float = Column(Numeric(12, 3, asdecimal=False), nullable=False, default=0)  # type: ignore[assignment]
    cost_per_unit: float | None = Column(Numeric(12, 2, asdecimal=False), nullable=True)  # type: ignore[assignment]
    last_restocked: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    expiry_date: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]


class StockMovement(Base):
    __tablename__ = "stock_movements"

    id: str = Column(String(36), primary_key=True, default=_new_id)  # type: ignore[assignment]
    inventory_id: str = Column(  # type: ignore[assignment]
        String(36),
        ForeignKey("inventory_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    quantity: float = Column(Numeric(12, 3, asdecimal=False), nullable=False)  # type: ignore[assignment]
    type: str = Column(String(8), nullable=False)  # type: ignore[assignment]  # in | out
    note: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)  # type: ignore[assignment]
