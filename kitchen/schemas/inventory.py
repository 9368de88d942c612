"""Pydantic schemas for inventory items and stock movements."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator


# ── Inventory items ─────────────────────────────────────────────────
class InventoryItemCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    sku: str | None = Field(default=None, max_length=64)
    unit: str = Field(min_length=1, max_length=32)
    quantity: float = Field(default=0, ge=0)
    reorder_level: float = Field(default=0, ge=0)
    cost_per_unit: float | None = Field(default=None, ge=0)
    last_restocked: datetime | None = None
    expiry_date: date | None = None

    @field_validator("name", "unit")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class InventoryItemUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    sku: str | None = Field(default=None, max_length=64)
    unit: str | None = Field(default=None, min_length=1, max_length=32)
    quantity: float | None = Field(default=None, ge=0)
    reorder_level: float | None = Field(default=None, ge=0)
    cost_per_unit: float | None = Field(default=None, ge=0)
    last_restocked: datetime | None = None
    expiry_date: date | None = None


class InventoryItemRead(BaseModel):
    id: str
    name: str
    sku: str | None
    unit: str
    quantity: float
    reorder_level: float
    cost_per_unit: float | None
    last_restocked: datetime | None
    expiry_date: date | None
    created_at: datetime | None
    updated_at: datetime | None

    model_config = {"from_attributes": True}


class DeleteResponse(BaseModel):
    success: bool
    message: str


# ── Stock movements ─────────────────────────────────────────────────
class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


class StockMovementCreate(BaseModel):
    inventory_id: str
    quantity: float = Field(gt=0)
    type: MovementType
    note: str | None = Field(default=None, max_length=500)


class StockMovementRead(BaseModel):
    id: str
    inventory_id: str
    quantity: float
    type: str
    note: str | None
    created_at: datetime | None

    model_config = {"from_attributes": True}


class StockMovementResult(BaseModel):
    movement: StockMovementRead
    item: InventoryItemRead
