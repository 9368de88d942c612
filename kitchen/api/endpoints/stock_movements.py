"""
Stock movements — every stock change is a movement row plus a balance update.

Both writes happen in one transaction on one connection; the item row is
locked (``SELECT ... FOR UPDATE`` on PostgreSQL) so concurrent movements on
the same item serialise.  Outgoing movements clamp the balance at zero.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen.api.deps import get_current_identity, get_db
from kitchen.models.inventory import InventoryItem, StockMovement
from kitchen.schemas.inventory import (
    InventoryItemRead,
    MovementType,
    StockMovementCreate,
    StockMovementRead,
    StockMovementResult,
)
from kitchen.schemas.token import SessionIdentity

router = APIRouter(prefix="/stock-movements", tags=["stock-movements"])
logger = logging.getLogger(__name__)


async def apply_stock_movement(
    db: AsyncSession, body: StockMovementCreate
) -> tuple[StockMovement, InventoryItem]:
    """Record ``body`` and adjust the item's balance atomically.

    Commits on success; on any error both writes are rolled back.
    """
    async with db.begin():
        result = await db.execute(
            select(InventoryItem).where(InventoryItem.id == body.inventory_id).with_for_update()
        )
        item = result.scalar_one_or_none()
        if item is None:
            raise HTTPException(status_code=404, detail="Inventory item not found")

        movement = StockMovement(
            inventory_id=item.id,
            quantity=body.quantity,
            type=body.type.value,
            note=body.note,
        )
        db.add(movement)

        now = datetime.now(timezone.utc)
        delta = body.quantity if body.type == MovementType.IN else -body.quantity
        item.quantity = max(0.0, (item.quantity or 0.0) + delta)
        if body.type == MovementType.IN:
            item.last_restocked = now
        item.updated_at = now

    return movement, item


@router.post("", response_model=StockMovementResult, status_code=201)
async def record_stock_movement(
    body: StockMovementCreate,
    db: AsyncSession = Depends(get_db),
    identity: SessionIdentity = Depends(get_current_identity),
) -> StockMovementResult:
    movement, item = await apply_stock_movement(db, body)
    logger.info(
        "Stock %s of %s on %s by %s (balance now %s)",
        movement.type,
        movement.quantity,
        item.id,
        identity.email,
        item.quantity,
    )
    return StockMovementResult(
        movement=StockMovementRead.model_validate(movement),
        item=InventoryItemRead.model_validate(item),
    )


@router.get("", response_model=list[StockMovementRead])
async def list_stock_movements(
    db: AsyncSession = Depends(get_db),
    _identity: SessionIdentity = Depends(get_current_identity),
) -> list[StockMovement]:
    result = await db.execute(
        select(StockMovement).order_by(StockMovement.created_at.desc())
    )
    return list(result.scalars().all())
