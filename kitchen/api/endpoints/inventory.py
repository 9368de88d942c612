"""
Inventory item CRUD.

- GET requires any authenticated user.
- POST / PUT / DELETE require the admin or inventory_manager role.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kitchen.api.deps import get_current_identity, get_db, require_inventory_manager
from kitchen.models.inventory import InventoryItem
from kitchen.schemas.inventory import (
    DeleteResponse,
    InventoryItemCreate,
    InventoryItemRead,
    InventoryItemUpdate,
)
from kitchen.schemas.token import SessionIdentity

router = APIRouter(prefix="/inventory", tags=["inventory"])
logger = logging.getLogger(__name__)


async def _get_item_or_404(db: AsyncSession, item_id: str) -> InventoryItem:
    result = await db.execute(select(InventoryItem).where(InventoryItem.id == item_id))
    item = result.scalar_one_or_none()
    if item is None:
        raise HTTPException(status_code=404, detail="Inventory item not found")
    return item


@router.get("", response_model=list[InventoryItemRead])
async def list_items(
    db: AsyncSession = Depends(get_db),
    _identity: SessionIdentity = Depends(get_current_identity),
) -> list[InventoryItem]:
    result = await db.execute(select(InventoryItem).order_by(InventoryItem.name.asc()))
    return list(result.scalars().all())


@router.post("", response_model=InventoryItemRead, status_code=201)
async def create_item(
    body: InventoryItemCreate,
    db: AsyncSession = Depends(get_db),
    identity: SessionIdentity = Depends(require_inventory_manager),
) -> InventoryItem:
    item = InventoryItem(**body.model_dump())
    db.add(item)
    await db.commit()
    await db.refresh(item)
    logger.info("Inventory item %s created by %s", item.name, identity.email)
    return item


@router.put("/{item_id}", response_model=InventoryItemRead)
async def update_item(
    item_id: str,
    body: InventoryItemUpdate,
    db: AsyncSession = Depends(get_db),
    _identity: SessionIdentity = Depends(require_inventory_manager),
) -> InventoryItem:
    """Partial update: missing or null fields keep their current value."""
    item = await _get_item_or_404(db, item_id)
    for field, value in body.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(item, field, value)
    item.updated_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(item)
    return item


@router.delete("/{item_id}", response_model=DeleteResponse)
async def delete_item(
    item_id: str,
    db: AsyncSession = Depends(get_db),
    identity: SessionIdentity = Depends(require_inventory_manager),
) -> DeleteResponse:
    item = await _get_item_or_404(db, item_id)
    await db.delete(item)
    await db.commit()
    logger.info("Inventory item %s deleted by %s", item_id, identity.email)
    return DeleteResponse(success=True, message="Inventory item deleted successfully")
