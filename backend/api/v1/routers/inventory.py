"""
Inventory Router — a team's current stock, reservations and availability.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_scope, require_team
from core.errors import NotFoundError
from inventory import ledger

router = APIRouter(prefix="/api/inventory", tags=["inventory"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class InventoryItemResponse(BaseModel):
    teamId: str
    sku: str
    name: str
    category: str
    stock: int
    reserved: int
    available: int
    version: int
    updatedAt: str


class InventoryResponse(BaseModel):
    teamId: str
    inventory: list[InventoryItemResponse]


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("", response_model=InventoryResponse)
async def get_inventory(
    principal: Principal = Depends(require_scope("read:inventory")),
    db: AsyncSession = Depends(get_db),
):
    """Current inventory for the caller's team."""
    team_id = require_team(principal)
    records = await ledger.get_inventory(db, team_id)
    return InventoryResponse(
        teamId=team_id,
        inventory=[InventoryItemResponse(**r.to_dict()) for r in records],
    )


@router.get("/{sku}", response_model=InventoryItemResponse)
async def get_inventory_item(
    sku: str,
    principal: Principal = Depends(require_scope("read:inventory")),
    db: AsyncSession = Depends(get_db),
):
    team_id = require_team(principal)
    record = await ledger.get_inventory_item(db, team_id, sku)
    if record is None:
        raise NotFoundError(f"Inventory not found for {team_id}/{sku}")
    return InventoryItemResponse(**record.to_dict())
