"""
Admin Inventory Router — staff stock operations across all teams.

Every mutation goes through the ledger's guarded write, so a stale
``expectedVersion`` surfaces as 409 and is never retried here.
"""

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_admin
from inventory import ledger

router = APIRouter(prefix="/api/admin/inventory", tags=["admin"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class InventoryChangeRequest(BaseModel):
    teamId: str
    sku: str
    quantity: int
    type: Literal["restock", "adjust", "release", "cancel"]
    reason: str | None = None
    orderId: str | None = None
    expectedVersion: int | None = None


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.post("", status_code=status.HTTP_204_NO_CONTENT)
async def change_inventory(
    body: InventoryChangeRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Staff stock change.

    ``restock`` and ``adjust`` act as staff. ``release`` ships units held
    by an order; ``cancel`` hands them back to the available pool. Both
    need ``orderId``.
    """
    if body.type == "restock":
        await ledger.restock(db, body.teamId, body.sku, body.quantity, by="staff", expected_version=body.expectedVersion)
    elif body.type == "adjust":
        if not body.reason:
            raise HTTPException(status_code=400, detail="Reason is required for manual adjustments")
        await ledger.adjust(
            db,
            body.teamId,
            body.sku,
            body.quantity,
            reason=body.reason,
            by="staff",
            expected_version=body.expectedVersion,
        )
    else:
        if not body.orderId:
            raise HTTPException(status_code=400, detail=f"orderId is required for {body.type}")
        if body.type == "release":
            released = await ledger.release(
                db,
                body.teamId,
                body.sku,
                body.quantity,
                order_id=body.orderId,
                by="staff",
                expected_version=body.expectedVersion,
            )
            if not released:
                raise HTTPException(status_code=404, detail=f"Inventory not found for {body.teamId}/{body.sku}")
        else:
            await ledger.cancel_reservation(
                db,
                body.teamId,
                body.sku,
                body.quantity,
                order_id=body.orderId,
                by="staff",
                expected_version=body.expectedVersion,
            )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("")
async def list_all_inventory(
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    records = await ledger.get_all_inventory(db)
    return {"inventory": [r.to_dict() for r in records]}


@router.get("/history")
async def inventory_history(
    teamId: str | None = None,
    sku: str | None = None,
    limit: int = Query(100, ge=1, le=1000),
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Ledger audit trail, optionally narrowed to a team and/or SKU."""
    entries = await ledger.list_inventory_events(db, team_id=teamId, sku=sku, limit=limit)
    return {"entries": [e.to_dict() for e in entries]}


@router.get("/{team_id}")
async def team_inventory(
    team_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    records = await ledger.get_inventory(db, team_id)
    return {"teamId": team_id, "inventory": [r.to_dict() for r in records]}
