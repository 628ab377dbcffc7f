"""
Teams Router — a team may look up its own record.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_scope
from teams.service import get_team

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.get("/{team_id}")
async def get_own_team(
    team_id: str,
    principal: Principal = Depends(require_scope("read:inventory")),
    db: AsyncSession = Depends(get_db),
):
    if principal.team_id != team_id:
        raise HTTPException(status_code=403, detail="Access denied")
    team = await get_team(db, team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return {"teamId": team.team_id, "name": team.name, "mode": team.mode}
