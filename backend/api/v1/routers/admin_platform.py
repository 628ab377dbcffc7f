"""
Admin Platform Router — teams, platform mode, audit logs, staff messages,
webhook configuration and the customer bot.
"""

from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_admin
from db.models import Team
from events import log
from events.customer_bot import CustomerBot
from inventory import ledger
from notifications import chat, webhook
from teams import service as teams

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class TeamCreateRequest(BaseModel):
    name: str


class ModeRequest(BaseModel):
    mode: str


class StaffMessageRequest(BaseModel):
    text: str
    teamId: str | None = Field(default=None, description="Omit or 'all' to broadcast")


class WebhookRequest(BaseModel):
    teamId: str
    webhookUrl: str


class BotRequest(BaseModel):
    teamId: str | None = None
    count: int = Field(default=5, ge=1, le=100)


def _team_dict(team: Team, include_key: bool = True) -> dict:
    data = {"teamId": team.team_id, "name": team.name, "mode": team.mode}
    if include_key:
        data["apiKey"] = team.api_key
    return data


async def _require_team(db: AsyncSession, team_id: str) -> Team:
    team = await teams.get_team(db, team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


# ─── Teams ──────────────────────────────────────────────────────────────────


@router.get("/teams")
async def list_teams(
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"teams": [_team_dict(t) for t in await teams.list_teams(db)]}


@router.post("/teams", status_code=status.HTTP_201_CREATED)
async def create_team(
    body: TeamCreateRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Register a team, seed its inventory from the catalog and issue its API key."""
    team = await teams.create_team(db, body.name)
    return _team_dict(team)


@router.get("/teams/{team_id}")
async def get_team(
    team_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return _team_dict(await _require_team(db, team_id))


@router.post("/teams/{team_id}/api-key")
async def regenerate_api_key(
    team_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    api_key = await teams.regenerate_api_key(db, team_id)
    return {"teamId": team_id, "apiKey": api_key}


# ─── Platform mode ──────────────────────────────────────────────────────────


@router.get("/mode")
async def get_mode(
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"mode": await teams.get_platform_mode(db)}


@router.post("/mode")
async def set_mode(
    body: ModeRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Switch every team between development and judging; API keys are reissued."""
    updated = await teams.set_mode(db, body.mode)
    return {"mode": body.mode, "message": f"Platform mode changed to {body.mode}", "teams": len(updated)}


# ─── Audit ──────────────────────────────────────────────────────────────────


@router.get("/audit/{kind}")
async def audit_log(
    kind: Literal["events", "inventory", "messages"],
    limit: int = Query(100, ge=1, le=1000),
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if kind == "events":
        logs = [e.to_dict() for e in await log.get_recent_events(db, limit)]
    elif kind == "inventory":
        logs = [e.to_dict() for e in await ledger.list_inventory_events(db, limit=limit)]
    else:
        logs = [m.to_dict() for m in await chat.get_all_messages(db, limit)]
    return {"type": kind, "logs": logs, "count": len(logs)}


# ─── Messages ───────────────────────────────────────────────────────────────


@router.post("/messages", status_code=status.HTTP_204_NO_CONTENT)
async def send_staff_message(
    body: StaffMessageRequest,
    background_tasks: BackgroundTasks,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Message one team, or every team when ``teamId`` is omitted or ``all``."""
    if not body.teamId or body.teamId == "all":
        messages = await chat.broadcast(db, "staff", body.text)
    else:
        messages = [await chat.send_message(db, body.teamId, "staff", body.text)]

    for message in messages:
        url = await webhook.resolve_webhook_url(db, message.team_id)
        if url:
            background_tasks.add_task(webhook.deliver, url, message.to_dict())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/messages")
async def list_messages(
    limit: int = Query(50, ge=1, le=1000),
    sessionId: str | None = None,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if sessionId:
        messages = await chat.get_session_messages(db, sessionId)
    else:
        messages = await chat.get_all_messages(db, limit)
    return {"messages": [m.to_dict() for m in messages]}


# ─── Webhooks ───────────────────────────────────────────────────────────────


@router.get("/webhooks")
async def list_webhooks(
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"webhooks": await webhook.list_webhooks(db)}


@router.post("/webhooks")
async def set_webhook(
    body: WebhookRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    await _require_team(db, body.teamId)
    await webhook.set_webhook_url(db, body.teamId, body.webhookUrl)
    return {"message": "Webhook URL set successfully", "teamId": body.teamId, "webhookUrl": body.webhookUrl}


@router.get("/webhooks/{team_id}")
async def get_webhook(
    team_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return {"teamId": team_id, "webhookUrl": await webhook.get_team_webhook_url(db, team_id)}


@router.delete("/webhooks/{team_id}")
async def delete_webhook(
    team_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not await webhook.remove_webhook_url(db, team_id):
        raise HTTPException(status_code=404, detail="No webhook configured for team")
    return {"message": "Webhook URL removed successfully", "teamId": team_id}


# ─── Customer bot ───────────────────────────────────────────────────────────


@router.post("/bot/generate")
async def generate_bot_events(
    body: BotRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    bot = CustomerBot()
    if body.teamId:
        await _require_team(db, body.teamId)
        produced = {body.teamId: await bot.generate_random_events(db, body.teamId, body.count)}
    else:
        produced = await bot.generate_for_all_teams(db, body.count)
    return {"message": "Bot events generated", "records": produced}
