"""
Events Router — a team's view of its own event stream.

Teams poll for events (most recent first, ``since`` exclusive), poll for due
delayed events, and mark events they have handled. While the platform is in
development mode teams may also submit events of their own.
"""

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_development_mode, require_scope, require_team
from core.config import get_settings
from core.errors import NotFoundError
from events import log
from notifications import webhook

router = APIRouter(prefix="/api/events", tags=["events"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class EventCreateRequest(BaseModel):
    id: str | None = Field(default=None, description="Caller-supplied id; resubmitting it is a no-op")
    type: str
    payload: Any
    metadata: dict | None = None


# ─── Endpoints ──────────────────────────────────────────────────────────────


@router.get("")
async def list_events(
    type: str | None = None,
    since: str | None = None,
    limit: int | None = Query(None, ge=1),
    principal: Principal = Depends(require_scope("read:events")),
    db: AsyncSession = Depends(get_db),
):
    """List the team's events, most recent first."""
    settings = get_settings()
    team_id = require_team(principal)
    events = await log.get_events(db, team_id, event_type=type, since=since, limit=limit)
    page_size = min(limit, settings.event_max_limit) if limit else settings.event_default_limit
    return {
        "events": [e.to_dict() for e in events],
        "pagination": {
            "hasMore": bool(events) and len(events) == page_size,
            "nextSince": events[-1].to_dict()["createdAt"] if events else None,
        },
    }


@router.get("/due")
async def list_due_events(
    principal: Principal = Depends(require_scope("read:events")),
    db: AsyncSession = Depends(get_db),
):
    """Delayed events that are now due and not yet processed."""
    team_id = require_team(principal)
    events = await log.get_due_events(db, team_id=team_id)
    return {"events": [e.to_dict() for e in events]}


@router.get("/{event_id}")
async def get_event(
    event_id: str,
    principal: Principal = Depends(require_scope("read:events")),
    db: AsyncSession = Depends(get_db),
):
    team_id = require_team(principal)
    event = await log.get_event_by_id(db, event_id)
    if event is None or event.team_id != team_id:
        raise NotFoundError(f"Event {event_id} not found")
    return event.to_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    body: EventCreateRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_scope("write:events")),
    _mode: str = Depends(require_development_mode),
    db: AsyncSession = Depends(get_db),
):
    """Submit an event for the caller's own team (development mode only)."""
    team_id = require_team(principal)
    event = await log.create_event(db, team_id, body.type, body.payload, body.metadata, event_id=body.id)
    url = await webhook.resolve_webhook_url(db, team_id)
    if url:
        background_tasks.add_task(webhook.deliver, url, event.to_dict())
    return event.to_dict()


@router.post("/{event_id}/processed")
async def mark_event_processed(
    event_id: str,
    principal: Principal = Depends(require_scope("read:events")),
    db: AsyncSession = Depends(get_db),
):
    """Mark one of the team's events as handled. Repeating the call is harmless."""
    team_id = require_team(principal)
    event = await log.get_event_by_id(db, event_id)
    if event is None or event.team_id != team_id:
        raise NotFoundError(f"Event {event_id} not found")
    event = await log.mark_processed(db, event_id)
    return event.to_dict()
