"""
Admin Events Router — staff control over the event stream.

Inject and replay events, trigger chaos (duplicates, shuffled batches,
delayed batches) and explicitly apply logged events to the inventory ledger.
"""

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_admin
from db.models import EVENT_TYPES
from events import chaos, coordinator, log
from notifications import webhook

router = APIRouter(prefix="/api/admin", tags=["admin"])


# ─── Schemas ────────────────────────────────────────────────────────────────


class InjectOptions(BaseModel):
    delayUntil: str | None = None


class InjectEventRequest(BaseModel):
    teamId: str
    type: str
    payload: Any
    id: str | None = None
    options: InjectOptions | None = None


class ReplayRequest(BaseModel):
    delayUntil: str | None = None


class DuplicateRequest(BaseModel):
    eventId: str


class DraftModel(BaseModel):
    type: str
    payload: Any
    metadata: dict | None = None
    id: str | None = None

    def to_draft(self) -> chaos.EventDraft:
        return chaos.EventDraft(type=self.type, payload=self.payload, metadata=self.metadata, id=self.id)


class OutOfOrderRequest(BaseModel):
    teamId: str
    events: list[DraftModel]


class DelayedRequest(BaseModel):
    teamId: str
    events: list[DraftModel]
    delayMs: int | None = Field(default=None, ge=0)
    delayMinutes: float | None = Field(default=None, ge=0)


class ProcessDueRequest(BaseModel):
    limit: int | None = Field(default=None, ge=1)


async def _notify(db: AsyncSession, background_tasks: BackgroundTasks, events) -> None:
    for event in events:
        url = await webhook.resolve_webhook_url(db, event.team_id)
        if url:
            background_tasks.add_task(webhook.deliver, url, event.to_dict())


# ─── Inject / replay ────────────────────────────────────────────────────────


@router.post("/events", status_code=status.HTTP_201_CREATED)
async def inject_event(
    body: InjectEventRequest,
    background_tasks: BackgroundTasks,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Inject an event for any team. Only the platform's known event types are accepted here."""
    if body.type not in EVENT_TYPES:
        raise HTTPException(status_code=400, detail=f"Invalid event type: {body.type}")

    metadata = None
    if body.options and body.options.delayUntil:
        metadata = {"delayedUntil": body.options.delayUntil}
    event = await log.create_event(db, body.teamId, body.type, body.payload, metadata, event_id=body.id)
    await _notify(db, background_tasks, [event])
    return event.to_dict()


@router.post("/events/{event_id}/replay", status_code=status.HTTP_201_CREATED)
async def replay_event(
    event_id: str,
    background_tasks: BackgroundTasks,
    body: ReplayRequest | None = None,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    replay = await log.replay_event(db, event_id, delay_until=body.delayUntil if body else None)
    await _notify(db, background_tasks, [replay])
    return replay.to_dict()


@router.get("/events")
async def recent_events(
    limit: int = Query(100, ge=1),
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    events = await log.get_recent_events(db, limit)
    return {"events": [e.to_dict() for e in events]}


# ─── Chaos ──────────────────────────────────────────────────────────────────


@router.post("/chaos/duplicate")
async def chaos_duplicate(
    body: DuplicateRequest,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    event = await chaos.send_duplicate(db, body.eventId)
    return {"event": event.to_dict(), "note": "Duplicate event returned (idempotent)"}


@router.post("/chaos/out-of-order")
async def chaos_out_of_order(
    body: OutOfOrderRequest,
    background_tasks: BackgroundTasks,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    created = await chaos.send_out_of_order(db, body.teamId, [d.to_draft() for d in body.events])
    await _notify(db, background_tasks, created)
    return {"events": [e.to_dict() for e in created], "note": "Events sent out of order"}


@router.post("/chaos/delayed")
async def chaos_delayed(
    body: DelayedRequest,
    background_tasks: BackgroundTasks,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Create a delayed batch. ``delayMs`` wins over ``delayMinutes``; the default is 5 minutes."""
    if body.delayMs is not None:
        delay_ms = body.delayMs
    else:
        delay_ms = int((body.delayMinutes if body.delayMinutes is not None else 5) * 60 * 1000)
    created = await chaos.send_delayed(db, body.teamId, [d.to_draft() for d in body.events], delay_ms)
    await _notify(db, background_tasks, created)
    return {"events": [e.to_dict() for e in created], "note": f"Events delayed by {delay_ms} ms"}


# ─── Ledger application ─────────────────────────────────────────────────────


@router.post("/events/{event_id}/apply")
async def apply_event(
    event_id: str,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Apply a logged event to the inventory ledger (at most once)."""
    outcome = await coordinator.apply_event(db, event_id)
    return outcome.to_dict()


@router.post("/events/process-due")
async def process_due(
    body: ProcessDueRequest | None = None,
    _admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    outcomes = await coordinator.process_due_events(db, limit=body.limit if body else None)
    return {"processed": len(outcomes), "outcomes": [o.to_dict() for o in outcomes]}
