"""
Chaos Injector — deliberate perturbations of the event stream.

    duplicate     → re-submit an existing event id; nothing new is stored
    out-of-order  → create a batch in shuffled order, tagged outOfOrder
    delayed       → create a batch whose events only become due after a delay,
                    pausing between creations to stagger arrival

All of these go through ``events.log.create_event``, so they share its
validation and idempotency rules. Batches are validated up front: a bad
draft, or a draft id owned by another team, rejects the whole batch before
anything is written.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import EventIdConflictError, ValidationError
from core.timeutil import to_iso, utcnow
from db.models import Event
from events.log import check_event, create_event, get_event_by_id, require_event

logger = structlog.get_logger()


@dataclass
class EventDraft:
    """An event waiting to be created for some team."""

    type: str
    payload: dict
    metadata: dict | None = None
    id: str | None = None


async def _check_batch(db: AsyncSession, team_id: str, drafts: list[EventDraft]) -> None:
    if not drafts:
        raise ValidationError("At least one event is required")
    for draft in drafts:
        check_event(team_id, draft.type, draft.payload, draft.metadata, draft.id)
    for draft in drafts:
        if draft.id is None:
            continue
        existing = await get_event_by_id(db, draft.id)
        if existing is not None and existing.team_id != team_id:
            raise EventIdConflictError(draft.id)


async def send_duplicate(db: AsyncSession, event_id: str) -> Event:
    """Re-submit ``event_id`` through the normal create path and return what it yields."""
    original = await require_event(db, event_id)
    duplicate = await create_event(
        db,
        team_id=original.team_id,
        event_type=original.type,
        payload=original.payload,
        metadata=original.event_metadata,
        event_id=original.id,
    )
    logger.info("chaos.duplicate_sent", event_id=event_id, team_id=original.team_id)
    return duplicate


async def send_out_of_order(
    db: AsyncSession,
    team_id: str,
    drafts: list[EventDraft],
    rng: random.Random | None = None,
) -> list[Event]:
    """Create ``drafts`` in a shuffled order, each tagged ``metadata.outOfOrder = true``."""
    await _check_batch(db, team_id, drafts)
    shuffled = list(drafts)
    (rng or random.Random()).shuffle(shuffled)

    created = []
    for draft in shuffled:
        metadata = {**(draft.metadata or {}), "outOfOrder": True}
        created.append(await create_event(db, team_id, draft.type, draft.payload, metadata, draft.id))

    logger.info(
        "chaos.out_of_order_sent",
        team_id=team_id,
        count=len(created),
        order=[e.id for e in created],
    )
    return created


async def send_delayed(
    db: AsyncSession,
    team_id: str,
    drafts: list[EventDraft],
    delay_ms: int,
    stagger_seconds: float | None = None,
    sleep=asyncio.sleep,
) -> list[Event]:
    """
    Create ``drafts`` one at a time with ``delayedUntil = now + delay_ms``.

    Waits ``stagger_seconds`` (settings default) between creations. The
    events are invisible to due polling until their delay has passed.
    """
    if isinstance(delay_ms, bool) or not isinstance(delay_ms, int) or delay_ms < 0:
        raise ValidationError(f"delayMs must be a non-negative integer, got {delay_ms!r}")
    await _check_batch(db, team_id, drafts)
    if stagger_seconds is None:
        stagger_seconds = get_settings().chaos_stagger_seconds

    created = []
    for index, draft in enumerate(drafts):
        if index and stagger_seconds > 0:
            await sleep(stagger_seconds)
        delayed_until = utcnow() + timedelta(milliseconds=delay_ms)
        metadata = {**(draft.metadata or {}), "delayedUntil": to_iso(delayed_until)}
        created.append(await create_event(db, team_id, draft.type, draft.payload, metadata, draft.id))

    logger.info("chaos.delayed_sent", team_id=team_id, count=len(created), delay_ms=delay_ms)
    return created
