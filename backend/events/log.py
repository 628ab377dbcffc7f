"""
Event Log — append-only, idempotent store of domain events.

Creation is get-or-create keyed by the event id: the primary key is the
uniqueness guarantee, and an insert that loses a race falls back to the row
that won it. Re-submitting the same id returns the stored event unchanged,
however many times it is retried.

Events are never updated except for the single ``processed_at`` stamp.
Delayed events become due purely through data (``delayed_until <= now``);
consumers poll ``get_due_events``.
"""

from datetime import datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import EventIdConflictError, NotFoundError, ValidationError
from core.timeutil import parse_iso, to_iso, utcnow
from db.models import Event, new_id
from events.validation import (
    validate_event_id,
    validate_event_type,
    validate_metadata,
    validate_payload,
    validate_team_id,
)

logger = structlog.get_logger()


def check_event(team_id, event_type, payload, metadata=None, event_id=None) -> dict | None:
    """Run every create-time check without touching the database; returns cleaned metadata."""
    validate_team_id(team_id)
    validate_event_type(event_type)
    validate_payload(event_type, payload)
    validate_event_id(event_id)
    return validate_metadata(metadata)


async def _load(db: AsyncSession, event_id: str) -> Event | None:
    result = await db.execute(select(Event).where(Event.id == event_id).execution_options(populate_existing=True))
    return result.scalar_one_or_none()


def _same_team(existing: Event, team_id: str) -> Event:
    if existing.team_id != team_id:
        logger.warning("event.id_conflict", event_id=existing.id, team_id=team_id, owner=existing.team_id)
        raise EventIdConflictError(existing.id)
    logger.info("event.duplicate", event_id=existing.id, team_id=existing.team_id, type=existing.type)
    return existing


async def create_event(
    db: AsyncSession,
    team_id: str,
    event_type: str,
    payload,
    metadata: dict | None = None,
    event_id: str | None = None,
) -> Event:
    """
    Append an event to the log.

    If ``event_id`` names an event that already exists for ``team_id``, that
    event is returned untouched and nothing is written. An id held by another
    team raises EventIdConflictError.
    """
    metadata = check_event(team_id, event_type, payload, metadata, event_id)

    if event_id is not None:
        existing = await _load(db, event_id)
        if existing is not None:
            return _same_team(existing, team_id)

    delayed_until = None
    if metadata and metadata.get("delayedUntil"):
        delayed_until = parse_iso(metadata["delayedUntil"])

    event = Event(
        id=event_id or new_id(),
        team_id=team_id,
        type=event_type,
        payload=payload,
        created_at=utcnow(),
        event_metadata=metadata,
        delayed_until=delayed_until,
    )
    try:
        async with db.begin_nested():
            db.add(event)
    except IntegrityError:
        # Lost the insert race for a caller-supplied id
        existing = await _load(db, event.id)
        if existing is None:
            raise
        return _same_team(existing, team_id)

    await db.commit()
    logger.info(
        "event.created",
        audit=True,
        event_id=event.id,
        team_id=team_id,
        type=event_type,
        delayed_until=to_iso(delayed_until),
    )
    return event


async def get_event_by_id(db: AsyncSession, event_id: str) -> Event | None:
    return await _load(db, event_id)


async def require_event(db: AsyncSession, event_id: str) -> Event:
    event = await _load(db, event_id)
    if event is None:
        raise NotFoundError(f"Event {event_id} not found")
    return event


def _resolve_limit(limit: int | None) -> int:
    settings = get_settings()
    if limit is None:
        return settings.event_default_limit
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer, got {limit!r}")
    return min(limit, settings.event_max_limit)


async def get_events(
    db: AsyncSession,
    team_id: str,
    event_type: str | None = None,
    since: str | datetime | None = None,
    limit: int | None = None,
) -> list[Event]:
    """Events for one team, most recent first. ``since`` is exclusive."""
    query = select(Event).where(Event.team_id == team_id)
    if event_type:
        query = query.where(Event.type == event_type)
    if since is not None:
        try:
            since_ts = parse_iso(since)
        except ValueError as exc:
            raise ValidationError(f"since is not an ISO timestamp: {since!r}") from exc
        query = query.where(Event.created_at > since_ts)
    query = query.order_by(Event.created_at.desc(), Event.id.desc()).limit(_resolve_limit(limit))

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_recent_events(db: AsyncSession, limit: int | None = None) -> list[Event]:
    """Most recent events across all teams (staff audit view)."""
    result = await db.execute(select(Event).order_by(Event.created_at.desc(), Event.id.desc()).limit(_resolve_limit(limit)))
    return list(result.scalars().all())


async def replay_event(
    db: AsyncSession,
    event_id: str,
    delay_until: str | None = None,
    replay_id: str | None = None,
) -> Event:
    """Re-emit an event under a new id, tagged ``replayOf`` (and optionally delayed)."""
    original = await require_event(db, event_id)

    metadata = {"replayOf": original.id}
    correlation_id = (original.event_metadata or {}).get("correlationId")
    if correlation_id:
        metadata["correlationId"] = correlation_id
    if delay_until is not None:
        metadata["delayedUntil"] = delay_until

    replay = await create_event(
        db,
        team_id=original.team_id,
        event_type=original.type,
        payload=original.payload,
        metadata=metadata,
        event_id=replay_id,
    )
    logger.info("event.replayed", event_id=replay.id, replay_of=original.id, team_id=original.team_id)
    return replay


async def get_due_events(
    db: AsyncSession,
    now: datetime | None = None,
    team_id: str | None = None,
    limit: int | None = None,
) -> list[Event]:
    """Delayed events whose time has come and which nobody has marked processed, oldest first."""
    now = now or utcnow()
    query = select(Event).where(
        Event.delayed_until.isnot(None),
        Event.delayed_until <= now,
        Event.processed_at.is_(None),
    )
    if team_id is not None:
        query = query.where(Event.team_id == team_id)
    query = query.order_by(Event.created_at.asc(), Event.id.asc()).limit(_resolve_limit(limit))

    result = await db.execute(query)
    return list(result.scalars().all())


async def mark_processed(db: AsyncSession, event_id: str) -> Event:
    """Stamp ``processed_at`` once. Calling it again is a no-op."""
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.processed_at.is_(None))
        .values(processed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        event = await require_event(db, event_id)
        logger.debug("event.already_processed", event_id=event_id)
        return event

    await db.commit()
    event = await require_event(db, event_id)
    logger.info("event.processed", event_id=event_id, team_id=event.team_id)
    return event


async def claim_event(db: AsyncSession, event_id: str) -> bool:
    """
    Atomically stamp ``processed_at`` on an unprocessed event.

    Returns False when the event was already processed (or claimed by another
    worker). The stamp is committed before the caller acts on the event, so
    only one caller ever gets True.
    """
    result = await db.execute(
        update(Event)
        .where(Event.id == event_id, Event.processed_at.is_(None))
        .values(processed_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        return False
    await db.commit()
    return True


async def unclaim_event(db: AsyncSession, event_id: str) -> None:
    """Clear a claim whose work failed so the event can be applied again."""
    await db.execute(
        update(Event)
        .where(Event.id == event_id)
        .values(processed_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("event.claim_released", event_id=event_id)
