"""Periodic sweep that applies due delayed events to the inventory ledger."""

from __future__ import annotations

import asyncio
from collections import Counter
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()


async def sweep(db: AsyncSession, limit: int | None = None) -> dict:
    """Apply every due event once and summarize the outcomes by status."""
    from events.coordinator import process_due_events as apply_due

    outcomes = await apply_due(db, limit=limit)
    return {
        "status": "success",
        "processed": len(outcomes),
        "outcomes": dict(Counter(o.status for o in outcomes)),
        "triggered_at": datetime.now(timezone.utc).isoformat(),
    }


@celery_app.task(
    name="workers.due_events.process_due_events",
    bind=True,
    max_retries=3,
    default_retry_delay=30,
    acks_late=True,
)
def process_due_events(self, limit: int | None = None):
    """Beat entry point: open a private engine, sweep, dispose."""
    from core.config import get_settings

    async def _run():
        settings = get_settings()
        engine = create_async_engine(settings.database_url)
        try:
            async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
            async with async_session() as db:
                summary = await sweep(db, limit=limit)
            summary["run_id"] = self.request.id or "manual"
            logger.info("due_events.sweep_complete", **summary)
            return summary
        finally:
            await engine.dispose()

    try:
        return asyncio.run(_run())
    except Exception as exc:  # noqa: BLE001
        logger.error("due_events.sweep_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)
