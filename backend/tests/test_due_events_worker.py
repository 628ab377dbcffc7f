import asyncio
from datetime import timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.timeutil import to_iso, utcnow
from db.session import Base
from workers.due_events import process_due_events


def test_sweep_applies_only_due_events_once(tmp_path, monkeypatch):
    from events.log import create_event, get_event_by_id
    from inventory.catalog import seed_catalog
    from inventory.ledger import get_inventory_item
    from teams.service import create_team

    db_path = tmp_path / "sweep.db"
    db_url = f"sqlite+aiosqlite:///{db_path}"
    engine = create_async_engine(db_url, echo=False)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def _seed() -> dict:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with session_factory() as db:
            await seed_catalog(db)
            team = await create_team(db, "Sweep Team")
            past = {"delayedUntil": to_iso(utcnow() - timedelta(seconds=2))}
            future = {"delayedUntil": to_iso(utcnow() + timedelta(hours=1))}
            due = await create_event(db, team.team_id, "inventory.restocked", {"sku": "IT-004", "quantity": 4}, past)
            later = await create_event(db, team.team_id, "inventory.restocked", {"sku": "IT-004", "quantity": 9}, future)
            return {"team_id": team.team_id, "due": due.id, "later": later.id}

    ids = asyncio.run(_seed())

    monkeypatch.setenv("DATABASE_URL", db_url)
    from core.config import get_settings

    get_settings.cache_clear()

    result = process_due_events.run()
    assert result["status"] == "success"
    assert result["processed"] == 1
    assert result["outcomes"] == {"applied": 1}

    again = process_due_events.run()
    assert again["processed"] == 0

    async def _check() -> None:
        async with session_factory() as db:
            assert (await get_inventory_item(db, ids["team_id"], "IT-004")).stock == 14
            assert (await get_event_by_id(db, ids["due"])).processed_at is not None
            assert (await get_event_by_id(db, ids["later"])).processed_at is None
        await engine.dispose()

    asyncio.run(_check())


def test_beat_schedule_routes_sweep_to_events_queue():
    from workers.celery_app import celery_app

    entry = celery_app.conf.beat_schedule["process-due-events"]
    assert entry["task"] == "workers.due_events.process_due_events"
    assert celery_app.conf.task_routes["workers.due_events.*"] == {"queue": "events"}
