"""
End-to-end walkthrough of a single team's day on ChaosMart.

Covers:
  - Inventory initialization from a one-SKU catalog
  - Restock with its audit entry
  - Reservation refused for lack of stock, then granted
  - Idempotent event creation by caller-supplied id
  - Out-of-order batch delivery
"""

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from db.models import Event
from db.session import Base
from events import chaos, log
from inventory import ledger
from inventory.catalog import CatalogEntry, seed_catalog

ORDER = {"orderId": "O1", "items": [{"sku": "IT-001", "qty": 2}]}


@pytest.fixture
async def db():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)() as session:
        await seed_catalog(session, [CatalogEntry("IT-001", "NVMe SSD 1TB", "Storage", 20)])
        await ledger.initialize_team(session, "t1")
        yield session
    await engine.dispose()


@pytest.mark.asyncio
class TestInventoryWalkthrough:
    async def test_initial_state(self, db):
        item = await ledger.get_inventory_item(db, "t1", "IT-001")
        assert (item.stock, item.reserved, item.available, item.version) == (20, 0, 20, 1)

    async def test_restock_reserve_sequence(self, db):
        item = await ledger.restock(db, "t1", "IT-001", 5, by="staff")
        assert (item.stock, item.version) == (25, 2)

        [entry] = await ledger.list_inventory_events(db, team_id="t1", sku="IT-001")
        assert (entry.type, entry.previous_stock, entry.new_stock) == ("restocked", 20, 25)

        assert await ledger.reserve(db, "t1", "IT-001", 30, order_id="X") is False
        item = await ledger.get_inventory_item(db, "t1", "IT-001")
        assert (item.stock, item.reserved, item.version) == (25, 0, 2)

        assert await ledger.reserve(db, "t1", "IT-001", 10, order_id="X") is True
        item = await ledger.get_inventory_item(db, "t1", "IT-001")
        assert (item.reserved, item.available, item.version) == (10, 15, 3)


@pytest.mark.asyncio
class TestEventWalkthrough:
    async def test_same_id_is_created_once(self, db):
        first = await log.create_event(db, "t1", "order.created", ORDER, event_id="order-O1")
        second = await log.create_event(db, "t1", "order.created", ORDER, event_id="order-O1")

        assert second.to_dict() == first.to_dict()
        assert (await db.execute(select(func.count()).select_from(Event))).scalar_one() == 1

    async def test_out_of_order_batch(self, db):
        drafts = [chaos.EventDraft("order.cancelled", {"orderId": f"O{i}"}) for i in range(3)]
        created = await chaos.send_out_of_order(db, "t1", drafts)

        assert len(created) == 3
        assert all(e.event_metadata["outOfOrder"] is True for e in created)
        assert sorted(e.payload["orderId"] for e in await log.get_events(db, "t1")) == ["O0", "O1", "O2"]
