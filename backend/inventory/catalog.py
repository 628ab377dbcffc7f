"""
Product Catalog — static SKU registry used to initialize team inventory.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import Sku

logger = structlog.get_logger()


@dataclass(frozen=True)
class CatalogEntry:
    sku: str
    name: str
    category: str
    initial_stock: int


DEFAULT_CATALOG: tuple[CatalogEntry, ...] = (
    CatalogEntry("IT-001", "NVMe SSD 1TB", "Storage", 20),
    CatalogEntry("IT-002", "DDR5 RAM 32GB", "Memory", 15),
    CatalogEntry("IT-003", "USB-C Docking Station", "Accessories", 25),
    CatalogEntry("IT-004", "10GbE Network Switch", "Networking", 10),
    CatalogEntry("IT-005", "Firewall Appliance", "Security", 8),
    CatalogEntry("IT-006", "Mini Server (Barebone)", "Compute", 5),
    CatalogEntry("IT-007", "Cloud Backup License", "Software", 100),
    CatalogEntry("IT-008", "VPN Gateway License", "Software", 100),
)


async def seed_catalog(db: AsyncSession, entries=DEFAULT_CATALOG) -> int:
    """Insert catalog entries that are not there yet. Existing rows are left alone."""
    result = await db.execute(select(Sku.sku))
    existing = set(result.scalars().all())

    added = 0
    for entry in entries:
        if entry.sku in existing:
            continue
        if entry.initial_stock < 0:
            raise ValueError(f"initial_stock must be >= 0 for {entry.sku}")
        db.add(
            Sku(
                sku=entry.sku,
                name=entry.name,
                category=entry.category,
                initial_stock=entry.initial_stock,
            )
        )
        existing.add(entry.sku)
        added += 1

    await db.commit()
    logger.info("catalog.seeded", added=added, total=len(existing))
    return added


async def list_catalog(db: AsyncSession) -> list[Sku]:
    result = await db.execute(select(Sku).order_by(Sku.sku))
    return list(result.scalars().all())
