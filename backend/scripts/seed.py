#!/usr/bin/env python3
"""
Seed ChaosMart — catalog SKUs and, optionally, demo teams.

Examples:
  python backend/scripts/seed.py
  python backend/scripts/seed.py --create-tables --team "Team Alpha" --team "Team Beta"
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

# Add backend/ to path when run as a script.
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from core.config import get_settings
from db.session import Base
from inventory.catalog import seed_catalog
from teams.service import create_team


async def seed(db: AsyncSession, team_names: list[str]) -> dict:
    """Insert missing catalog SKUs, then create one team per name."""
    skus_added = await seed_catalog(db)
    teams = [await create_team(db, name) for name in team_names]
    return {
        "skus_added": skus_added,
        "teams": [{"teamId": t.team_id, "name": t.name, "apiKey": t.api_key} for t in teams],
    }


async def _run(team_names: list[str], create_tables: bool) -> dict:
    settings = get_settings()
    engine = create_async_engine(settings.database_url)
    try:
        if create_tables:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with SessionLocal() as db:
            return await seed(db, team_names)
    finally:
        await engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed the ChaosMart catalog and demo teams")
    parser.add_argument("--team", action="append", default=[], help="Team name to create (repeatable)")
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create tables from the models first (local sqlite/dev only; use alembic elsewhere)",
    )
    args = parser.parse_args()

    summary = asyncio.run(_run(args.team, args.create_tables))
    print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
