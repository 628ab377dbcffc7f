import importlib.util
from pathlib import Path

import pytest

from inventory.ledger import get_inventory
from teams.service import list_teams

SCRIPT_PATH = Path(__file__).resolve().parents[1] / "scripts" / "seed.py"


def _load_seed_module():
    spec = importlib.util.spec_from_file_location("seed_script", SCRIPT_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.mark.asyncio
async def test_seed_creates_catalog_and_teams(test_db):
    seed_module = _load_seed_module()

    summary = await seed_module.seed(test_db, ["Team Alpha", "Team Beta"])
    assert summary["skus_added"] == 8
    assert [t["name"] for t in summary["teams"]] == ["Team Alpha", "Team Beta"]
    assert all(t["apiKey"] for t in summary["teams"])

    for team in summary["teams"]:
        assert len(await get_inventory(test_db, team["teamId"])) == 8


@pytest.mark.asyncio
async def test_seed_is_safe_to_rerun(test_db):
    seed_module = _load_seed_module()

    await seed_module.seed(test_db, [])
    summary = await seed_module.seed(test_db, [])
    assert summary == {"skus_added": 0, "teams": []}
    assert await list_teams(test_db) == []
