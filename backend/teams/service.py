"""
Team Service — team registry, API keys and the platform mode.

The platform mode (development / judging) is stored on every team row and
switched for all teams at once; API keys are reissued on every switch since
their scopes depend on it. Only the HTTP gate reads the mode: the event log
and the ledger run the same way in both modes.
"""

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import NotFoundError, ValidationError
from core.security import create_team_token
from db.models import PLATFORM_MODES, Team
from inventory.ledger import initialize_team

logger = structlog.get_logger()


async def get_platform_mode(db: AsyncSession) -> str:
    """Mode of the first team, or the configured default when no team exists."""
    result = await db.execute(select(Team.mode).order_by(Team.created_at, Team.team_id).limit(1))
    mode = result.scalar_one_or_none()
    return mode or get_settings().default_mode


async def create_team(db: AsyncSession, name: str) -> Team:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Team name is required")

    team_id = f"team-{uuid.uuid4().hex[:12]}"
    mode = await get_platform_mode(db)
    team = Team(
        team_id=team_id,
        name=name.strip(),
        api_key=create_team_token(team_id, mode),
        mode=mode,
    )
    db.add(team)
    await db.commit()

    await initialize_team(db, team_id)
    logger.info("team.created", team_id=team_id, name=team.name, mode=mode)
    return team


async def get_team(db: AsyncSession, team_id: str) -> Team | None:
    return await db.get(Team, team_id)


async def list_teams(db: AsyncSession) -> list[Team]:
    result = await db.execute(select(Team).order_by(Team.team_id))
    return list(result.scalars().all())


async def set_mode(db: AsyncSession, mode: str) -> list[Team]:
    """Switch every team to ``mode`` and reissue their API keys."""
    if mode not in PLATFORM_MODES:
        raise ValidationError("Mode must be 'development' or 'judging'")

    await db.execute(update(Team).values(mode=mode).execution_options(synchronize_session=False))
    teams = (await db.execute(select(Team).execution_options(populate_existing=True))).scalars().all()
    for team in teams:
        team.api_key = create_team_token(team.team_id, mode)
    await db.commit()

    logger.info("platform.mode_changed", mode=mode, teams=len(teams))
    return list(teams)


async def regenerate_api_key(db: AsyncSession, team_id: str) -> str:
    team = await get_team(db, team_id)
    if team is None:
        raise NotFoundError(f"Team {team_id} not found")
    team.api_key = create_team_token(team_id, team.mode)
    await db.commit()
    logger.info("team.api_key_regenerated", team_id=team_id)
    return team.api_key
