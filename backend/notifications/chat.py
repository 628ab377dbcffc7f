"""
Chat — messages between staff, the customer bot and teams.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationError
from db.models import MESSAGE_SENDERS, Message, Team

logger = structlog.get_logger()


async def send_message(
    db: AsyncSession,
    team_id: str,
    sender: str,
    text: str,
    session_id: str | None = None,
) -> Message:
    if sender not in MESSAGE_SENDERS:
        raise ValidationError(f"from must be one of {', '.join(MESSAGE_SENDERS)}")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Invalid message text")

    message = Message(team_id=team_id, sender=sender, text=text, session_id=session_id)
    db.add(message)
    await db.commit()
    logger.info("chat.message", message_id=message.id, team_id=team_id, sender=sender)
    return message


async def get_messages(db: AsyncSession, team_id: str, limit: int = 50) -> list[Message]:
    """Most recent messages for a team, newest first."""
    result = await db.execute(
        select(Message).where(Message.team_id == team_id).order_by(Message.created_at.desc()).limit(limit)
    )
    return list(result.scalars().all())


async def get_session_messages(db: AsyncSession, session_id: str) -> list[Message]:
    result = await db.execute(
        select(Message).where(Message.session_id == session_id).order_by(Message.created_at.asc())
    )
    return list(result.scalars().all())


async def get_all_messages(db: AsyncSession, limit: int = 100) -> list[Message]:
    result = await db.execute(select(Message).order_by(Message.created_at.desc()).limit(limit))
    return list(result.scalars().all())


async def broadcast(db: AsyncSession, sender: str, text: str) -> list[Message]:
    """Send the same message to every team."""
    team_ids = (await db.execute(select(Team.team_id).order_by(Team.team_id))).scalars().all()
    return [await send_message(db, team_id, sender, text) for team_id in team_ids]
