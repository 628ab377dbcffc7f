"""
Chat Router — team side of the customer/staff conversation.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import Principal, get_db, require_scope, require_team
from notifications import chat, webhook

router = APIRouter(prefix="/api/chat", tags=["chat"])


class ChatRequest(BaseModel):
    text: str
    sessionId: str | None = None


@router.post("", status_code=status.HTTP_201_CREATED)
async def send_chat(
    body: ChatRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(require_scope("write:chat")),
    db: AsyncSession = Depends(get_db),
):
    team_id = require_team(principal)
    message = await chat.send_message(db, team_id, "team", body.text, session_id=body.sessionId)
    url = await webhook.resolve_webhook_url(db, team_id)
    if url:
        background_tasks.add_task(webhook.deliver, url, message.to_dict())
    return message.to_dict()


@router.get("")
async def get_chat(
    limit: int = Query(50, ge=1, le=500),
    principal: Principal = Depends(require_scope("read:events")),
    db: AsyncSession = Depends(get_db),
):
    """Chat history for the team, oldest first."""
    team_id = require_team(principal)
    messages = await chat.get_messages(db, team_id, limit)
    return {"teamId": team_id, "messages": [m.to_dict() for m in reversed(messages)]}
