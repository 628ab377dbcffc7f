"""
Webhook Sink — fire-and-forget delivery of recorded messages and events.

Each team may register a webhook URL (e.g. an n8n workflow); otherwise the
configured default URL is used, if any. Delivery happens after the record
is committed. A failed, slow or rejected delivery is logged and dropped:
it never rolls back or blocks the write that triggered it.
"""

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.errors import ValidationError
from core.timeutil import to_iso, utcnow
from db.models import TeamWebhook

logger = structlog.get_logger()


def _check_url(url: str) -> str:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise ValidationError("Invalid webhook URL") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise ValidationError("Invalid webhook URL")
    return url


async def set_webhook_url(db: AsyncSession, team_id: str, webhook_url: str) -> TeamWebhook:
    _check_url(webhook_url)
    hook = await db.get(TeamWebhook, team_id)
    now = utcnow()
    if hook is None:
        hook = TeamWebhook(team_id=team_id, webhook_url=webhook_url, created_at=now, updated_at=now)
        db.add(hook)
    else:
        hook.webhook_url = webhook_url
        hook.updated_at = now
    await db.commit()
    logger.info("webhook.configured", team_id=team_id)
    return hook


async def remove_webhook_url(db: AsyncSession, team_id: str) -> bool:
    hook = await db.get(TeamWebhook, team_id)
    if hook is None:
        return False
    await db.delete(hook)
    await db.commit()
    logger.info("webhook.removed", team_id=team_id)
    return True


async def get_team_webhook_url(db: AsyncSession, team_id: str) -> str | None:
    hook = await db.get(TeamWebhook, team_id)
    return hook.webhook_url if hook else None


async def resolve_webhook_url(db: AsyncSession, team_id: str) -> str | None:
    """Team URL, falling back to the default URL. None when delivery is off or unconfigured."""
    settings = get_settings()
    if not settings.webhook_enabled:
        return None
    return await get_team_webhook_url(db, team_id) or settings.default_webhook_url or None


async def list_webhooks(db: AsyncSession) -> list[dict]:
    result = await db.execute(select(TeamWebhook).order_by(TeamWebhook.team_id))
    return [
        {
            "teamId": hook.team_id,
            "webhookUrl": hook.webhook_url,
            "createdAt": to_iso(hook.created_at),
            "updatedAt": to_iso(hook.updated_at),
        }
        for hook in result.scalars().all()
    ]


async def deliver(
    webhook_url: str | None,
    record: dict,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> bool:
    """POST ``record`` as JSON. Returns True on a 2xx response; never raises."""
    if not webhook_url:
        return False
    if timeout is None:
        timeout = get_settings().webhook_timeout_seconds

    record_id = record.get("id")
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            resp = await client.post(webhook_url, json=record)
    except httpx.TimeoutException:
        logger.warning("webhook.timeout", record_id=record_id, url=webhook_url)
        return False
    except httpx.HTTPError as exc:
        logger.error("webhook.failed", record_id=record_id, url=webhook_url, error=str(exc))
        return False

    if resp.is_success:
        logger.debug("webhook.delivered", record_id=record_id, url=webhook_url, status=resp.status_code)
        return True
    logger.warning("webhook.rejected", record_id=record_id, url=webhook_url, status=resp.status_code)
    return False
