"""
Timestamp helpers.

All timestamps are stored as naive UTC datetimes. Incoming ISO-8601 strings
may carry an offset or a trailing ``Z``; they are normalized to naive UTC.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC now, truncated to milliseconds so it survives a ``to_iso`` round trip."""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def parse_iso(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp into naive UTC. Raises ValueError on garbage."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def to_iso(value: datetime | None) -> str | None:
    """Render a naive UTC datetime as ISO-8601 with a ``Z`` suffix."""
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"
