"""
Event Payload Validation — pydantic schemas per event type.

Known types with a schema must match it; malformed payloads are rejected.
Types without a schema (including types outside EVENT_TYPES) are accepted
as-is for forward compatibility.

    order.created, order.paid              → {orderId: str, items: [{sku: str, qty: number}]}
    order.cancelled, order.refund_requested,
    order.dispute_opened                   → {orderId: str}
    inventory.restocked,
    inventory.manual_adjusted              → {sku: str, quantity: number}
"""

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, StrictBool, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError as SchemaError

from core.errors import ValidationError
from core.timeutil import parse_iso

Number = Union[StrictInt, StrictFloat]
MAX_ID_LENGTH = 64


class _Document(BaseModel):
    model_config = ConfigDict(extra="allow")


class OrderItem(_Document):
    sku: StrictStr
    qty: Number


class OrderPayload(_Document):
    orderId: StrictStr
    items: list[OrderItem]


class OrderReferencePayload(_Document):
    orderId: StrictStr


class InventoryPayload(_Document):
    sku: StrictStr
    quantity: Number


class EventMetadata(_Document):
    correlationId: StrictStr | None = None
    causationId: StrictStr | None = None
    replayOf: StrictStr | None = None
    delayedUntil: StrictStr | None = None
    outOfOrder: StrictBool | StrictStr | None = None


PAYLOAD_SCHEMAS: dict[str, type[BaseModel]] = {
    "order.created": OrderPayload,
    "order.paid": OrderPayload,
    "order.cancelled": OrderReferencePayload,
    "order.refund_requested": OrderReferencePayload,
    "order.dispute_opened": OrderReferencePayload,
    "inventory.restocked": InventoryPayload,
    "inventory.manual_adjusted": InventoryPayload,
}


def _describe(exc: SchemaError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "payload"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate_event_type(event_type: Any) -> str:
    """Any non-empty type is accepted; only known types get their payload checked."""
    if not isinstance(event_type, str) or not event_type.strip():
        raise ValidationError(f"Invalid event type: {event_type!r}")
    if len(event_type) > MAX_ID_LENGTH:
        raise ValidationError(f"Event type too long: {event_type!r}")
    return event_type


def validate_payload(event_type: str, payload: Any) -> None:
    """Raise ValidationError if ``payload`` does not fit the schema for ``event_type``."""
    if payload is None:
        raise ValidationError("Event payload is required")
    schema = PAYLOAD_SCHEMAS.get(event_type)
    if schema is None:
        return
    if not isinstance(payload, dict):
        raise ValidationError(f"Invalid payload for {event_type}: expected an object")
    try:
        schema.model_validate(payload)
    except SchemaError as exc:
        raise ValidationError(f"Invalid payload for {event_type}: {_describe(exc)}") from exc


def validate_metadata(metadata: Any) -> dict | None:
    """Validate event metadata and return it as a plain dict (or None)."""
    if metadata is None:
        return None
    if not isinstance(metadata, dict):
        raise ValidationError("Event metadata must be an object")
    try:
        EventMetadata.model_validate(metadata)
    except SchemaError as exc:
        raise ValidationError(f"Invalid event metadata: {_describe(exc)}") from exc
    delayed = metadata.get("delayedUntil")
    if delayed is not None:
        try:
            parse_iso(delayed)
        except ValueError as exc:
            raise ValidationError(f"metadata.delayedUntil is not an ISO timestamp: {delayed!r}") from exc
    return dict(metadata)


def validate_event_id(event_id: Any) -> str | None:
    if event_id is None:
        return None
    if not isinstance(event_id, str) or not event_id.strip():
        raise ValidationError("Event id must be a non-empty string")
    if len(event_id) > MAX_ID_LENGTH:
        raise ValidationError(f"Event id longer than {MAX_ID_LENGTH} characters")
    return event_id


def validate_team_id(team_id: Any) -> str:
    if not isinstance(team_id, str) or not team_id.strip():
        raise ValidationError("teamId must be a non-empty string")
    if len(team_id) > MAX_ID_LENGTH:
        raise ValidationError(f"teamId longer than {MAX_ID_LENGTH} characters")
    return team_id
