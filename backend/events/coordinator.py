"""
Consistency Coordinator — turns logged events into ledger transitions.

    order.created             → reserve every line item (all or nothing)
    order.cancelled           → hand back whatever the order still holds
    inventory.restocked       → restock
    inventory.manual_adjusted → adjust by payload.quantity
    anything else             → ignored

Application is explicit (staff call ``apply_event`` or ``process_due_events``);
nothing fires on its own. An event is claimed (``processed_at`` stamped by a
conditional update) before any ledger call, so of two concurrent appliers
only one does the work and the other sees ``already_processed``. Ledger
errors release the claim and propagate, leaving the event open for a retry.
"""

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import DomainError, ValidationError
from db.models import Event
from events.log import claim_event, get_due_events, require_event, unclaim_event
from inventory import ledger

logger = structlog.get_logger()


@dataclass
class ApplyOutcome:
    event_id: str
    type: str
    status: str  # applied | insufficient_stock | no_reservation | ignored | already_processed | error
    detail: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {"eventId": self.event_id, "type": self.type, "status": self.status, "detail": self.detail}


def _whole_units(value, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f"{field_name} must be a whole number, got {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValidationError(f"{field_name} must be a whole number, got {value!r}")
    return value


def order_lines(payload: dict) -> dict[str, int]:
    """Sum order item quantities per SKU."""
    lines: dict[str, int] = {}
    for item in payload.get("items", []):
        qty = _whole_units(item["qty"], "items.qty")
        if qty <= 0:
            raise ValidationError(f"items.qty must be positive, got {qty}")
        lines[item["sku"]] = lines.get(item["sku"], 0) + qty
    return lines


async def _apply_order_created(db: AsyncSession, event: Event, by: str) -> tuple[str, dict]:
    team_id, order_id = event.team_id, event.payload["orderId"]
    lines = order_lines(event.payload)
    taken: list[tuple[str, int]] = []
    for sku in sorted(lines):
        try:
            ok = await ledger.reserve(db, team_id, sku, lines[sku], order_id=order_id, by=by)
        except DomainError:
            await _give_back(db, team_id, order_id, taken, by)
            raise
        if not ok:
            await _give_back(db, team_id, order_id, taken, by)
            return "insufficient_stock", {"orderId": order_id, "sku": sku, "requested": lines[sku]}
        taken.append((sku, lines[sku]))
    return "applied", {"orderId": order_id, "reserved": dict(taken)}


async def _give_back(db: AsyncSession, team_id: str, order_id: str, taken: list[tuple[str, int]], by: str) -> None:
    for sku, qty in reversed(taken):
        try:
            await ledger.cancel_reservation(db, team_id, sku, qty, order_id=order_id, by=by)
        except DomainError as exc:
            logger.error(
                "coordinator.compensation_failed",
                team_id=team_id,
                order_id=order_id,
                sku=sku,
                quantity=qty,
                error=str(exc),
            )
            raise


async def _apply_order_cancelled(db: AsyncSession, event: Event, by: str) -> tuple[str, dict]:
    order_id = event.payload["orderId"]
    held = await ledger.reserved_for_order(db, event.team_id, order_id)
    if not held:
        return "no_reservation", {"orderId": order_id}
    for sku in sorted(held):
        await ledger.cancel_reservation(db, event.team_id, sku, held[sku], order_id=order_id, by=by)
    return "applied", {"orderId": order_id, "unreserved": held}


async def _apply_restocked(db: AsyncSession, event: Event, by: str) -> tuple[str, dict]:
    sku = event.payload["sku"]
    quantity = _whole_units(event.payload["quantity"], "quantity")
    record = await ledger.restock(db, event.team_id, sku, quantity, by=by)
    return "applied", {"sku": sku, "stock": record.stock, "version": record.version}


async def _apply_manual_adjusted(db: AsyncSession, event: Event, by: str) -> tuple[str, dict]:
    sku = event.payload["sku"]
    delta = _whole_units(event.payload["quantity"], "quantity")
    reason = event.payload.get("reason") or f"event {event.id}"
    record = await ledger.adjust(db, event.team_id, sku, delta, reason=str(reason), by=by)
    return "applied", {"sku": sku, "stock": record.stock, "version": record.version}


HANDLERS = {
    "order.created": _apply_order_created,
    "order.cancelled": _apply_order_cancelled,
    "inventory.restocked": _apply_restocked,
    "inventory.manual_adjusted": _apply_manual_adjusted,
}


async def apply_event(db: AsyncSession, event_id: str, by: str = "system") -> ApplyOutcome:
    event = await require_event(db, event_id)
    event_id, event_type, team_id = event.id, event.type, event.team_id
    if not await claim_event(db, event_id):
        return ApplyOutcome(event_id, event_type, "already_processed")

    handler = HANDLERS.get(event_type)
    if handler is None:
        status, detail = "ignored", {}
    else:
        try:
            status, detail = await handler(db, event, by)
        except Exception:
            await db.rollback()
            await unclaim_event(db, event_id)
            raise

    logger.info("coordinator.applied", event_id=event_id, team_id=team_id, type=event_type, status=status)
    return ApplyOutcome(event_id, event_type, status, detail)


async def process_due_events(
    db: AsyncSession,
    now: datetime | None = None,
    limit: int | None = None,
    by: str = "system",
) -> list[ApplyOutcome]:
    """Apply every due event, oldest first. One failing event does not stop the sweep."""
    outcomes = []
    for event in await get_due_events(db, now=now, limit=limit):
        event_id, event_type = event.id, event.type
        try:
            outcomes.append(await apply_event(db, event_id, by=by))
        except DomainError as exc:
            logger.warning("coordinator.apply_failed", event_id=event_id, type=event_type, error=str(exc))
            outcomes.append(ApplyOutcome(event_id, event_type, "error", {"error": str(exc)}))
    logger.info("coordinator.due_processed", count=len(outcomes))
    return outcomes
