"""
Inventory Ledger — per-(team, sku) stock and reservation counters.

Invariants, after every call:
    stock >= 0
    0 <= reserved <= stock
    available == stock - reserved   (derived, never stored)

Every mutation follows the same optimistic protocol:
    1. read (stock, reserved, version)
    2. compute the new counters, rejecting anything that breaks an invariant
    3. UPDATE ... SET version = version + 1 WHERE version = <read version>
    4. zero rows updated → ConcurrentModificationError (never retried here)
    5. append the audit row and commit both together

Release semantics: ``release`` consumes a reservation (the order shipped), so
stock and reserved both drop. Handing a reservation back to the available
pool is ``cancel_reservation``.
"""

from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ConcurrentModificationError, InvalidStateError, NotFoundError, ValidationError
from core.timeutil import to_iso, utcnow
from db.models import ACTORS, InventoryEvent, InventoryItem, Sku

logger = structlog.get_logger()


@dataclass(frozen=True)
class InventoryRecord:
    """Point-in-time view of one inventory row joined with its catalog entry."""

    team_id: str
    sku: str
    name: str
    category: str
    stock: int
    reserved: int
    version: int
    updated_at: datetime

    @property
    def available(self) -> int:
        return self.stock - self.reserved

    def to_dict(self) -> dict:
        return {
            "teamId": self.team_id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "stock": self.stock,
            "reserved": self.reserved,
            "available": self.available,
            "version": self.version,
            "updatedAt": to_iso(self.updated_at),
        }


@dataclass(frozen=True)
class _Snapshot:
    team_id: str
    sku: str
    stock: int
    reserved: int
    version: int


# ─── Reads ──────────────────────────────────────────────────────────────────


def _record_query():
    return select(
        InventoryItem.team_id,
        InventoryItem.sku,
        Sku.name,
        Sku.category,
        InventoryItem.stock,
        InventoryItem.reserved,
        InventoryItem.version,
        InventoryItem.updated_at,
    ).join(Sku, Sku.sku == InventoryItem.sku)


def _to_record(row) -> InventoryRecord:
    return InventoryRecord(
        team_id=row.team_id,
        sku=row.sku,
        name=row.name,
        category=row.category,
        stock=row.stock,
        reserved=row.reserved,
        version=row.version,
        updated_at=row.updated_at,
    )


async def get_inventory(db: AsyncSession, team_id: str) -> list[InventoryRecord]:
    result = await db.execute(_record_query().where(InventoryItem.team_id == team_id).order_by(InventoryItem.sku))
    return [_to_record(row) for row in result.all()]


async def get_all_inventory(db: AsyncSession) -> list[InventoryRecord]:
    result = await db.execute(_record_query().order_by(InventoryItem.team_id, InventoryItem.sku))
    return [_to_record(row) for row in result.all()]


async def get_inventory_item(db: AsyncSession, team_id: str, sku: str) -> InventoryRecord | None:
    result = await db.execute(
        _record_query().where(InventoryItem.team_id == team_id, InventoryItem.sku == sku)
    )
    row = result.one_or_none()
    return _to_record(row) if row else None


async def list_inventory_events(
    db: AsyncSession,
    team_id: str | None = None,
    sku: str | None = None,
    limit: int = 100,
) -> list[InventoryEvent]:
    """Ledger audit trail, most recent first."""
    query = select(InventoryEvent)
    if team_id is not None:
        query = query.where(InventoryEvent.team_id == team_id)
    if sku is not None:
        query = query.where(InventoryEvent.sku == sku)
    query = query.order_by(InventoryEvent.created_at.desc(), InventoryEvent.id.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def reserved_for_order(db: AsyncSession, team_id: str, order_id: str) -> dict[str, int]:
    """Quantity per SKU still held for an order, derived from the audit trail."""
    sign = {"reserved": 1, "unreserved": -1, "released": -1}
    result = await db.execute(
        select(InventoryEvent.sku, InventoryEvent.type, func.sum(InventoryEvent.quantity).label("qty"))
        .where(
            InventoryEvent.team_id == team_id,
            InventoryEvent.order_id == order_id,
            InventoryEvent.type.in_(tuple(sign)),
        )
        .group_by(InventoryEvent.sku, InventoryEvent.type)
    )
    held: dict[str, int] = {}
    for row in result.all():
        held[row.sku] = held.get(row.sku, 0) + sign[row.type] * int(row.qty)
    return {sku: qty for sku, qty in held.items() if qty > 0}


# ─── Initialization ─────────────────────────────────────────────────────────


async def initialize_team(db: AsyncSession, team_id: str) -> int:
    """
    Create one inventory row per catalog SKU for ``team_id``.

    Safe to call repeatedly: rows that already exist are never overwritten,
    and a concurrent initializer that wins an insert is tolerated.
    """
    if not isinstance(team_id, str) or not team_id.strip():
        raise ValidationError("teamId must be a non-empty string")

    skus = (await db.execute(select(Sku.sku, Sku.initial_stock).order_by(Sku.sku))).all()
    existing = set(
        (await db.execute(select(InventoryItem.sku).where(InventoryItem.team_id == team_id))).scalars().all()
    )

    created = 0
    now = utcnow()
    for sku, initial_stock in skus:
        if sku in existing:
            continue
        try:
            async with db.begin_nested():
                db.add(
                    InventoryItem(
                        team_id=team_id,
                        sku=sku,
                        stock=initial_stock,
                        reserved=0,
                        version=1,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            logger.debug("inventory.init.already_present", team_id=team_id, sku=sku)
            continue
        created += 1

    await db.commit()
    logger.info("inventory.initialized", team_id=team_id, created=created, catalog_size=len(skus))
    return created


# ─── Guarded write ──────────────────────────────────────────────────────────


def _positive_quantity(quantity, field: str = "quantity") -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"{field} must be a positive integer, got {quantity!r}")
    return quantity


def _actor(by: str) -> str:
    if by not in ACTORS:
        raise ValidationError(f"by must be one of {', '.join(ACTORS)}, got {by!r}")
    return by


async def _load_snapshot(db: AsyncSession, team_id: str, sku: str) -> _Snapshot | None:
    result = await db.execute(
        select(InventoryItem.stock, InventoryItem.reserved, InventoryItem.version).where(
            InventoryItem.team_id == team_id,
            InventoryItem.sku == sku,
        )
    )
    row = result.one_or_none()
    if row is None:
        return None
    return _Snapshot(team_id=team_id, sku=sku, stock=row.stock, reserved=row.reserved, version=row.version)


def _check_version(snap: _Snapshot, expected_version: int | None) -> _Snapshot:
    if expected_version is not None and expected_version != snap.version:
        logger.warning(
            "inventory.conflict",
            team_id=snap.team_id,
            sku=snap.sku,
            expected_version=expected_version,
            current_version=snap.version,
        )
        raise ConcurrentModificationError(snap.team_id, snap.sku, expected_version)
    return snap


async def _require_snapshot(
    db: AsyncSession,
    team_id: str,
    sku: str,
    expected_version: int | None = None,
) -> _Snapshot:
    snap = await _load_snapshot(db, team_id, sku)
    if snap is None:
        raise NotFoundError(f"Inventory not found for {team_id}/{sku}")
    return _check_version(snap, expected_version)


async def _guarded_write(
    db: AsyncSession,
    snap: _Snapshot,
    *,
    stock: int,
    reserved: int,
    audit: InventoryEvent,
) -> None:
    """Apply new counters iff the row is still at ``snap.version``, together with its audit row."""
    if stock < 0 or reserved < 0 or reserved > stock:
        raise InvalidStateError(
            f"Rejected write for {snap.team_id}/{snap.sku}: stock={stock}, reserved={reserved}"
        )

    now = utcnow()
    result = await db.execute(
        update(InventoryItem)
        .where(
            InventoryItem.team_id == snap.team_id,
            InventoryItem.sku == snap.sku,
            InventoryItem.version == snap.version,
        )
        .values(stock=stock, reserved=reserved, version=InventoryItem.version + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        logger.warning(
            "inventory.conflict",
            team_id=snap.team_id,
            sku=snap.sku,
            expected_version=snap.version,
        )
        raise ConcurrentModificationError(snap.team_id, snap.sku, snap.version)

    audit.created_at = now
    db.add(audit)
    try:
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        f"inventory.{audit.type}",
        audit=True,
        team_id=snap.team_id,
        sku=snap.sku,
        quantity=audit.quantity,
        previous_stock=audit.previous_stock,
        new_stock=audit.new_stock,
        reserved=reserved,
        version=snap.version + 1,
        by=audit.by,
        order_id=audit.order_id,
    )


def _audit(snap: _Snapshot, kind: str, quantity: int, new_stock: int, by: str, **extra) -> InventoryEvent:
    return InventoryEvent(
        team_id=snap.team_id,
        sku=snap.sku,
        type=kind,
        quantity=quantity,
        previous_stock=snap.stock,
        new_stock=new_stock,
        by=by,
        **extra,
    )


# ─── Mutations ──────────────────────────────────────────────────────────────


async def restock(
    db: AsyncSession,
    team_id: str,
    sku: str,
    quantity: int,
    by: str = "staff",
    expected_version: int | None = None,
) -> InventoryRecord:
    """Add ``quantity`` units to stock."""
    quantity = _positive_quantity(quantity)
    by = _actor(by)
    snap = await _require_snapshot(db, team_id, sku, expected_version)

    new_stock = snap.stock + quantity
    await _guarded_write(
        db,
        snap,
        stock=new_stock,
        reserved=snap.reserved,
        audit=_audit(snap, "restocked", quantity, new_stock, by),
    )
    return await get_inventory_item(db, team_id, sku)


async def reserve(
    db: AsyncSession,
    team_id: str,
    sku: str,
    quantity: int,
    order_id: str,
    by: str = "system",
    expected_version: int | None = None,
) -> bool:
    """
    Move ``quantity`` from available to reserved.

    Returns False, writing nothing, when fewer than ``quantity`` units are
    available. That is a normal outcome, not an error.
    """
    quantity = _positive_quantity(quantity)
    by = _actor(by)
    snap = await _require_snapshot(db, team_id, sku, expected_version)

    available = snap.stock - snap.reserved
    if available < quantity:
        logger.info(
            "inventory.reserve.insufficient",
            team_id=team_id,
            sku=sku,
            requested=quantity,
            available=available,
            order_id=order_id,
        )
        return False

    await _guarded_write(
        db,
        snap,
        stock=snap.stock,
        reserved=snap.reserved + quantity,
        audit=_audit(snap, "reserved", quantity, snap.stock, by, order_id=order_id),
    )
    return True


async def release(
    db: AsyncSession,
    team_id: str,
    sku: str,
    quantity: int,
    order_id: str,
    by: str = "system",
    expected_version: int | None = None,
) -> bool:
    """
    Consume a reservation: the units leave stock and the reservation.

    Returns False if the (team, sku) row does not exist.
    """
    quantity = _positive_quantity(quantity)
    by = _actor(by)
    snap = await _load_snapshot(db, team_id, sku)
    if snap is None:
        logger.warning("inventory.release.missing", team_id=team_id, sku=sku, order_id=order_id)
        return False
    _check_version(snap, expected_version)

    new_stock = snap.stock - quantity
    new_reserved = snap.reserved - quantity
    if new_stock < 0 or new_reserved < 0:
        raise InvalidStateError(
            f"Invalid release for {team_id}/{sku}: would leave stock={new_stock}, reserved={new_reserved}"
        )

    await _guarded_write(
        db,
        snap,
        stock=new_stock,
        reserved=new_reserved,
        audit=_audit(snap, "released", quantity, new_stock, by, order_id=order_id),
    )
    return True


async def cancel_reservation(
    db: AsyncSession,
    team_id: str,
    sku: str,
    quantity: int,
    order_id: str,
    by: str = "system",
    expected_version: int | None = None,
) -> InventoryRecord:
    """Hand reserved units back to the available pool; stock is unchanged."""
    quantity = _positive_quantity(quantity)
    by = _actor(by)
    snap = await _require_snapshot(db, team_id, sku, expected_version)

    new_reserved = snap.reserved - quantity
    if new_reserved < 0:
        raise InvalidStateError(
            f"Cannot cancel {quantity} reserved units of {team_id}/{sku}: only {snap.reserved} reserved"
        )

    await _guarded_write(
        db,
        snap,
        stock=snap.stock,
        reserved=new_reserved,
        audit=_audit(snap, "unreserved", quantity, snap.stock, by, order_id=order_id),
    )
    return await get_inventory_item(db, team_id, sku)


async def adjust(
    db: AsyncSession,
    team_id: str,
    sku: str,
    delta: int,
    reason: str,
    by: str = "staff",
    expected_version: int | None = None,
) -> InventoryRecord:
    """Manual stock correction by ``delta`` (may be negative). ``reason`` is mandatory."""
    if isinstance(delta, bool) or not isinstance(delta, int) or delta == 0:
        raise ValidationError(f"delta must be a non-zero integer, got {delta!r}")
    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("reason is required for manual adjustments")
    by = _actor(by)
    snap = await _require_snapshot(db, team_id, sku, expected_version)

    new_stock = snap.stock + delta
    if new_stock < 0:
        raise InvalidStateError(f"Cannot adjust {team_id}/{sku} to negative stock ({new_stock})")
    if new_stock < snap.reserved:
        raise InvalidStateError(
            f"Cannot adjust {team_id}/{sku} below reserved units ({new_stock} < {snap.reserved})"
        )

    await _guarded_write(
        db,
        snap,
        stock=new_stock,
        reserved=snap.reserved,
        audit=_audit(snap, "adjusted", delta, new_stock, by, reason=reason.strip()),
    )
    return await get_inventory_item(db, team_id, sku)
