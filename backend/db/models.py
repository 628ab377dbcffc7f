"""
ChaosMart Database Models

Tables:
  1. teams             - Competitor teams and their current platform mode
  2. skus              - Static product catalog (seeded once)
  3. events            - Append-only domain event log (idempotent by id)
  4. inventory         - Per-(team, sku) stock/reserved counters, version-guarded
  5. inventory_events  - Audit trail, one row per ledger mutation
  6. messages          - Chat between staff, customer bot and teams
  7. team_webhooks     - Per-team notification sink URLs

events.delayed_until mirrors metadata.delayedUntil so due polling is a plain
indexed range query on every dialect.
"""

import uuid

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.hybrid import hybrid_property

from core.timeutil import to_iso, utcnow
from db.session import Base

JSONDocument = JSON().with_variant(JSONB(), "postgresql")

EVENT_TYPES = (
    "order.created",
    "order.paid",
    "order.cancelled",
    "order.refund_requested",
    "order.dispute_opened",
    "inventory.restocked",
    "inventory.shortage_detected",
    "inventory.manual_adjusted",
    "event.duplicate_sent",
    "event.delayed",
    "event.out_of_order",
)

INVENTORY_EVENT_TYPES = ("restocked", "reserved", "released", "adjusted", "unreserved")
ACTORS = ("staff", "system", "customer_bot")
MESSAGE_SENDERS = ("staff", "customer_bot", "team")
PLATFORM_MODES = ("development", "judging")


def _in_list(column: str, values: tuple[str, ...]) -> str:
    quoted = ", ".join(f"'{v}'" for v in values)
    return f"{column} IN ({quoted})"


def new_id() -> str:
    return str(uuid.uuid4())


# ─── 1. Teams ───────────────────────────────────────────────────────────────


class Team(Base):
    __tablename__ = "teams"

    team_id = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    api_key = Column(Text, nullable=False)
    mode = Column(String(20), nullable=False, default="development")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (CheckConstraint(_in_list("mode", PLATFORM_MODES), name="ck_team_mode"),)


# ─── 2. Catalog ─────────────────────────────────────────────────────────────


class Sku(Base):
    __tablename__ = "skus"

    sku = Column(String(64), primary_key=True)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    initial_stock = Column(Integer, nullable=False, default=20)

    __table_args__ = (CheckConstraint("initial_stock >= 0", name="ck_sku_initial_stock"),)


# ─── 3. Events ──────────────────────────────────────────────────────────────


class Event(Base):
    __tablename__ = "events"

    id = Column(String(64), primary_key=True, default=new_id)
    team_id = Column(String(64), nullable=False)
    type = Column(String(64), nullable=False)
    payload = Column(JSONDocument, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    processed_at = Column(DateTime, nullable=True)
    # "metadata" is reserved on declarative classes
    event_metadata = Column("metadata", JSONDocument, nullable=True)
    delayed_until = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_events_team_id", "team_id"),
        Index("ix_events_created_at", "created_at"),
        Index("ix_events_team_created", "team_id", "created_at"),
        Index("ix_events_delayed_until", "delayed_until"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "type": self.type,
            "payload": self.payload,
            "createdAt": to_iso(self.created_at),
            "processedAt": to_iso(self.processed_at),
            "metadata": self.event_metadata,
        }


# ─── 4. Inventory ───────────────────────────────────────────────────────────


class InventoryItem(Base):
    __tablename__ = "inventory"

    team_id = Column(String(64), primary_key=True)
    sku = Column(String(64), ForeignKey("skus.sku"), primary_key=True)
    stock = Column(Integer, nullable=False, default=0)
    reserved = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_inventory_stock_nonneg"),
        CheckConstraint("reserved >= 0", name="ck_inventory_reserved_nonneg"),
        CheckConstraint("reserved <= stock", name="ck_inventory_reserved_le_stock"),
        Index("ix_inventory_team_id", "team_id"),
    )

    @hybrid_property
    def available(self):
        return self.stock - self.reserved


# ─── 5. Inventory audit trail ───────────────────────────────────────────────


class InventoryEvent(Base):
    __tablename__ = "inventory_events"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(64), nullable=False)
    sku = Column(String(64), nullable=False)
    type = Column(String(20), nullable=False)
    quantity = Column(Integer, nullable=False)
    previous_stock = Column(Integer, nullable=False)
    new_stock = Column(Integer, nullable=False)
    by = Column(String(20), nullable=False)
    order_id = Column(String(128), nullable=True)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(_in_list("type", INVENTORY_EVENT_TYPES), name="ck_inventory_event_type"),
        CheckConstraint(_in_list("by", ACTORS), name="ck_inventory_event_by"),
        Index("ix_inventory_events_team_id", "team_id"),
        Index("ix_inventory_events_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "sku": self.sku,
            "type": self.type,
            "quantity": self.quantity,
            "previousStock": self.previous_stock,
            "newStock": self.new_stock,
            "by": self.by,
            "orderId": self.order_id,
            "reason": self.reason,
            "createdAt": to_iso(self.created_at),
        }


# ─── 6. Messages ────────────────────────────────────────────────────────────


class Message(Base):
    __tablename__ = "messages"

    id = Column(String(36), primary_key=True, default=new_id)
    team_id = Column(String(64), nullable=False)
    sender = Column("from", String(20), nullable=False)
    text = Column(Text, nullable=False)
    session_id = Column(String(128), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint(_in_list('"from"', MESSAGE_SENDERS), name="ck_message_from"),
        Index("ix_messages_team_id", "team_id"),
        Index("ix_messages_created_at", "created_at"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "teamId": self.team_id,
            "from": self.sender,
            "text": self.text,
            "sessionId": self.session_id,
            "createdAt": to_iso(self.created_at),
        }


# ─── 7. Webhooks ────────────────────────────────────────────────────────────


class TeamWebhook(Base):
    __tablename__ = "team_webhooks"

    team_id = Column(String(64), ForeignKey("teams.team_id", ondelete="CASCADE"), primary_key=True)
    webhook_url = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
