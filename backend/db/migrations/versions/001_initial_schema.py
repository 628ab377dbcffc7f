"""
Initial schema - teams, catalog, event log, inventory ledger, chat, webhooks

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # 1. Teams
    op.create_table(
        "teams",
        sa.Column("team_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("api_key", sa.Text, nullable=False),
        sa.Column("mode", sa.String(20), nullable=False, server_default="development"),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("mode IN ('development', 'judging')", name="ck_team_mode"),
    )

    # 2. Catalog
    op.create_table(
        "skus",
        sa.Column("sku", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(100), nullable=False),
        sa.Column("initial_stock", sa.Integer, nullable=False, server_default="20"),
        sa.CheckConstraint("initial_stock >= 0", name="ck_sku_initial_stock"),
    )

    # 3. Events (append-only; processed_at is the only column ever updated)
    op.create_table(
        "events",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime),
        sa.Column("metadata", JSONB),
        sa.Column("delayed_until", sa.DateTime),
    )
    op.create_index("ix_events_team_id", "events", ["team_id"])
    op.create_index("ix_events_created_at", "events", ["created_at"])
    op.create_index("ix_events_team_created", "events", ["team_id", "created_at"])
    op.create_index("ix_events_delayed_until", "events", ["delayed_until"])

    # 4. Inventory
    op.create_table(
        "inventory",
        sa.Column("team_id", sa.String(64), primary_key=True),
        sa.Column("sku", sa.String(64), sa.ForeignKey("skus.sku"), primary_key=True),
        sa.Column("stock", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reserved", sa.Integer, nullable=False, server_default="0"),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("stock >= 0", name="ck_inventory_stock_nonneg"),
        sa.CheckConstraint("reserved >= 0", name="ck_inventory_reserved_nonneg"),
        sa.CheckConstraint("reserved <= stock", name="ck_inventory_reserved_le_stock"),
    )
    op.create_index("ix_inventory_team_id", "inventory", ["team_id"])

    # 5. Inventory audit trail
    op.create_table(
        "inventory_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("previous_stock", sa.Integer, nullable=False),
        sa.Column("new_stock", sa.Integer, nullable=False),
        sa.Column("by", sa.String(20), nullable=False),
        sa.Column("order_id", sa.String(128)),
        sa.Column("reason", sa.Text),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('restocked', 'reserved', 'released', 'adjusted', 'unreserved')",
            name="ck_inventory_event_type",
        ),
        sa.CheckConstraint("by IN ('staff', 'system', 'customer_bot')", name="ck_inventory_event_by"),
    )
    op.create_index("ix_inventory_events_team_id", "inventory_events", ["team_id"])
    op.create_index("ix_inventory_events_created_at", "inventory_events", ["created_at"])

    # 6. Messages
    op.create_table(
        "messages",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("team_id", sa.String(64), nullable=False),
        sa.Column("from", sa.String(20), nullable=False),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("session_id", sa.String(128)),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("\"from\" IN ('staff', 'customer_bot', 'team')", name="ck_message_from"),
    )
    op.create_index("ix_messages_team_id", "messages", ["team_id"])
    op.create_index("ix_messages_created_at", "messages", ["created_at"])

    # 7. Team webhooks
    op.create_table(
        "team_webhooks",
        sa.Column(
            "team_id",
            sa.String(64),
            sa.ForeignKey("teams.team_id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("webhook_url", sa.Text, nullable=False),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
    )


def downgrade() -> None:
    tables = [
        "team_webhooks",
        "messages",
        "inventory_events",
        "inventory",
        "events",
        "skus",
        "teams",
    ]
    for table in tables:
        op.drop_table(table)
