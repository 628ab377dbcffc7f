"""
Customer Bot — synthetic customers producing orders, disputes and chat.

The bot is an ordinary producer: everything it emits goes through the event
log's create path (and the chat service), with no private write access.
Payment confirmations are emitted as delayed events so they only become
due a few seconds after the order.
"""

import random
import time
from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.timeutil import to_iso, utcnow
from db.models import Event, Team
from events.log import create_event, get_events
from inventory.catalog import DEFAULT_CATALOG
from notifications.chat import send_message

logger = structlog.get_logger()

SKUS = [entry.sku for entry in DEFAULT_CATALOG]

CUSTOMER_MESSAGES = [
    "When will my order arrive?",
    "I want to cancel my order",
    "Can I get a refund?",
    "Item arrived damaged",
    "How do I track my order?",
    "I need to change my shipping address",
    "Is this product in stock?",
    "Can I get a bulk discount?",
]

REFUND_REASONS = ["damaged", "wrong_item", "not_as_described", "changed_mind"]
DISPUTE_REASONS = ["not_received", "unauthorized", "duplicate_charge"]


class CustomerBot:
    def __init__(self, rng: random.Random | None = None):
        self.rng = rng or random.Random()

    def _order_id(self) -> str:
        return f"ORD-{int(time.time() * 1000)}-{self.rng.randint(0, 999):03d}"

    def _items(self) -> list[dict]:
        return [
            {"sku": self.rng.choice(SKUS), "qty": self.rng.randint(1, 5)}
            for _ in range(self.rng.randint(1, 3))
        ]

    async def _known_order_id(self, db: AsyncSession, team_id: str) -> str:
        recent = await get_events(db, team_id, event_type="order.created", limit=20)
        if recent:
            return self.rng.choice(recent).payload["orderId"]
        return self._order_id()

    async def generate_order(self, db: AsyncSession, team_id: str) -> Event:
        return await create_event(
            db,
            team_id,
            "order.created",
            {
                "orderId": self._order_id(),
                "items": self._items(),
                "customerName": f"Customer {self.rng.randint(0, 9999)}",
            },
        )

    async def generate_paid_order(self, db: AsyncSession, team_id: str) -> list[Event]:
        order_id = self._order_id()
        items = [{"sku": self.rng.choice(SKUS), "qty": 1}]
        created = await create_event(db, team_id, "order.created", {"orderId": order_id, "items": items})
        paid_at = utcnow() + timedelta(milliseconds=self.rng.randint(0, 5000))
        paid = await create_event(
            db,
            team_id,
            "order.paid",
            {
                "orderId": order_id,
                "items": items,
                "paymentMethod": "credit_card",
                "amount": self.rng.randint(100, 1099),
            },
            metadata={"delayedUntil": to_iso(paid_at), "causationId": created.id},
        )
        return [created, paid]

    async def generate_cancellation(self, db: AsyncSession, team_id: str) -> Event:
        return await create_event(
            db,
            team_id,
            "order.cancelled",
            {"orderId": await self._known_order_id(db, team_id), "reason": "customer_request"},
        )

    async def generate_refund_request(self, db: AsyncSession, team_id: str) -> Event:
        return await create_event(
            db,
            team_id,
            "order.refund_requested",
            {"orderId": await self._known_order_id(db, team_id), "reason": self.rng.choice(REFUND_REASONS)},
        )

    async def generate_dispute(self, db: AsyncSession, team_id: str) -> Event:
        return await create_event(
            db,
            team_id,
            "order.dispute_opened",
            {"orderId": await self._known_order_id(db, team_id), "reason": self.rng.choice(DISPUTE_REASONS)},
        )

    async def send_chat(self, db: AsyncSession, team_id: str):
        return await send_message(db, team_id, "customer_bot", self.rng.choice(CUSTOMER_MESSAGES))

    async def generate_random_events(self, db: AsyncSession, team_id: str, count: int = 5) -> int:
        """Emit ``count`` random actions for one team; returns how many records were created."""
        actions = [
            (self.generate_order, 40),
            (self.generate_paid_order, 20),
            (self.generate_cancellation, 10),
            (self.generate_refund_request, 10),
            (self.generate_dispute, 5),
            (self.send_chat, 15),
        ]
        funcs = [a for a, _ in actions]
        weights = [w for _, w in actions]

        produced = 0
        for _ in range(count):
            action = self.rng.choices(funcs, weights=weights, k=1)[0]
            result = await action(db, team_id)
            produced += len(result) if isinstance(result, list) else 1
        logger.info("bot.generated", team_id=team_id, actions=count, records=produced)
        return produced

    async def generate_for_all_teams(self, db: AsyncSession, count: int = 5) -> dict[str, int]:
        team_ids = (await db.execute(select(Team.team_id).order_by(Team.team_id))).scalars().all()
        return {team_id: await self.generate_random_events(db, team_id, count) for team_id in team_ids}
