import random

import pytest
from sqlalchemy import select

from db.models import Event
from events.customer_bot import CustomerBot
from events.validation import validate_payload
from notifications.chat import get_messages


@pytest.mark.asyncio
class TestCustomerBot:
    async def test_everything_it_emits_is_valid(self, test_db, team):
        bot = CustomerBot(random.Random(7))
        produced = await bot.generate_random_events(test_db, team.team_id, count=20)

        events = (await test_db.execute(select(Event).where(Event.team_id == team.team_id))).scalars().all()
        messages = await get_messages(test_db, team.team_id)
        assert len(events) + len(messages) == produced
        for event in events:
            validate_payload(event.type, event.payload)

    async def test_payments_are_delayed_behind_their_order(self, test_db, team):
        bot = CustomerBot(random.Random(1))
        created, paid = await bot.generate_paid_order(test_db, team.team_id)

        assert paid.payload["orderId"] == created.payload["orderId"]
        assert paid.event_metadata["causationId"] == created.id
        assert paid.delayed_until is not None

    async def test_follow_ups_reuse_known_orders(self, test_db, team):
        bot = CustomerBot(random.Random(3))
        order = await bot.generate_order(test_db, team.team_id)
        dispute = await bot.generate_dispute(test_db, team.team_id)
        assert dispute.payload["orderId"] == order.payload["orderId"]

    async def test_all_teams(self, test_db, team, other_team):
        produced = await CustomerBot(random.Random(5)).generate_for_all_teams(test_db, count=2)
        assert set(produced) == {team.team_id, other_team.team_id}
        assert all(n >= 2 for n in produced.values())
