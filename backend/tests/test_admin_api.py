"""
API Integration Tests — staff endpoints under /api/admin.
"""

from datetime import timedelta

import pytest
from httpx import AsyncClient

from core.timeutil import to_iso, utcnow
from events import log
from inventory import ledger

ORDER = {"orderId": "O1", "items": [{"sku": "IT-001", "qty": 2}]}


@pytest.mark.asyncio
class TestInjectAndReplay:
    async def test_inject_known_type(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/events",
            json={"teamId": team.team_id, "type": "order.created", "payload": ORDER},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["teamId"] == team.team_id

    async def test_inject_rejects_types_outside_the_closed_set(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/events",
            json={"teamId": team.team_id, "type": "shipment.created", "payload": {}},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    async def test_inject_with_an_id_owned_by_another_team(self, client: AsyncClient, admin_headers, team, other_team):
        body = {"teamId": team.team_id, "type": "order.created", "payload": ORDER, "id": "evt-7"}
        assert (await client.post("/api/admin/events", json=body, headers=admin_headers)).status_code == 201

        body["teamId"] = other_team.team_id
        resp = await client.post("/api/admin/events", json=body, headers=admin_headers)
        assert resp.status_code == 409

    async def test_inject_with_delay(self, client: AsyncClient, admin_headers, team):
        when = to_iso(utcnow() + timedelta(minutes=10))
        resp = await client.post(
            "/api/admin/events",
            json={
                "teamId": team.team_id,
                "type": "order.cancelled",
                "payload": {"orderId": "O1"},
                "options": {"delayUntil": when},
            },
            headers=admin_headers,
        )
        assert resp.json()["metadata"] == {"delayedUntil": when}

    async def test_replay(self, client: AsyncClient, admin_headers, team, test_db):
        original = await log.create_event(test_db, team.team_id, "order.created", ORDER)
        resp = await client.post(f"/api/admin/events/{original.id}/replay", headers=admin_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["id"] != original.id
        assert data["metadata"]["replayOf"] == original.id

        missing = await client.post("/api/admin/events/nope/replay", headers=admin_headers)
        assert missing.status_code == 404

    async def test_recent_events_across_teams(self, client: AsyncClient, admin_headers, team, other_team, test_db):
        await log.create_event(test_db, team.team_id, "order.cancelled", {"orderId": "A"})
        await log.create_event(test_db, other_team.team_id, "order.cancelled", {"orderId": "B"})
        resp = await client.get("/api/admin/events", headers=admin_headers)
        assert {e["teamId"] for e in resp.json()["events"]} == {team.team_id, other_team.team_id}


@pytest.mark.asyncio
class TestChaosAPI:
    async def test_duplicate(self, client: AsyncClient, admin_headers, team, test_db):
        original = await log.create_event(test_db, team.team_id, "order.created", ORDER)
        resp = await client.post("/api/admin/chaos/duplicate", json={"eventId": original.id}, headers=admin_headers)
        assert resp.json()["event"] == original.to_dict()

    async def test_out_of_order(self, client: AsyncClient, admin_headers, team):
        events = [{"type": "order.cancelled", "payload": {"orderId": f"O{i}"}} for i in range(3)]
        resp = await client.post(
            "/api/admin/chaos/out-of-order",
            json={"teamId": team.team_id, "events": events},
            headers=admin_headers,
        )
        created = resp.json()["events"]
        assert len(created) == 3
        assert all(e["metadata"]["outOfOrder"] is True for e in created)

    async def test_delayed(self, client: AsyncClient, admin_headers, team, monkeypatch):
        monkeypatch.setenv("CHAOS_STAGGER_SECONDS", "0")
        from core.config import get_settings

        get_settings.cache_clear()
        resp = await client.post(
            "/api/admin/chaos/delayed",
            json={"teamId": team.team_id, "events": [{"type": "order.paid", "payload": ORDER}], "delayMs": 60000},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        [event] = resp.json()["events"]
        assert "delayedUntil" in event["metadata"]

    async def test_invalid_batch_is_400(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/chaos/out-of-order",
            json={"teamId": team.team_id, "events": [{"type": "order.created", "payload": {"orderId": "x"}}]},
            headers=admin_headers,
        )
        assert resp.status_code == 400


@pytest.mark.asyncio
class TestApplyAPI:
    async def test_apply_order_then_cancel(self, client: AsyncClient, admin_headers, team, test_db):
        order = await log.create_event(test_db, team.team_id, "order.created", ORDER)
        resp = await client.post(f"/api/admin/events/{order.id}/apply", headers=admin_headers)
        assert resp.json()["status"] == "applied"
        assert (await ledger.get_inventory_item(test_db, team.team_id, "IT-001")).reserved == 2

        resp = await client.post(f"/api/admin/events/{order.id}/apply", headers=admin_headers)
        assert resp.json()["status"] == "already_processed"

    async def test_process_due(self, client: AsyncClient, admin_headers, team, test_db):
        past = {"delayedUntil": to_iso(utcnow() - timedelta(seconds=1))}
        await log.create_event(test_db, team.team_id, "inventory.restocked", {"sku": "IT-006", "quantity": 3}, past)

        resp = await client.post("/api/admin/events/process-due", headers=admin_headers)
        assert resp.json()["processed"] == 1
        assert (await ledger.get_inventory_item(test_db, team.team_id, "IT-006")).stock == 8


@pytest.mark.asyncio
class TestInventoryAdminAPI:
    async def test_restock_and_adjust(self, client: AsyncClient, admin_headers, team, test_db):
        resp = await client.post(
            "/api/admin/inventory",
            json={"teamId": team.team_id, "sku": "IT-001", "quantity": 5, "type": "restock"},
            headers=admin_headers,
        )
        assert resp.status_code == 204

        resp = await client.post(
            "/api/admin/inventory",
            json={"teamId": team.team_id, "sku": "IT-001", "quantity": -2, "type": "adjust", "reason": "audit"},
            headers=admin_headers,
        )
        assert resp.status_code == 204
        assert (await ledger.get_inventory_item(test_db, team.team_id, "IT-001")).stock == 23

    async def test_adjust_requires_reason(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/inventory",
            json={"teamId": team.team_id, "sku": "IT-001", "quantity": -2, "type": "adjust"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    async def test_stale_version_is_409(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/inventory",
            json={"teamId": team.team_id, "sku": "IT-001", "quantity": 1, "type": "restock", "expectedVersion": 7},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_invalid_state_is_409(self, client: AsyncClient, admin_headers, team):
        resp = await client.post(
            "/api/admin/inventory",
            json={"teamId": team.team_id, "sku": "IT-006", "quantity": -50, "type": "adjust", "reason": "oops"},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    async def test_release_and_cancel(self, client: AsyncClient, admin_headers, team, test_db):
        await ledger.reserve(test_db, team.team_id, "IT-001", 6, order_id="O9")
        for kind, qty in (("release", 2), ("cancel", 4)):
            resp = await client.post(
                "/api/admin/inventory",
                json={"teamId": team.team_id, "sku": "IT-001", "quantity": qty, "type": kind, "orderId": "O9"},
                headers=admin_headers,
            )
            assert resp.status_code == 204

        item = await ledger.get_inventory_item(test_db, team.team_id, "IT-001")
        assert (item.stock, item.reserved) == (18, 0)

    async def test_listing_and_history(self, client: AsyncClient, admin_headers, team, other_team, test_db):
        await ledger.restock(test_db, team.team_id, "IT-002", 1)

        resp = await client.get("/api/admin/inventory", headers=admin_headers)
        assert len(resp.json()["inventory"]) == 16

        resp = await client.get("/api/admin/inventory/history", params={"teamId": team.team_id}, headers=admin_headers)
        [entry] = resp.json()["entries"]
        assert entry["type"] == "restocked"

        resp = await client.get(f"/api/admin/inventory/{other_team.team_id}", headers=admin_headers)
        assert len(resp.json()["inventory"]) == 8


@pytest.mark.asyncio
class TestPlatformAPI:
    async def test_team_lifecycle(self, client: AsyncClient, admin_headers, catalog):
        resp = await client.post("/api/admin/teams", json={"name": "Gamma"}, headers=admin_headers)
        assert resp.status_code == 201
        team_id = resp.json()["teamId"]
        assert resp.json()["apiKey"]

        assert (await client.get(f"/api/admin/teams/{team_id}", headers=admin_headers)).json()["name"] == "Gamma"
        assert len((await client.get("/api/admin/teams", headers=admin_headers)).json()["teams"]) == 1

        resp = await client.post(f"/api/admin/teams/{team_id}/api-key", headers=admin_headers)
        assert resp.json()["teamId"] == team_id

        assert (await client.get("/api/admin/teams/team-missing", headers=admin_headers)).status_code == 404

    async def test_mode_switch(self, client: AsyncClient, admin_headers, team):
        assert (await client.get("/api/admin/mode", headers=admin_headers)).json() == {"mode": "development"}

        resp = await client.post("/api/admin/mode", json={"mode": "judging"}, headers=admin_headers)
        assert resp.json()["mode"] == "judging"
        assert (await client.get("/api/admin/mode", headers=admin_headers)).json() == {"mode": "judging"}

        resp = await client.post("/api/admin/mode", json={"mode": "party"}, headers=admin_headers)
        assert resp.status_code == 400

    async def test_audit_logs(self, client: AsyncClient, admin_headers, team, test_db):
        await log.create_event(test_db, team.team_id, "order.cancelled", {"orderId": "A"})
        await ledger.restock(test_db, team.team_id, "IT-001", 1)

        for kind in ("events", "inventory"):
            resp = await client.get(f"/api/admin/audit/{kind}", headers=admin_headers)
            assert resp.json()["count"] == 1

        assert (await client.get("/api/admin/audit/errors", headers=admin_headers)).status_code == 422

    async def test_messages(self, client: AsyncClient, admin_headers, team, other_team):
        resp = await client.post("/api/admin/messages", json={"text": "Welcome!"}, headers=admin_headers)
        assert resp.status_code == 204

        resp = await client.post(
            "/api/admin/messages",
            json={"text": "Just you", "teamId": team.team_id},
            headers=admin_headers,
        )
        assert resp.status_code == 204

        messages = (await client.get("/api/admin/messages", headers=admin_headers)).json()["messages"]
        assert len(messages) == 3
        assert {m["from"] for m in messages} == {"staff"}

    async def test_webhooks(self, client: AsyncClient, admin_headers, team):
        body = {"teamId": team.team_id, "webhookUrl": "https://n8n.example.com/webhook/abc"}
        assert (await client.post("/api/admin/webhooks", json=body, headers=admin_headers)).status_code == 200

        resp = await client.get(f"/api/admin/webhooks/{team.team_id}", headers=admin_headers)
        assert resp.json()["webhookUrl"] == body["webhookUrl"]
        assert len((await client.get("/api/admin/webhooks", headers=admin_headers)).json()["webhooks"]) == 1

        assert (await client.delete(f"/api/admin/webhooks/{team.team_id}", headers=admin_headers)).status_code == 200
        assert (await client.delete(f"/api/admin/webhooks/{team.team_id}", headers=admin_headers)).status_code == 404

        bad = {"teamId": team.team_id, "webhookUrl": "not a url"}
        assert (await client.post("/api/admin/webhooks", json=bad, headers=admin_headers)).status_code == 400

        unknown = {"teamId": "team-missing", "webhookUrl": "https://n8n.example.com/x"}
        assert (await client.post("/api/admin/webhooks", json=unknown, headers=admin_headers)).status_code == 404

    async def test_bot_generation(self, client: AsyncClient, admin_headers, team, test_db):
        resp = await client.post("/api/admin/bot/generate", json={"teamId": team.team_id, "count": 4}, headers=admin_headers)
        assert resp.status_code == 200
        produced = resp.json()["records"][team.team_id]
        assert produced >= 4

        events = await log.get_events(test_db, team.team_id)
        from notifications.chat import get_messages

        messages = await get_messages(test_db, team.team_id)
        assert len(events) + len(messages) == produced
