import pytest

from core.errors import ValidationError
from notifications import chat


@pytest.mark.asyncio
class TestChat:
    async def test_send_and_read_back(self, team, catalog):
        await chat.send_message(catalog, team.team_id, "team", "Where is order O1?", session_id="s-1")
        await chat.send_message(catalog, team.team_id, "staff", "Shipping tomorrow", session_id="s-1")

        history = await chat.get_messages(catalog, team.team_id)
        assert {m.sender for m in history} == {"team", "staff"}

        session = await chat.get_session_messages(catalog, "s-1")
        assert len(session) == 2
        assert session[0].to_dict()["sessionId"] == "s-1"

    async def test_invalid_sender_and_text(self, team, catalog):
        with pytest.raises(ValidationError):
            await chat.send_message(catalog, team.team_id, "robot", "hello")
        with pytest.raises(ValidationError):
            await chat.send_message(catalog, team.team_id, "team", "   ")

    async def test_broadcast_reaches_every_team(self, team, other_team, catalog):
        sent = await chat.broadcast(catalog, "staff", "Judging starts in 10 minutes")
        assert {m.team_id for m in sent} == {team.team_id, other_team.team_id}
        assert len(await chat.get_all_messages(catalog)) == 2
