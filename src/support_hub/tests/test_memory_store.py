"""
Unit tests for InMemoryStore
============================
Session code uniqueness, transcript ordering, partial updates and SOP search.
"""

import pytest

from src.support_hub.database.memory_store import InMemoryStore
from src.support_hub.hub.errors import DuplicateSessionCodeError
from src.support_hub.models.entities import (
    ChatSession,
    Message,
    SenderType,
    SessionStatus,
    SOPDocument,
    UserRole,
)


class TestSessions:

    @pytest.mark.asyncio
    async def test_duplicate_session_code_rejected(self):
        store = InMemoryStore()
        await store.create_session(ChatSession(session_code="CHT-1"))

        with pytest.raises(DuplicateSessionCodeError):
            await store.create_session(ChatSession(session_code="CHT-1"))

    @pytest.mark.asyncio
    async def test_create_session_resets_server_fields(self):
        store = InMemoryStore()
        session = await store.create_session(
            ChatSession(session_code="CHT-1", transfer_history=[{"toAgent": "a1"}])
        )

        assert session.end_time is None
        assert session.transfer_history == []
        assert (await store.get_session_by_code("CHT-1")).id == session.id

    @pytest.mark.asyncio
    async def test_update_session_is_partial(self):
        store = InMemoryStore()
        session = await store.create_session(
            ChatSession(session_code="CHT-1", agent_id="a1", customer_id="c1")
        )

        updated = await store.update_session(
            session.id, status=SessionStatus.RESOLVED
        )

        assert updated.status == SessionStatus.RESOLVED
        assert updated.agent_id == "a1"
        assert updated.customer_id == "c1"

    @pytest.mark.asyncio
    async def test_update_session_cannot_change_code(self):
        store = InMemoryStore()
        session = await store.create_session(ChatSession(session_code="CHT-1"))

        with pytest.raises(ValueError):
            await store.update_session(session.id, session_code="CHT-2")

    @pytest.mark.asyncio
    async def test_update_missing_session_returns_none(self):
        store = InMemoryStore()
        assert await store.update_session("missing", agent_id="a1") is None

    @pytest.mark.asyncio
    async def test_returned_sessions_are_copies(self):
        store = InMemoryStore()
        session = await store.create_session(ChatSession(session_code="CHT-1"))
        session.status = SessionStatus.TERMINATED

        stored = await store.get_session(session.id)
        assert stored.status == SessionStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_active_sessions_exclude_closed(self):
        store = InMemoryStore()
        open_session = await store.create_session(ChatSession(session_code="CHT-1"))
        closed = await store.create_session(ChatSession(session_code="CHT-2"))
        await store.update_session(closed.id, status=SessionStatus.RESOLVED)

        active = await store.list_active_sessions()

        assert [s.id for s in active] == [open_session.id]


class TestMessages:

    @pytest.mark.asyncio
    async def test_transcript_keeps_insertion_order(self):
        store = InMemoryStore()
        for i in range(5):
            await store.create_message(Message(
                session_id="s1",
                sender_id="c1",
                sender_type=SenderType.CUSTOMER,
                content=f"m{i}",
            ))

        messages = await store.list_messages_by_session("s1")

        assert [m.content for m in messages] == ["m0", "m1", "m2", "m3", "m4"]
        timestamps = [m.timestamp for m in messages]
        assert timestamps == sorted(timestamps)

    @pytest.mark.asyncio
    async def test_recent_messages_returns_tail(self):
        store = InMemoryStore()
        for i in range(4):
            await store.create_message(Message(
                session_id="s1", sender_type=SenderType.AGENT, content=f"m{i}"
            ))

        recent = await store.list_recent_messages("s1", 2)

        assert [m.content for m in recent] == ["m2", "m3"]

    @pytest.mark.asyncio
    async def test_mark_read_is_idempotent(self):
        store = InMemoryStore()
        message = await store.create_message(Message(
            session_id="s1", sender_type=SenderType.CUSTOMER, content="hi"
        ))

        await store.mark_message_read(message.id, "a1")
        updated = await store.mark_message_read(message.id, "a1")

        assert updated.read_by == {"a1"}
        assert await store.mark_message_read("missing", "a1") is None


class TestUsersAndKnowledge:

    @pytest.mark.asyncio
    async def test_seeded_roles(self, store):
        agents = await store.list_users_by_role(UserRole.AGENT.value)
        assert {a.username for a in agents} == {"agent1", "agent2"}

    @pytest.mark.asyncio
    async def test_set_user_online(self, store, mike):
        updated = await store.set_user_online(mike.id, False)

        assert updated.is_online is False
        online = await store.list_online_agents()
        assert mike.id not in {u.id for u in online}

    @pytest.mark.asyncio
    async def test_search_sops_matches_title_content_and_keywords(self):
        store = InMemoryStore()
        await store.create_sop(SOPDocument(
            title="Refund Policy", category="billing", content="Within 30 days"
        ))
        await store.create_sop(SOPDocument(
            title="Shipping", category="orders", content="Track it",
            keywords=["delivery"],
        ))

        assert len(await store.search_sops(["REFUND"])) == 1
        assert len(await store.search_sops(["30 days"])) == 1
        assert len(await store.search_sops(["deliv"])) == 1
        assert len(await store.search_sops(["refund", "track"])) == 2
        assert await store.search_sops(["warranty"]) == []

    @pytest.mark.asyncio
    async def test_update_sop_touches_last_updated(self):
        store = InMemoryStore()
        sop = await store.create_sop(SOPDocument(
            title="Refund Policy", category="billing", content="v1"
        ))

        updated = await store.update_sop(sop.id, content="v2")

        assert updated.content == "v2"
        assert updated.title == "Refund Policy"
        assert updated.last_updated >= sop.last_updated

    @pytest.mark.asyncio
    async def test_update_sop_rejects_unknown_fields(self):
        store = InMemoryStore()
        sop = await store.create_sop(SOPDocument(
            title="Refund Policy", category="billing", content="v1"
        ))

        with pytest.raises(ValueError):
            await store.update_sop(sop.id, colour="red")
