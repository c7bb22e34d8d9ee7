"""
Unit tests for ConnectionRegistry
=================================
Registration, binding and the per-session index.
"""

import pytest

from src.support_hub.hub.connection_registry import ConnectionRegistry
from src.support_hub.models.websocket import ParticipantKind

from conftest import FakeConnection


class TestRegistration:

    @pytest.mark.asyncio
    async def test_register_returns_unique_handles(self):
        registry = ConnectionRegistry()
        first = await registry.register(FakeConnection())
        second = await registry.register(FakeConnection())

        assert first != second
        assert len(registry) == 2

    @pytest.mark.asyncio
    async def test_new_connection_is_unbound(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())

        record = await registry.get(handle)
        assert record.session_code is None
        assert record.binding is None

    @pytest.mark.asyncio
    async def test_unregister_unknown_handle_returns_none(self):
        registry = ConnectionRegistry()
        assert await registry.unregister("missing") is None


class TestBinding:

    @pytest.mark.asyncio
    async def test_bind_adds_connection_to_session(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())

        binding = await registry.bind(
            handle, "agent-1", ParticipantKind.AGENT, "CHT-1"
        )

        assert binding.session_code == "CHT-1"
        assert binding.participant_kind == ParticipantKind.AGENT
        records = await registry.connections_for_session("CHT-1")
        assert [r.handle for r in records] == [handle]

    @pytest.mark.asyncio
    async def test_rebind_moves_connection_between_sessions(self):
        """A connection belongs to at most one session"""
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())
        await registry.bind(handle, "c1", ParticipantKind.CUSTOMER, "CHT-1")
        await registry.bind(handle, "c1", ParticipantKind.CUSTOMER, "CHT-2")

        assert await registry.connections_for_session("CHT-1") == []
        records = await registry.connections_for_session("CHT-2")
        assert [r.handle for r in records] == [handle]

    @pytest.mark.asyncio
    async def test_bind_unknown_handle_raises(self):
        registry = ConnectionRegistry()
        with pytest.raises(KeyError):
            await registry.bind("missing", "c1", ParticipantKind.CUSTOMER, "CHT-1")

    @pytest.mark.asyncio
    async def test_unbind_keeps_connection_registered(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())
        await registry.bind(handle, "c1", ParticipantKind.CUSTOMER, "CHT-1")

        previous = await registry.unbind(handle)

        assert previous.session_code == "CHT-1"
        assert await registry.connections_for_session("CHT-1") == []
        assert (await registry.get(handle)).binding is None
        assert len(registry) == 1

    @pytest.mark.asyncio
    async def test_unregister_returns_last_binding(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())
        await registry.bind(handle, "a1", ParticipantKind.AGENT, "CHT-1")

        previous = await registry.unregister(handle)

        assert previous.participant_id == "a1"
        assert previous.session_code == "CHT-1"
        assert await registry.get(handle) is None
        assert await registry.connections_for_session("CHT-1") == []


class TestSnapshots:

    @pytest.mark.asyncio
    async def test_get_returns_copy(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())

        record = await registry.get(handle)
        record.session_code = "CHT-9"

        assert (await registry.get(handle)).session_code is None

    @pytest.mark.asyncio
    async def test_connections_for_participant_spans_sessions(self):
        registry = ConnectionRegistry()
        first = await registry.register(FakeConnection())
        second = await registry.register(FakeConnection())
        other = await registry.register(FakeConnection())
        await registry.bind(first, "a1", ParticipantKind.AGENT, "CHT-1")
        await registry.bind(second, "a1", ParticipantKind.AGENT, "CHT-2")
        await registry.bind(other, "a2", ParticipantKind.AGENT, "CHT-1")

        records = await registry.connections_for_participant("a1")

        assert {r.handle for r in records} == {first, second}

    @pytest.mark.asyncio
    async def test_clear_forgets_everything(self):
        registry = ConnectionRegistry()
        handle = await registry.register(FakeConnection())
        await registry.bind(handle, "c1", ParticipantKind.CUSTOMER, "CHT-1")

        await registry.clear()

        assert len(registry) == 0
        assert await registry.connections_for_session("CHT-1") == []
