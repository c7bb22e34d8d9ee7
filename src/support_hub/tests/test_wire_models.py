"""
Unit tests for the WebSocket wire models
========================================
Inbound frames are parsed by ``type``; outbound helpers build camelCase dicts.
"""

import json

import pytest
from pydantic import ValidationError

from src.support_hub.models.entities import ChatSession, Message, SenderType, User
from src.support_hub.models.websocket import (
    ChatMessageEvent,
    EventType,
    JoinSessionEvent,
    ParticipantKind,
    SessionEndedEvent,
    SessionTransferEvent,
    TypingEvent,
    error_frame,
    outbound,
    parse_event,
)


class TestParseEvent:

    def test_join_defaults_to_customer(self):
        event = parse_event(json.dumps({"type": "join_session", "sessionId": "CHT-1"}))

        assert isinstance(event, JoinSessionEvent)
        assert event.session_id == "CHT-1"
        assert event.user_type == ParticipantKind.CUSTOMER

    def test_chat_message_from_dict(self):
        event = parse_event({
            "type": "chat_message",
            "sessionId": "CHT-1",
            "userId": "c1",
            "userType": "customer",
            "data": {"content": "Hello", "senderName": "Jane"},
        })

        assert isinstance(event, ChatMessageEvent)
        assert event.data.content == "Hello"
        assert event.data.sender_name == "Jane"

    def test_typing_accepts_any_payload(self):
        event = parse_event({"type": "agent_typing", "data": {"isTyping": False}})

        assert isinstance(event, TypingEvent)
        assert event.dump() == {"type": "agent_typing", "data": {"isTyping": False}}

    def test_transfer_payload(self):
        event = parse_event({
            "type": "session_transfer",
            "sessionId": "CHT-1",
            "data": {"newAgentId": "a2", "reason": "billing"},
        })

        assert isinstance(event, SessionTransferEvent)
        assert event.data.new_agent_id == "a2"

    def test_session_ended_without_data(self):
        event = parse_event({"type": "session_ended", "sessionId": "CHT-1"})

        assert isinstance(event, SessionEndedEvent)
        assert event.data.ended_by is None

    @pytest.mark.parametrize("raw", [
        "{broken",
        {"type": "bogus"},
        {"sessionId": "CHT-1"},
        {"type": "chat_message", "data": {"content": ""}},
        {"type": "join_session", "userType": "robot", "sessionId": "CHT-1"},
        {"type": "join_session", "sessionId": ""},
        {"type": "agent_status", "data": {"status": "sleeping"}},
    ])
    def test_invalid_frames_rejected(self, raw):
        with pytest.raises(ValidationError):
            parse_event(raw)


class TestOutbound:

    def test_outbound_shape(self):
        frame = outbound(EventType.SESSION_ENDED, "CHT-1", {"status": "resolved"})

        assert frame == {
            "type": "session_ended",
            "sessionId": "CHT-1",
            "data": {"status": "resolved"},
        }

    def test_outbound_omits_missing_parts(self):
        assert outbound(EventType.AGENT_STATUS) == {"type": "agent_status"}

    def test_error_frame(self):
        frame = error_frame("Session is resolved", "session_closed", "CHT-1")

        assert frame["type"] == "error"
        assert frame["data"] == {"error": "Session is resolved", "code": "session_closed"}


class TestEntitySerialization:

    def test_session_code_is_public_session_id(self):
        session = ChatSession(session_code="CHT-1", agent_id="a1")

        public = session.to_public()

        assert public["sessionId"] == "CHT-1"
        assert public["agentId"] == "a1"
        assert public["status"] == "active"
        assert public["transferHistory"] == []

    def test_session_accepts_wire_keys(self):
        session = ChatSession.model_validate({"sessionId": "CHT-1", "customerId": "c1"})

        assert session.session_code == "CHT-1"
        assert session.customer_id == "c1"

    def test_user_public_view_hides_password(self):
        user = User(username="agent1", password="secret", name="Mike", email="m@x.com")

        public = user.to_public()

        assert "password" not in public
        assert public["isOnline"] is False
        assert "secret" not in repr(user)

    def test_message_read_by_serializes_as_list(self):
        message = Message(
            session_id="s1", sender_type=SenderType.AGENT, content="hi",
            read_by={"a1"},
        )

        assert message.to_public()["readBy"] == ["a1"]
