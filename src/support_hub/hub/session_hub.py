"""Real-time relay between participants of a chat session.

Every inbound frame is validated, applied under the session's lock and fanned
out to the connections bound to that session according to BROADCAST_POLICY.

Ordering: the per-session lock is held from reading current state until the
outbound frames are queued on every recipient, so all participants observe
mutations of one session in the order they were committed to the store.
Sessions never wait on each other.
"""
import asyncio
import logging
import weakref
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from src.support_hub.database.store import SessionStore
from src.support_hub.hub.connection_registry import (
    Binding,
    Connection,
    ConnectionRegistry,
    ConnectionRecord,
)
from src.support_hub.hub.errors import (
    SessionClosedError,
    SupportHubError,
)
from src.support_hub.hub.lifecycle import SessionLifecycleManager, TransferResult
from src.support_hub.models.entities import (
    ChatSession,
    Message,
    MessageType,
    SenderType,
)
from src.support_hub.models.websocket import (
    ChatMessageEvent,
    EventType,
    JoinSessionEvent,
    LeaveSessionEvent,
    ParticipantKind,
    SessionEndedEvent,
    SessionTransferEvent,
    TypingEvent,
    AgentStatusEvent,
    error_frame,
    history_frame,
    outbound,
    parse_event,
)

logger = logging.getLogger(__name__)


class Audience(str, Enum):
    ALL = "all"                # every connection bound to the session
    OTHERS = "others"          # everyone except the sender
    REMAINING = "remaining"    # everyone still bound after the sender left
    NONE = "none"


BROADCAST_POLICY: Dict[EventType, Audience] = {
    # the joiner is notified too, so late agents can confirm presence
    EventType.JOIN_SESSION: Audience.ALL,
    EventType.CHAT_MESSAGE: Audience.ALL,
    # clients render their own typing state
    EventType.AGENT_TYPING: Audience.OTHERS,
    EventType.CUSTOMER_TYPING: Audience.OTHERS,
    EventType.SESSION_TRANSFER: Audience.ALL,
    EventType.SESSION_ENDED: Audience.ALL,
    EventType.LEAVE_SESSION: Audience.REMAINING,
    EventType.AGENT_STATUS: Audience.NONE,
}

SENDER_TYPES = {
    ParticipantKind.CUSTOMER: SenderType.CUSTOMER,
    ParticipantKind.AGENT: SenderType.AGENT,
}


class SessionLocks:
    """One asyncio.Lock per session code, dropped once nobody holds it"""

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    def get(self, session_code: str) -> asyncio.Lock:
        lock = self._locks.get(session_code)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_code] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


class SessionHub:
    def __init__(
        self,
        store: SessionStore,
        registry: ConnectionRegistry,
        lifecycle: SessionLifecycleManager,
        history_limit: int = 50
    ):
        self.store = store
        self.registry = registry
        self.lifecycle = lifecycle
        self.history_limit = history_limit
        self.locks = SessionLocks()
        self._handlers = {
            EventType.JOIN_SESSION: self._on_join,
            EventType.CHAT_MESSAGE: self._on_chat_message,
            EventType.AGENT_TYPING: self._on_typing,
            EventType.CUSTOMER_TYPING: self._on_typing,
            EventType.SESSION_TRANSFER: self._on_transfer,
            EventType.SESSION_ENDED: self._on_session_ended,
            EventType.LEAVE_SESSION: self._on_leave,
            EventType.AGENT_STATUS: self._on_agent_status,
        }

    # Connection lifecycle
    async def connect(self, connection: Connection) -> str:
        return await self.registry.register(connection)

    async def disconnect(self, handle: str) -> None:
        """Treat a dropped connection as an implicit leave"""
        binding = await self.registry.unregister(handle)
        if binding is None:
            return
        async with self.locks.get(binding.session_code):
            await self._broadcast_presence(binding, "left")
        await self._mark_agent_offline_if_gone(binding)

    # Inbound frames
    async def handle_frame(
        self, handle: str, raw: Union[str, bytes, Dict[str, Any]]
    ) -> None:
        """Validate and apply one inbound frame. Never raises."""
        try:
            event = parse_event(raw)
        except ValidationError as e:
            logger.warning(
                f"Dropped malformed frame from {handle}: "
                f"{e.error_count()} validation error(s)"
            )
            return
        await self.handle_event(handle, event)

    async def handle_event(self, handle: str, event) -> None:
        record = await self.registry.get(handle)
        if record is None:
            logger.warning(f"Dropped {event.type} from unknown connection {handle}")
            return
        handler = self._handlers[EventType(event.type)]
        try:
            await handler(record, event)
        except SupportHubError as e:
            logger.info(f"{event.type} from {handle} rejected: {e}")
            self._send(record, error_frame(
                str(e), e.code, event.session_id or record.session_code
            ))
        except Exception as e:
            logger.error(
                f"Error handling {event.type} from {handle}: {e}", exc_info=True
            )
            self._send(record, error_frame(
                "Internal error", "internal_error",
                event.session_id or record.session_code
            ))

    async def _on_join(
        self, record: ConnectionRecord, event: JoinSessionEvent
    ) -> None:
        session_code = event.session_id
        async with self.locks.get(session_code):
            binding = await self.registry.bind(
                record.handle, event.user_id, event.user_type, session_code
            )
            if event.user_type == ParticipantKind.AGENT and event.user_id:
                await self.store.set_user_online(event.user_id, True)
            await self._broadcast_presence(binding, "joined")
            session = await self.store.get_session_by_code(session_code)
            if session is not None:
                messages = await self.store.list_recent_messages(
                    session.id, self.history_limit
                )
                self._send(record, history_frame(
                    session_code, [m.to_public() for m in messages]
                ))

    async def _on_chat_message(
        self, record: ConnectionRecord, event: ChatMessageEvent
    ) -> None:
        binding = self._require_binding(record, event)
        if binding is None:
            return
        session_code = binding.session_code
        async with self.locks.get(session_code):
            session = await self.lifecycle.get_session(session_code)
            if session.is_closed:
                # no transcript growth after a session is resolved
                raise SessionClosedError(session_code, session.status.value)
            sender_id = binding.participant_id or event.user_id
            message = await self.store.create_message(Message(
                session_id=session.id,
                sender_id=sender_id,
                sender_type=SENDER_TYPES[binding.participant_kind],
                content=event.data.content,
                message_type=MessageType.TEXT,
            ))
            sender_name = event.data.sender_name or await self._display_name(
                session, binding.participant_kind, sender_id
            )
            await self._broadcast(
                EventType.CHAT_MESSAGE,
                session_code,
                self._message_frame(session_code, message, sender_name),
            )

    async def _on_typing(self, record: ConnectionRecord, event: TypingEvent) -> None:
        binding = self._require_binding(record, event)
        if binding is None:
            return
        await self._broadcast(
            EventType(event.type),
            binding.session_code,
            event.dump(),
            sender=record.handle,
        )

    async def _on_transfer(
        self, record: ConnectionRecord, event: SessionTransferEvent
    ) -> None:
        session_code = event.session_id or record.session_code
        if session_code is None:
            logger.warning(f"Dropped session_transfer without session from {record.handle}")
            return
        await self.transfer_session(
            session_code,
            event.data.new_agent_id,
            event.data.reason,
            initiated_by=record.participant_id or event.user_id,
        )

    async def _on_session_ended(
        self, record: ConnectionRecord, event: SessionEndedEvent
    ) -> None:
        session_code = event.session_id or record.session_code
        if session_code is None:
            logger.warning(f"Dropped session_ended without session from {record.handle}")
            return
        ended_by = event.data.ended_by or event.user_id or record.participant_id
        await self.end_session(session_code, ended_by=ended_by)

    async def _on_leave(
        self, record: ConnectionRecord, event: LeaveSessionEvent
    ) -> None:
        if record.session_code is None:
            return
        async with self.locks.get(record.session_code):
            binding = await self.registry.unbind(record.handle)
            if binding is not None:
                await self._broadcast_presence(binding, "left")

    async def _on_agent_status(
        self, record: ConnectionRecord, event: AgentStatusEvent
    ) -> None:
        logger.debug(f"Ignored inbound agent_status from {record.handle}")

    # Commands shared with the HTTP layer
    async def transfer_session(
        self,
        session_code: str,
        new_agent_id: str,
        reason: Optional[str] = None,
        initiated_by: Optional[str] = None
    ) -> TransferResult:
        async with self.locks.get(session_code):
            result = await self.lifecycle.transfer_session(
                session_code, new_agent_id, reason
            )
            await self._broadcast(EventType.SESSION_TRANSFER, session_code, outbound(
                EventType.SESSION_TRANSFER,
                session_code,
                {
                    "newAgentId": result.new_agent.id,
                    "newAgentName": result.new_agent.name,
                    "previousAgentId": result.previous_agent_id,
                    "reason": reason,
                    "initiatedBy": initiated_by,
                },
            ))
            if result.system_message is not None:
                await self._broadcast(
                    EventType.CHAT_MESSAGE,
                    session_code,
                    self._message_frame(
                        session_code, result.system_message, "System"
                    ),
                )
        if result.audit_error is not None:
            # participants saw the committed transfer, only the caller sees this
            raise result.audit_error
        return result

    async def end_session(
        self, session_code: str, ended_by: Optional[str] = None
    ) -> ChatSession:
        async with self.locks.get(session_code):
            session = await self.lifecycle.end_session(session_code)
            await self._broadcast(EventType.SESSION_ENDED, session_code, outbound(
                EventType.SESSION_ENDED,
                session_code,
                {"endedBy": ended_by, "status": session.status.value},
            ))
            return session

    # Fan-out
    async def _broadcast(
        self,
        event_type: EventType,
        session_code: str,
        message: Dict[str, Any],
        sender: Optional[str] = None
    ) -> int:
        """Queue message on the audience BROADCAST_POLICY names for event_type"""
        audience = BROADCAST_POLICY[event_type]
        if audience == Audience.NONE:
            return 0
        exclude = sender if audience == Audience.OTHERS else None
        delivered = 0
        for record in await self.registry.connections_for_session(session_code):
            if record.handle == exclude or record.connection.closed:
                continue
            if self._send(record, message):
                delivered += 1
        return delivered

    async def _broadcast_presence(self, binding: Binding, status: str) -> None:
        event_type = (
            EventType.JOIN_SESSION if status == "joined"
            else EventType.LEAVE_SESSION
        )
        await self._broadcast(event_type, binding.session_code, outbound(
            EventType.AGENT_STATUS,
            binding.session_code,
            {
                "status": status,
                "userId": binding.participant_id,
                "userType": binding.participant_kind.value,
            },
        ))

    def _send(self, record: ConnectionRecord, message: Dict[str, Any]) -> bool:
        try:
            record.connection.send(message)
            return True
        except Exception as e:
            logger.error(f"Error queueing message for {record.handle}: {e}")
            return False

    # Helpers
    def _require_binding(self, record: ConnectionRecord, event) -> Optional[Binding]:
        binding = record.binding
        if binding is None:
            logger.warning(f"Dropped {event.type} from unbound connection {record.handle}")
            return None
        if event.session_id and event.session_id != binding.session_code:
            logger.warning(
                f"Dropped {event.type} for {event.session_id} from connection "
                f"{record.handle} bound to {binding.session_code}"
            )
            return None
        return binding

    def _message_frame(
        self, session_code: str, message: Message, sender_name: Optional[str]
    ) -> Dict[str, Any]:
        data = message.to_public()
        data["senderName"] = sender_name
        return outbound(EventType.CHAT_MESSAGE, session_code, data)

    async def _display_name(
        self,
        session: ChatSession,
        kind: ParticipantKind,
        participant_id: Optional[str]
    ) -> Optional[str]:
        if kind == ParticipantKind.AGENT and participant_id:
            agent = await self.store.get_user(participant_id)
            return agent.name if agent else None
        customer_id = participant_id or session.customer_id
        customer = await self.store.get_customer(customer_id) if customer_id else None
        if customer is None and session.customer_id:
            customer = await self.store.get_customer(session.customer_id)
        return customer.name if customer else None

    async def _mark_agent_offline_if_gone(self, binding: Binding) -> None:
        if binding.participant_kind != ParticipantKind.AGENT:
            return
        if not binding.participant_id:
            return
        remaining = await self.registry.connections_for_participant(
            binding.participant_id
        )
        if remaining:
            return
        try:
            await self.store.set_user_online(binding.participant_id, False)
            logger.info(f"Agent {binding.participant_id} went offline")
        except SupportHubError as e:
            logger.error(f"Could not mark agent {binding.participant_id} offline: {e}")

