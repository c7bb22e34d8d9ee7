"""Wire protocol frames exchanged over the hub WebSocket.

Inbound frames are validated into one model per ``type``. Anything that does
not match its variant is rejected at the boundary with a pydantic
``ValidationError`` and never reaches the hub.
"""
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator
from pydantic.alias_generators import to_camel


class EventType(str, Enum):
    JOIN_SESSION = "join_session"
    CHAT_MESSAGE = "chat_message"
    AGENT_TYPING = "agent_typing"
    CUSTOMER_TYPING = "customer_typing"
    SESSION_TRANSFER = "session_transfer"
    SESSION_ENDED = "session_ended"
    AGENT_STATUS = "agent_status"
    LEAVE_SESSION = "leave_session"
    # outbound only
    SESSION_HISTORY = "session_history"
    ERROR = "error"


class ParticipantKind(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"


class WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(WireModel):
    """Fields shared by every frame"""
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    user_type: Optional[ParticipantKind] = None

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class ChatMessageData(WireModel):
    content: str
    sender_name: Optional[str] = None

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("content must not be empty")
        return value


class TransferData(WireModel):
    new_agent_id: str
    reason: Optional[str] = None


class SessionEndedData(WireModel):
    ended_by: Optional[str] = None


class AgentStatusData(WireModel):
    status: Literal["joined", "left"]
    user_id: Optional[str] = None
    user_type: Optional[ParticipantKind] = None


class JoinSessionEvent(Envelope):
    type: Literal["join_session"]
    session_id: str = Field(min_length=1)
    user_type: ParticipantKind = ParticipantKind.CUSTOMER


class ChatMessageEvent(Envelope):
    type: Literal["chat_message"]
    data: ChatMessageData


class TypingEvent(Envelope):
    type: Literal["agent_typing", "customer_typing"]
    data: Optional[Any] = None


class SessionTransferEvent(Envelope):
    type: Literal["session_transfer"]
    data: TransferData


class SessionEndedEvent(Envelope):
    type: Literal["session_ended"]
    data: SessionEndedData = Field(default_factory=SessionEndedData)


class AgentStatusEvent(Envelope):
    type: Literal["agent_status"]
    data: AgentStatusData


class LeaveSessionEvent(Envelope):
    type: Literal["leave_session"]


InboundEvent = Annotated[
    Union[
        JoinSessionEvent,
        ChatMessageEvent,
        TypingEvent,
        SessionTransferEvent,
        SessionEndedEvent,
        AgentStatusEvent,
        LeaveSessionEvent,
    ],
    Field(discriminator="type"),
]

inbound_adapter = TypeAdapter(InboundEvent)


def parse_event(raw: Union[str, bytes, Dict[str, Any]]) -> InboundEvent:
    """Validate a raw frame into its typed event, raises ValidationError"""
    if isinstance(raw, (str, bytes)):
        return inbound_adapter.validate_json(raw)
    return inbound_adapter.validate_python(raw)


def outbound(
    event_type: EventType,
    session_code: Optional[str] = None,
    data: Optional[Any] = None,
    **extra: Any
) -> Dict[str, Any]:
    """Build an outbound frame dict in wire (camelCase) shape"""
    frame: Dict[str, Any] = {"type": event_type.value}
    if session_code is not None:
        frame["sessionId"] = session_code
    if data is not None:
        frame["data"] = data
    frame.update(extra)
    return frame


def error_frame(
    message: str, code: str, session_code: Optional[str] = None
) -> Dict[str, Any]:
    return outbound(
        EventType.ERROR, session_code, {"error": message, "code": code}
    )


def history_frame(
    session_code: str, messages: List[Dict[str, Any]]
) -> Dict[str, Any]:
    return outbound(
        EventType.SESSION_HISTORY, session_code, {"messages": messages}
    )
