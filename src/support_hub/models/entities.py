from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional, List, Set, Dict, Any
from datetime import datetime
from uuid import uuid4


def new_id() -> str:
    return str(uuid4())


class UserRole(str, Enum):
    AGENT = "agent"
    SENIOR_AGENT = "senior_agent"
    TEAM_LEAD = "team_lead"
    ADMIN = "admin"


class CustomerStatus(str, Enum):
    REGULAR = "regular"
    PREMIUM = "premium"
    VIP = "vip"


class SessionStatus(str, Enum):
    ACTIVE = "active"
    WAITING = "waiting"
    RESOLVED = "resolved"
    TERMINATED = "terminated"


CLOSED_STATUSES = (SessionStatus.RESOLVED, SessionStatus.TERMINATED)
OPEN_STATUSES = (SessionStatus.ACTIVE, SessionStatus.WAITING)


class SenderType(str, Enum):
    CUSTOMER = "customer"
    AGENT = "agent"
    SYSTEM = "system"


class MessageType(str, Enum):
    TEXT = "text"
    FILE = "file"
    SYSTEM = "system"


SYSTEM_SENDER_ID = "system"


class Entity(BaseModel):
    """Base for stored entities: snake_case in Python, camelCase on the wire"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class User(Entity):
    id: str = Field(default_factory=new_id)
    username: str
    password: str = Field(repr=False)
    role: UserRole = UserRole.AGENT
    name: str
    email: str
    is_online: bool = False
    created_at: datetime = Field(default_factory=datetime.now)

    def to_public(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude={"password"})

    @property
    def role_label(self) -> str:
        return self.role.value.replace("_", " ")


class Customer(Entity):
    id: str = Field(default_factory=new_id)
    name: str
    email: str
    customer_code: Optional[str] = None
    member_since: datetime = Field(default_factory=datetime.now)
    total_orders: int = 0
    status: CustomerStatus = CustomerStatus.REGULAR


class TransferRecord(Entity):
    from_agent: Optional[str] = None
    to_agent: str
    timestamp: datetime = Field(default_factory=datetime.now)
    reason: Optional[str] = None


class ChatSession(Entity):
    id: str = Field(default_factory=new_id)
    # the session code is the only identifier exposed over the wire
    session_code: str = Field(alias="sessionId")
    customer_id: Optional[str] = None
    agent_id: Optional[str] = None
    status: SessionStatus = SessionStatus.ACTIVE
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: Optional[datetime] = None
    transfer_history: List[TransferRecord] = Field(default_factory=list)
    rating: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_STATUSES


class Message(Entity):
    id: str = Field(default_factory=new_id)
    session_id: str
    sender_id: Optional[str] = None
    sender_type: SenderType
    content: str
    message_type: MessageType = MessageType.TEXT
    timestamp: datetime = Field(default_factory=datetime.now)
    read_by: Set[str] = Field(default_factory=set)


class SOPDocument(Entity):
    id: str = Field(default_factory=new_id)
    title: str
    category: str
    content: str
    keywords: List[str] = Field(default_factory=list)
    version: str = "1.0"
    last_updated: datetime = Field(default_factory=datetime.now)
    uploaded_by: Optional[str] = None

    def matches(self, keyword: str) -> bool:
        needle = keyword.lower()
        return (
            needle in self.title.lower()
            or needle in self.content.lower()
            or any(needle in k.lower() for k in self.keywords)
        )


class QuickReply(Entity):
    id: str = Field(default_factory=new_id)
    title: str
    content: str
    category: Optional[str] = None
    created_by: Optional[str] = None
