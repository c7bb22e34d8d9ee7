import logging
from datetime import datetime
from typing import Dict, List, Optional, Any, TypeVar

from pydantic import BaseModel

from src.support_hub.database.store import SessionStore
from src.support_hub.hub.errors import DuplicateSessionCodeError
from src.support_hub.models.entities import (
    ChatSession,
    Customer,
    Message,
    QuickReply,
    SOPDocument,
    User,
    OPEN_STATUSES,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

IMMUTABLE_FIELDS = {"id"}


def apply_changes(model: ModelT, changes: Dict[str, Any]) -> ModelT:
    """Return a validated copy of model with changes applied"""
    unknown = set(changes) - set(type(model).model_fields)
    if unknown:
        raise ValueError(f"Unknown fields for {type(model).__name__}: {unknown}")
    if IMMUTABLE_FIELDS & set(changes):
        raise ValueError("id cannot be changed")
    return type(model).model_validate({**model.model_dump(), **changes})


def _copy(model: Optional[ModelT]) -> Optional[ModelT]:
    return model.model_copy(deep=True) if model is not None else None


class InMemoryStore(SessionStore):
    """Process-local store for tests and demo deployments.

    All methods complete without awaiting anything, so each write is atomic
    with respect to other coroutines on the loop.
    """

    def __init__(self):
        self.users: Dict[str, User] = {}
        self.customers: Dict[str, Customer] = {}
        self.sessions: Dict[str, ChatSession] = {}
        self.session_codes: Dict[str, str] = {}
        self.messages: Dict[str, Message] = {}
        # insertion ordered message ids per session
        self.session_messages: Dict[str, List[str]] = {}
        self.sops: Dict[str, SOPDocument] = {}
        self.quick_replies: Dict[str, QuickReply] = {}

    # Users
    async def get_user(self, user_id: str) -> Optional[User]:
        return _copy(self.users.get(user_id))

    async def get_user_by_username(self, username: str) -> Optional[User]:
        for user in self.users.values():
            if user.username == username:
                return _copy(user)
        return None

    async def create_user(self, user: User) -> User:
        stored = user.model_copy(deep=True)
        self.users[stored.id] = stored
        return _copy(stored)

    async def set_user_online(
        self, user_id: str, is_online: bool
    ) -> Optional[User]:
        user = self.users.get(user_id)
        if user is None:
            return None
        user.is_online = is_online
        return _copy(user)

    async def list_users_by_role(self, role: str) -> List[User]:
        return [_copy(u) for u in self.users.values() if u.role == role]

    async def list_online_agents(self) -> List[User]:
        return [_copy(u) for u in self.users.values() if u.is_online]

    # Customers
    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return _copy(self.customers.get(customer_id))

    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        for customer in self.customers.values():
            if customer.email == email:
                return _copy(customer)
        return None

    async def create_customer(self, customer: Customer) -> Customer:
        stored = customer.model_copy(deep=True)
        self.customers[stored.id] = stored
        return _copy(stored)

    # Chat sessions
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return _copy(self.sessions.get(session_id))

    async def get_session_by_code(
        self, session_code: str
    ) -> Optional[ChatSession]:
        session_id = self.session_codes.get(session_code)
        return _copy(self.sessions.get(session_id)) if session_id else None

    async def create_session(self, session: ChatSession) -> ChatSession:
        if session.session_code in self.session_codes:
            raise DuplicateSessionCodeError(session.session_code)
        stored = session.model_copy(deep=True)
        stored.start_time = datetime.now()
        stored.end_time = None
        stored.transfer_history = []
        self.sessions[stored.id] = stored
        self.session_codes[stored.session_code] = stored.id
        self.session_messages[stored.id] = []
        logger.debug(f"Stored session {stored.session_code}")
        return _copy(stored)

    async def update_session(
        self, session_id: str, **changes: Any
    ) -> Optional[ChatSession]:
        current = self.sessions.get(session_id)
        if current is None:
            return None
        if "session_code" in changes:
            raise ValueError("session_code cannot be changed")
        updated = apply_changes(current, changes)
        self.sessions[session_id] = updated
        return _copy(updated)

    async def list_sessions(self) -> List[ChatSession]:
        return [_copy(s) for s in self.sessions.values()]

    async def list_active_sessions(self) -> List[ChatSession]:
        return [
            _copy(s) for s in self.sessions.values()
            if s.status in OPEN_STATUSES
        ]

    async def list_sessions_by_agent(self, agent_id: str) -> List[ChatSession]:
        return [
            _copy(s) for s in self.sessions.values() if s.agent_id == agent_id
        ]

    async def list_sessions_by_customer(
        self, customer_id: str
    ) -> List[ChatSession]:
        return [
            _copy(s) for s in self.sessions.values()
            if s.customer_id == customer_id
        ]

    # Messages
    async def create_message(self, message: Message) -> Message:
        stored = message.model_copy(deep=True)
        ordered = self.session_messages.setdefault(stored.session_id, [])
        timestamp = datetime.now()
        if ordered:
            # never go backwards even if the wall clock does
            timestamp = max(timestamp, self.messages[ordered[-1]].timestamp)
        stored.timestamp = timestamp
        stored.read_by = set()
        self.messages[stored.id] = stored
        ordered.append(stored.id)
        return _copy(stored)

    async def list_messages_by_session(self, session_id: str) -> List[Message]:
        ordered = [
            self.messages[mid]
            for mid in self.session_messages.get(session_id, [])
        ]
        # sorted() is stable, so equal timestamps keep insertion order
        return [_copy(m) for m in sorted(ordered, key=lambda m: m.timestamp)]

    async def list_recent_messages(
        self, session_id: str, limit: int
    ) -> List[Message]:
        messages = await self.list_messages_by_session(session_id)
        return messages[-limit:] if limit > 0 else []

    async def mark_message_read(
        self, message_id: str, user_id: str
    ) -> Optional[Message]:
        message = self.messages.get(message_id)
        if message is None:
            return None
        message.read_by.add(user_id)
        return _copy(message)

    # SOP documents
    async def get_sop(self, sop_id: str) -> Optional[SOPDocument]:
        return _copy(self.sops.get(sop_id))

    async def list_sops(self) -> List[SOPDocument]:
        return [_copy(s) for s in self.sops.values()]

    async def list_sops_by_category(self, category: str) -> List[SOPDocument]:
        return [_copy(s) for s in self.sops.values() if s.category == category]

    async def search_sops(self, keywords: List[str]) -> List[SOPDocument]:
        return [
            _copy(s) for s in self.sops.values()
            if any(s.matches(k) for k in keywords)
        ]

    async def create_sop(self, sop: SOPDocument) -> SOPDocument:
        stored = sop.model_copy(deep=True)
        stored.last_updated = datetime.now()
        self.sops[stored.id] = stored
        return _copy(stored)

    async def update_sop(
        self, sop_id: str, **changes: Any
    ) -> Optional[SOPDocument]:
        current = self.sops.get(sop_id)
        if current is None:
            return None
        changes["last_updated"] = datetime.now()
        updated = apply_changes(current, changes)
        self.sops[sop_id] = updated
        return _copy(updated)

    async def delete_sop(self, sop_id: str) -> bool:
        return self.sops.pop(sop_id, None) is not None

    # Quick replies
    async def list_quick_replies(self) -> List[QuickReply]:
        return [_copy(r) for r in self.quick_replies.values()]

    async def list_quick_replies_by_category(
        self, category: str
    ) -> List[QuickReply]:
        return [
            _copy(r) for r in self.quick_replies.values()
            if r.category == category
        ]

    async def create_quick_reply(self, reply: QuickReply) -> QuickReply:
        stored = reply.model_copy(deep=True)
        self.quick_replies[stored.id] = stored
        return _copy(stored)

    async def delete_quick_reply(self, reply_id: str) -> bool:
        return self.quick_replies.pop(reply_id, None) is not None
