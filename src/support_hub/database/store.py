"""Persistence contract used by the hub, the lifecycle manager and the API.

Every getter returns ``None`` when the entity does not exist, updates return
the persisted entity or ``None``, deletes return whether something was removed.
Implementations return copies, so callers can never mutate stored state
without going through an update.
"""
from abc import ABC, abstractmethod
from typing import List, Optional, Any

from src.support_hub.models.entities import (
    ChatSession,
    Customer,
    Message,
    QuickReply,
    SOPDocument,
    User,
)


class SessionStore(ABC):

    async def connect(self) -> None:
        """Open underlying resources, no-op by default"""

    async def cleanup(self) -> None:
        """Release underlying resources, no-op by default"""

    # Users
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    async def create_user(self, user: User) -> User: ...

    @abstractmethod
    async def set_user_online(
        self, user_id: str, is_online: bool
    ) -> Optional[User]: ...

    @abstractmethod
    async def list_users_by_role(self, role: str) -> List[User]: ...

    @abstractmethod
    async def list_online_agents(self) -> List[User]: ...

    # Customers
    @abstractmethod
    async def get_customer(self, customer_id: str) -> Optional[Customer]: ...

    @abstractmethod
    async def get_customer_by_email(self, email: str) -> Optional[Customer]: ...

    @abstractmethod
    async def create_customer(self, customer: Customer) -> Customer: ...

    # Chat sessions
    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ChatSession]: ...

    @abstractmethod
    async def get_session_by_code(
        self, session_code: str
    ) -> Optional[ChatSession]: ...

    @abstractmethod
    async def create_session(self, session: ChatSession) -> ChatSession:
        """Persist a new session, raises DuplicateSessionCodeError"""

    @abstractmethod
    async def update_session(
        self, session_id: str, **changes: Any
    ) -> Optional[ChatSession]: ...

    @abstractmethod
    async def list_sessions(self) -> List[ChatSession]: ...

    @abstractmethod
    async def list_active_sessions(self) -> List[ChatSession]: ...

    @abstractmethod
    async def list_sessions_by_agent(self, agent_id: str) -> List[ChatSession]: ...

    @abstractmethod
    async def list_sessions_by_customer(
        self, customer_id: str
    ) -> List[ChatSession]: ...

    # Messages
    @abstractmethod
    async def create_message(self, message: Message) -> Message:
        """Persist a message, the store assigns its timestamp"""

    @abstractmethod
    async def list_messages_by_session(self, session_id: str) -> List[Message]: ...

    @abstractmethod
    async def list_recent_messages(
        self, session_id: str, limit: int
    ) -> List[Message]: ...

    @abstractmethod
    async def mark_message_read(
        self, message_id: str, user_id: str
    ) -> Optional[Message]: ...

    # SOP documents
    @abstractmethod
    async def get_sop(self, sop_id: str) -> Optional[SOPDocument]: ...

    @abstractmethod
    async def list_sops(self) -> List[SOPDocument]: ...

    @abstractmethod
    async def list_sops_by_category(self, category: str) -> List[SOPDocument]: ...

    @abstractmethod
    async def search_sops(self, keywords: List[str]) -> List[SOPDocument]: ...

    @abstractmethod
    async def create_sop(self, sop: SOPDocument) -> SOPDocument: ...

    @abstractmethod
    async def update_sop(
        self, sop_id: str, **changes: Any
    ) -> Optional[SOPDocument]:
        """Apply changes and bump last_updated"""

    @abstractmethod
    async def delete_sop(self, sop_id: str) -> bool: ...

    # Quick replies
    @abstractmethod
    async def list_quick_replies(self) -> List[QuickReply]: ...

    @abstractmethod
    async def list_quick_replies_by_category(
        self, category: str
    ) -> List[QuickReply]: ...

    @abstractmethod
    async def create_quick_reply(self, reply: QuickReply) -> QuickReply: ...

    @abstractmethod
    async def delete_quick_reply(self, reply_id: str) -> bool: ...
