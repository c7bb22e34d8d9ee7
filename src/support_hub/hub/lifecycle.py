"""Session lifecycle: start and agent assignment, transfer, end.

Shared by the socket hub and the HTTP routers so both paths apply the same
business rules.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple
from uuid import uuid4

from src.support_hub.database.store import SessionStore
from src.support_hub.hub.errors import (
    AgentNotFoundError,
    DuplicateSessionCodeError,
    NoAgentAvailableError,
    SessionClosedError,
    SessionNotFoundError,
    StoreError,
)
from src.support_hub.models.entities import (
    ChatSession,
    Customer,
    CustomerStatus,
    Message,
    MessageType,
    SenderType,
    SessionStatus,
    TransferRecord,
    User,
    UserRole,
    SYSTEM_SENDER_ID,
)

logger = logging.getLogger(__name__)

# only the base tier is auto-assigned to new chats
AUTO_ASSIGN_ROLE = UserRole.AGENT


def generate_session_code() -> str:
    return f"CHT-{int(time.time() * 1000)}-{uuid4().hex[:8]}"


def generate_customer_code() -> str:
    return f"CUS-{int(time.time() * 1000)}"


@dataclass
class TransferResult:
    session: ChatSession
    previous_agent_id: Optional[str]
    new_agent: User
    system_message: Optional[Message]
    # set when the transfer committed but its transcript entry did not
    audit_error: Optional[StoreError] = None


class SessionLifecycleManager:
    def __init__(self, store: SessionStore, session_code_attempts: int = 5):
        self.store = store
        self.session_code_attempts = session_code_attempts

    async def start_session(
        self, customer_name: str, customer_email: str
    ) -> Tuple[ChatSession, Customer, User]:
        """Open a chat for a customer and assign an online agent.

        The customer is looked up by email and created on first contact.
        Raises NoAgentAvailableError before anything is written to the
        session collection when no base-tier agent is online.
        """
        customer = await self.store.get_customer_by_email(customer_email)
        if customer is None:
            customer = await self.store.create_customer(Customer(
                name=customer_name,
                email=customer_email,
                customer_code=generate_customer_code(),
                total_orders=0,
                status=CustomerStatus.REGULAR,
            ))
            logger.info(f"Created customer {customer.id} for {customer_email}")

        agent = await self.select_agent()
        if agent is None:
            logger.warning(f"No agent available for {customer_email}")
            raise NoAgentAvailableError()

        session = await self._create_session_with_unique_code(customer, agent)
        logger.info(
            f"Started session {session.session_code} for customer "
            f"{customer.id} with agent {agent.id}"
        )
        return session, customer, agent

    async def select_agent(self) -> Optional[User]:
        """First online base-tier agent, availability matters, not order"""
        agents = await self.store.list_users_by_role(AUTO_ASSIGN_ROLE.value)
        return next((agent for agent in agents if agent.is_online), None)

    async def _create_session_with_unique_code(
        self, customer: Customer, agent: User
    ) -> ChatSession:
        for attempt in range(self.session_code_attempts):
            session_code = generate_session_code()
            if await self.store.get_session_by_code(session_code):
                logger.warning(f"Session code {session_code} already taken")
                continue
            try:
                return await self.store.create_session(ChatSession(
                    session_code=session_code,
                    customer_id=customer.id,
                    agent_id=agent.id,
                    status=SessionStatus.ACTIVE,
                ))
            except DuplicateSessionCodeError:
                # lost a race between the check and the insert
                logger.warning(f"Session code {session_code} collided on insert")
        raise StoreError(
            f"Could not allocate a unique session code after "
            f"{self.session_code_attempts} attempts"
        )

    async def get_session(self, session_code: str) -> ChatSession:
        session = await self.store.get_session_by_code(session_code)
        if session is None:
            raise SessionNotFoundError(session_code)
        return session

    async def transfer_session(
        self,
        session_code: str,
        new_agent_id: str,
        reason: Optional[str] = None
    ) -> TransferResult:
        """Reassign a session and record the transfer in history and transcript"""
        session = await self.get_session(session_code)
        if session.is_closed:
            raise SessionClosedError(session_code, session.status.value)
        new_agent = await self.store.get_user(new_agent_id)
        if new_agent is None:
            raise AgentNotFoundError(new_agent_id)

        previous_agent_id = session.agent_id
        history = session.transfer_history + [TransferRecord(
            from_agent=previous_agent_id,
            to_agent=new_agent.id,
            timestamp=datetime.now(),
            reason=reason,
        )]
        updated = await self.store.update_session(
            session.id, agent_id=new_agent.id, transfer_history=history
        )
        if updated is None:
            raise SessionNotFoundError(session_code)

        logger.info(
            f"Transferred session {session_code} from {previous_agent_id} "
            f"to {new_agent.id}. Reason: {reason}"
        )
        try:
            system_message = await self.store.create_message(Message(
                session_id=session.id,
                sender_id=SYSTEM_SENDER_ID,
                sender_type=SenderType.SYSTEM,
                content=(
                    f"Chat transferred to {new_agent.name} "
                    f"({new_agent.role_label})"
                ),
                message_type=MessageType.SYSTEM,
            ))
        except StoreError as e:
            logger.error(f"Transfer of {session_code} committed without system message: {e}")
            return TransferResult(updated, previous_agent_id, new_agent, None, e)
        return TransferResult(updated, previous_agent_id, new_agent, system_message)

    async def end_session(self, session_code: str) -> ChatSession:
        """Resolve a session; ending it again only refreshes end_time"""
        session = await self.get_session(session_code)
        status = (
            session.status if session.is_closed else SessionStatus.RESOLVED
        )
        updated = await self.store.update_session(
            session.id, status=status, end_time=datetime.now()
        )
        if updated is None:
            raise SessionNotFoundError(session_code)
        logger.info(f"Session {session_code} ended with status {status.value}")
        return updated
