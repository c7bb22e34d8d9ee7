import logging
from fastapi import APIRouter, Depends

from src.support_hub.api.deps import get_service_container
from src.support_hub.hub.errors import MessageNotFoundError
from src.support_hub.hub.service_container import ServiceContainer
from src.support_hub.models.api import (
    DashboardStats,
    MarkReadRequest,
    StartSessionRequest,
    TransferRequest,
)
from src.support_hub.models.entities import SessionStatus

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat/start")
async def start_chat(
    request: StartSessionRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    """Open a chat for the customer and assign an online agent.

    Responds 503 when no agent is online so the widget can offer a retry.
    """
    session, customer, agent = await services.lifecycle.start_session(
        request.customer_name, request.customer_email
    )
    return {
        "session": session.to_public(),
        "customer": customer.to_public(),
        "agent": agent.to_public(),
    }


@router.get("/chat/sessions")
async def get_active_sessions(
    services: ServiceContainer = Depends(get_service_container)
):
    """Active and waiting sessions with customer, agent and last message"""
    store = services.store
    result = []
    for session in await store.list_active_sessions():
        customer = (
            await store.get_customer(session.customer_id)
            if session.customer_id else None
        )
        agent = await store.get_user(session.agent_id) if session.agent_id else None
        recent = await store.list_recent_messages(session.id, 1)
        enriched = session.to_public()
        enriched["customer"] = customer.to_public() if customer else None
        enriched["agent"] = agent.to_public() if agent else None
        enriched["lastMessage"] = recent[0].to_public() if recent else None
        result.append(enriched)
    return result


@router.get("/chat/sessions/{session_code}/messages")
async def get_session_messages(
    session_code: str,
    services: ServiceContainer = Depends(get_service_container)
):
    session = await services.lifecycle.get_session(session_code)
    messages = await services.store.list_messages_by_session(session.id)
    return [m.to_public() for m in messages]


@router.post("/chat/transfer")
async def transfer_chat(
    request: TransferRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    """Reassign a session; connected participants see the same events as a
    socket-initiated transfer."""
    logger.info(f"[Router Transfer] {request.session_id} -> {request.new_agent_id}")
    result = await services.hub.transfer_session(
        request.session_id, request.new_agent_id, request.reason
    )
    return result.session.to_public()


@router.post("/chat/end/{session_code}")
async def end_chat(
    session_code: str,
    services: ServiceContainer = Depends(get_service_container)
):
    session = await services.hub.end_session(session_code)
    return session.to_public()


@router.post("/chat/messages/{message_id}/read")
async def mark_message_read(
    message_id: str,
    request: MarkReadRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    message = await services.store.mark_message_read(message_id, request.user_id)
    if message is None:
        raise MessageNotFoundError(message_id)
    return message.to_public()


@router.get("/dashboard/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    services: ServiceContainer = Depends(get_service_container)
):
    active_sessions = await services.store.list_active_sessions()
    online_agents = await services.store.list_online_agents()
    return DashboardStats(
        active_chats=sum(
            1 for s in active_sessions if s.status == SessionStatus.ACTIVE
        ),
        waiting_chats=sum(
            1 for s in active_sessions if s.status == SessionStatus.WAITING
        ),
        online_agents=len(online_agents),
        total_sessions=len(active_sessions),
    )
