import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd

from src.support_hub.database.store import SessionStore
from src.support_hub.hub.errors import InvalidRequestError
from src.support_hub.models.entities import ChatSession

logger = logging.getLogger(__name__)


class ExportScope(str, Enum):
    ALL = "all"
    CUSTOMER = "customer-wise"
    AGENT = "agent-wise"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


CSV_COLUMNS = [
    "sessionId",
    "customerName",
    "customerEmail",
    "agentName",
    "agentRole",
    "messageContent",
    "senderType",
    "timestamp",
    "sessionStart",
    "sessionEnd",
    "sessionStatus",
]


class ConversationExporter:
    """Collect sessions with their transcript for download"""

    def __init__(self, store: SessionStore):
        self.store = store

    async def collect(
        self,
        scope: ExportScope,
        customer_id: Optional[str] = None,
        agent_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        sessions = await self._sessions_for_scope(scope, customer_id, agent_id)
        export_data = []
        for session in sessions:
            customer = (
                await self.store.get_customer(session.customer_id)
                if session.customer_id else None
            )
            agent = (
                await self.store.get_user(session.agent_id)
                if session.agent_id else None
            )
            messages = await self.store.list_messages_by_session(session.id)
            session_data = session.to_public()
            session_data["customer"] = customer.to_public() if customer else None
            session_data["agent"] = agent.to_public() if agent else None
            export_data.append({
                "session": session_data,
                "messages": [m.to_public() for m in messages],
            })
        logger.info(f"Collected {len(export_data)} sessions for {scope.value} export")
        return export_data

    async def _sessions_for_scope(
        self,
        scope: ExportScope,
        customer_id: Optional[str],
        agent_id: Optional[str]
    ) -> List[ChatSession]:
        if scope == ExportScope.ALL:
            return await self.store.list_sessions()
        if scope == ExportScope.CUSTOMER:
            if not customer_id:
                raise InvalidRequestError("customerId is required for customer-wise export")
            return await self.store.list_sessions_by_customer(customer_id)
        if not agent_id:
            raise InvalidRequestError("agentId is required for agent-wise export")
        return await self.store.list_sessions_by_agent(agent_id)


def flatten_rows(export_data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """One row per message, carrying its session's customer and agent"""
    rows = []
    for entry in export_data:
        session = entry["session"]
        customer = session.get("customer") or {}
        agent = session.get("agent") or {}
        for message in entry["messages"]:
            rows.append({
                "sessionId": session["sessionId"],
                "customerName": customer.get("name", "Unknown"),
                "customerEmail": customer.get("email", "Unknown"),
                "agentName": agent.get("name", "Unknown"),
                "agentRole": agent.get("role", "Unknown"),
                "messageContent": message["content"],
                "senderType": message["senderType"],
                "timestamp": message["timestamp"],
                "sessionStart": session["startTime"],
                "sessionEnd": session.get("endTime"),
                "sessionStatus": session["status"],
            })
    return rows


def to_csv(export_data: List[Dict[str, Any]]) -> str:
    df = pd.DataFrame(flatten_rows(export_data), columns=CSV_COLUMNS)
    return df.to_csv(index=False)
