import logging
import re
import functools
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from src.support_hub.database.memory_store import apply_changes
from src.support_hub.database.mongodb_client import MongoDBClient
from src.support_hub.database.store import SessionStore
from src.support_hub.hub.errors import DuplicateSessionCodeError, StoreError
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

NO_MONGO_ID = {"_id": 0}

COLLECTION_INDEXES = {
    "users": [
        ([("id", ASCENDING)], True),
        ([("username", ASCENDING)], True),
        ([("role", ASCENDING), ("is_online", ASCENDING)], False),
    ],
    "customers": [
        ([("id", ASCENDING)], True),
        ([("email", ASCENDING)], True),
    ],
    "chat_sessions": [
        ([("id", ASCENDING)], True),
        ([("session_code", ASCENDING)], True),
        ([("status", ASCENDING)], False),
        ([("agent_id", ASCENDING)], False),
        ([("customer_id", ASCENDING)], False),
    ],
    "messages": [
        ([("id", ASCENDING)], True),
        ([("session_id", ASCENDING), ("timestamp", ASCENDING)], False),
    ],
    "sop_documents": [
        ([("id", ASCENDING)], True),
        ([("category", ASCENDING)], False),
    ],
    "quick_replies": [
        ([("id", ASCENDING)], True),
        ([("category", ASCENDING)], False),
    ],
}


def store_operation(func):
    """Surface driver failures as StoreError so callers see one error type"""
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(f"MongoDB operation {func.__name__} failed: {e}")
            raise StoreError(f"Store operation {func.__name__} failed") from e
    return wrapper


def _bson_safe(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if isinstance(value, dict):
        return {k: _bson_safe(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_bson_safe(v) for v in value]
    return value


def to_document(model: BaseModel) -> Dict[str, Any]:
    return _bson_safe(model.model_dump())


def from_document(
    model_cls: Type[ModelT], doc: Optional[Dict[str, Any]]
) -> Optional[ModelT]:
    if doc is None:
        return None
    doc.pop("_id", None)
    return model_cls.model_validate(doc)


class MongoStore(SessionStore):
    """SessionStore backed by MongoDB through motor"""

    def __init__(self, cfg, mongo_uri: str):
        self.cfg = cfg
        self.mongodb_client = MongoDBClient(
            mongo_uri,
            max_retries=cfg.mongodb.max_retries,
            retry_delay=cfg.mongodb.retry_delay,
            timeout_ms=cfg.mongodb.timeout_ms,
        )
        self.db = None

    async def connect(self) -> None:
        await self.mongodb_client.connect()
        self.db = self.mongodb_client.client[self.cfg.mongodb.db_name]
        for name, indexes in COLLECTION_INDEXES.items():
            for keys, unique in indexes:
                await self.db[name].create_index(keys, unique=unique)
        logger.info(f"MongoDB store ready on {self.cfg.mongodb.db_name}")

    async def cleanup(self) -> None:
        await self.mongodb_client.cleanup()

    async def _find_one(
        self, collection: str, model_cls: Type[ModelT], query: Dict[str, Any]
    ) -> Optional[ModelT]:
        doc = await self.db[collection].find_one(query, NO_MONGO_ID)
        return from_document(model_cls, doc)

    async def _find(
        self,
        collection: str,
        model_cls: Type[ModelT],
        query: Dict[str, Any],
        sort=None
    ) -> List[ModelT]:
        cursor = self.db[collection].find(query, NO_MONGO_ID, sort=sort)
        return [from_document(model_cls, doc) async for doc in cursor]

    async def _insert(self, collection: str, model: ModelT) -> ModelT:
        await self.db[collection].insert_one(to_document(model))
        return model

    # Users
    @store_operation
    async def get_user(self, user_id: str) -> Optional[User]:
        return await self._find_one("users", User, {"id": user_id})

    @store_operation
    async def get_user_by_username(self, username: str) -> Optional[User]:
        return await self._find_one("users", User, {"username": username})

    @store_operation
    async def create_user(self, user: User) -> User:
        return await self._insert("users", user)

    @store_operation
    async def set_user_online(
        self, user_id: str, is_online: bool
    ) -> Optional[User]:
        doc = await self.db.users.find_one_and_update(
            {"id": user_id},
            {"$set": {"is_online": is_online}},
            projection=NO_MONGO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return from_document(User, doc)

    @store_operation
    async def list_users_by_role(self, role: str) -> List[User]:
        return await self._find(
            "users", User, {"role": role}, sort=[("created_at", ASCENDING)]
        )

    @store_operation
    async def list_online_agents(self) -> List[User]:
        return await self._find("users", User, {"is_online": True})

    # Customers
    @store_operation
    async def get_customer(self, customer_id: str) -> Optional[Customer]:
        return await self._find_one("customers", Customer, {"id": customer_id})

    @store_operation
    async def get_customer_by_email(self, email: str) -> Optional[Customer]:
        return await self._find_one("customers", Customer, {"email": email})

    @store_operation
    async def create_customer(self, customer: Customer) -> Customer:
        return await self._insert("customers", customer)

    # Chat sessions
    @store_operation
    async def get_session(self, session_id: str) -> Optional[ChatSession]:
        return await self._find_one("chat_sessions", ChatSession, {"id": session_id})

    @store_operation
    async def get_session_by_code(
        self, session_code: str
    ) -> Optional[ChatSession]:
        return await self._find_one(
            "chat_sessions", ChatSession, {"session_code": session_code}
        )

    @store_operation
    async def create_session(self, session: ChatSession) -> ChatSession:
        stored = session.model_copy(
            update={
                "start_time": datetime.now(),
                "end_time": None,
                "transfer_history": [],
            }
        )
        try:
            return await self._insert("chat_sessions", stored)
        except DuplicateKeyError as e:
            raise DuplicateSessionCodeError(session.session_code) from e

    @store_operation
    async def update_session(
        self, session_id: str, **changes: Any
    ) -> Optional[ChatSession]:
        if "session_code" in changes:
            raise ValueError("session_code cannot be changed")
        current = await self.get_session(session_id)
        if current is None:
            return None
        updated = apply_changes(current, changes)
        doc = to_document(updated)
        result = await self.db.chat_sessions.find_one_and_update(
            {"id": session_id},
            {"$set": {key: doc[key] for key in changes}},
            projection=NO_MONGO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return from_document(ChatSession, result)

    @store_operation
    async def list_sessions(self) -> List[ChatSession]:
        return await self._find("chat_sessions", ChatSession, {})

    @store_operation
    async def list_active_sessions(self) -> List[ChatSession]:
        return await self._find(
            "chat_sessions",
            ChatSession,
            {"status": {"$in": [s.value for s in OPEN_STATUSES]}},
        )

    @store_operation
    async def list_sessions_by_agent(self, agent_id: str) -> List[ChatSession]:
        return await self._find(
            "chat_sessions", ChatSession, {"agent_id": agent_id}
        )

    @store_operation
    async def list_sessions_by_customer(
        self, customer_id: str
    ) -> List[ChatSession]:
        return await self._find(
            "chat_sessions", ChatSession, {"customer_id": customer_id}
        )

    # Messages
    @store_operation
    async def create_message(self, message: Message) -> Message:
        timestamp = datetime.now()
        last = await self.db.messages.find_one(
            {"session_id": message.session_id},
            NO_MONGO_ID,
            sort=[("timestamp", DESCENDING), ("_id", DESCENDING)],
        )
        if last is not None:
            timestamp = max(timestamp, last["timestamp"])
        stored = message.model_copy(
            update={"timestamp": timestamp, "read_by": set()}
        )
        return await self._insert("messages", stored)

    @store_operation
    async def list_messages_by_session(self, session_id: str) -> List[Message]:
        # _id breaks timestamp ties in insertion order
        return await self._find(
            "messages",
            Message,
            {"session_id": session_id},
            sort=[("timestamp", ASCENDING), ("_id", ASCENDING)],
        )

    @store_operation
    async def list_recent_messages(
        self, session_id: str, limit: int
    ) -> List[Message]:
        if limit <= 0:
            return []
        cursor = self.db.messages.find(
            {"session_id": session_id},
            NO_MONGO_ID,
            sort=[("timestamp", DESCENDING), ("_id", DESCENDING)],
            limit=limit,
        )
        recent = [from_document(Message, doc) async for doc in cursor]
        recent.reverse()
        return recent

    @store_operation
    async def mark_message_read(
        self, message_id: str, user_id: str
    ) -> Optional[Message]:
        doc = await self.db.messages.find_one_and_update(
            {"id": message_id},
            {"$addToSet": {"read_by": user_id}},
            projection=NO_MONGO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return from_document(Message, doc)

    # SOP documents
    @store_operation
    async def get_sop(self, sop_id: str) -> Optional[SOPDocument]:
        return await self._find_one("sop_documents", SOPDocument, {"id": sop_id})

    @store_operation
    async def list_sops(self) -> List[SOPDocument]:
        return await self._find("sop_documents", SOPDocument, {})

    @store_operation
    async def list_sops_by_category(self, category: str) -> List[SOPDocument]:
        return await self._find(
            "sop_documents", SOPDocument, {"category": category}
        )

    @store_operation
    async def search_sops(self, keywords: List[str]) -> List[SOPDocument]:
        if not keywords:
            return []
        clauses = []
        for keyword in keywords:
            pattern = {"$regex": re.escape(keyword), "$options": "i"}
            clauses.extend([
                {"title": pattern},
                {"content": pattern},
                {"keywords": pattern},
            ])
        return await self._find("sop_documents", SOPDocument, {"$or": clauses})

    @store_operation
    async def create_sop(self, sop: SOPDocument) -> SOPDocument:
        stored = sop.model_copy(update={"last_updated": datetime.now()})
        return await self._insert("sop_documents", stored)

    @store_operation
    async def update_sop(
        self, sop_id: str, **changes: Any
    ) -> Optional[SOPDocument]:
        current = await self.get_sop(sop_id)
        if current is None:
            return None
        changes["last_updated"] = datetime.now()
        doc = to_document(apply_changes(current, changes))
        result = await self.db.sop_documents.find_one_and_update(
            {"id": sop_id},
            {"$set": {key: doc[key] for key in changes}},
            projection=NO_MONGO_ID,
            return_document=ReturnDocument.AFTER,
        )
        return from_document(SOPDocument, result)

    @store_operation
    async def delete_sop(self, sop_id: str) -> bool:
        result = await self.db.sop_documents.delete_one({"id": sop_id})
        return result.deleted_count > 0

    # Quick replies
    @store_operation
    async def list_quick_replies(self) -> List[QuickReply]:
        return await self._find("quick_replies", QuickReply, {})

    @store_operation
    async def list_quick_replies_by_category(
        self, category: str
    ) -> List[QuickReply]:
        return await self._find(
            "quick_replies", QuickReply, {"category": category}
        )

    @store_operation
    async def create_quick_reply(self, reply: QuickReply) -> QuickReply:
        return await self._insert("quick_replies", reply)

    @store_operation
    async def delete_quick_reply(self, reply_id: str) -> bool:
        result = await self.db.quick_replies.delete_one({"id": reply_id})
        return result.deleted_count > 0
