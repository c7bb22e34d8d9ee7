"""
Unit tests for MongoStore document mapping
==========================================
Collections are mocked; no MongoDB server is needed.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from omegaconf import OmegaConf
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from src.support_hub.database.mongodb_store import (
    MongoStore,
    from_document,
    to_document,
)
from src.support_hub.hub.errors import DuplicateSessionCodeError, StoreError
from src.support_hub.models.entities import (
    ChatSession,
    Message,
    SenderType,
    SessionStatus,
    TransferRecord,
)


@pytest.fixture
def mongo_store():
    cfg = OmegaConf.create({
        "mongodb": {
            "db_name": "support_hub_test",
            "max_retries": 1,
            "retry_delay": 0.0,
            "timeout_ms": 100,
        }
    })
    store = MongoStore(cfg, "mongodb://localhost:27017")
    collections = {}

    def collection(name):
        return collections.setdefault(name, MagicMock())

    store.db = MagicMock()
    store.db.__getitem__.side_effect = collection
    store.collections = collections
    return store


class TestDocumentMapping:

    def test_enums_and_sets_are_bson_safe(self):
        message = Message(
            session_id="s1", sender_type=SenderType.AGENT, content="hi",
            read_by={"b", "a"},
        )

        doc = to_document(message)

        assert doc["sender_type"] == "agent"
        assert doc["read_by"] == ["a", "b"]
        assert doc["message_type"] == "text"

    def test_nested_transfer_history_round_trips(self):
        session = ChatSession(
            session_code="CHT-1",
            status=SessionStatus.WAITING,
            transfer_history=[TransferRecord(from_agent="a1", to_agent="a2")],
        )

        doc = to_document(session)
        doc["_id"] = "mongo-object-id"
        restored = from_document(ChatSession, doc)

        assert doc["status"] == "waiting"
        assert restored.session_code == "CHT-1"
        assert restored.transfer_history[0].to_agent == "a2"

    def test_missing_document_is_none(self):
        assert from_document(ChatSession, None) is None


class TestMongoStore:

    @pytest.mark.asyncio
    async def test_duplicate_code_maps_to_domain_error(self, mongo_store):
        mongo_store.db["chat_sessions"].insert_one = AsyncMock(
            side_effect=DuplicateKeyError("E11000 duplicate key")
        )

        with pytest.raises(DuplicateSessionCodeError):
            await mongo_store.create_session(ChatSession(session_code="CHT-1"))

    @pytest.mark.asyncio
    async def test_driver_errors_become_store_errors(self, mongo_store):
        mongo_store.db["users"].find_one = AsyncMock(
            side_effect=ServerSelectionTimeoutError("no servers")
        )

        with pytest.raises(StoreError):
            await mongo_store.get_user("u1")

    @pytest.mark.asyncio
    async def test_get_session_by_code_queries_code(self, mongo_store):
        doc = to_document(ChatSession(session_code="CHT-1"))
        find_one = AsyncMock(return_value=doc)
        mongo_store.db["chat_sessions"].find_one = find_one

        session = await mongo_store.get_session_by_code("CHT-1")

        assert session.session_code == "CHT-1"
        assert find_one.await_args.args == ({"session_code": "CHT-1"}, {"_id": 0})

    @pytest.mark.asyncio
    async def test_search_escapes_keywords(self, mongo_store):
        async def no_docs():
            for doc in []:
                yield doc

        find = MagicMock(return_value=no_docs())
        mongo_store.db["sop_documents"].find = find

        assert await mongo_store.search_sops(["a+b"]) == []
        query = find.call_args.args[0]
        assert query["$or"][0] == {"title": {"$regex": r"a\+b", "$options": "i"}}
        assert len(query["$or"]) == 3

    @pytest.mark.asyncio
    async def test_empty_search_skips_query(self, mongo_store):
        assert await mongo_store.search_sops([]) == []
        assert "sop_documents" not in mongo_store.collections
