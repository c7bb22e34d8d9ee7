import pytest
import pytest_asyncio

from src.support_hub.database.memory_store import InMemoryStore
from src.support_hub.database.seed import seed_demo_data
from src.support_hub.hub.connection_registry import ConnectionRegistry
from src.support_hub.hub.lifecycle import SessionLifecycleManager
from src.support_hub.hub.session_hub import SessionHub


class FakeConnection:
    """Stands in for a WebSocket: records every frame queued for it"""

    def __init__(self, name: str = "conn"):
        self.name = name
        self.frames = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def send(self, message: dict) -> None:
        self.frames.append(message)

    def close(self) -> None:
        self._closed = True

    def of_type(self, event_type: str):
        return [f for f in self.frames if f["type"] == event_type]

    def clear(self) -> None:
        self.frames.clear()


class FailingConnection(FakeConnection):
    def send(self, message: dict) -> None:
        raise RuntimeError("socket gone")


@pytest_asyncio.fixture
async def store():
    store = InMemoryStore()
    await seed_demo_data(store)
    return store


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def lifecycle(store):
    return SessionLifecycleManager(store, session_code_attempts=3)


@pytest.fixture
def hub(store, registry, lifecycle):
    return SessionHub(store, registry, lifecycle, history_limit=50)


@pytest_asyncio.fixture
async def mike(store):
    return await store.get_user_by_username("agent1")


@pytest_asyncio.fixture
async def anna(store):
    return await store.get_user_by_username("agent2")


async def take_agents_offline(store):
    for user in list(store.users.values()):
        await store.set_user_online(user.id, False)
