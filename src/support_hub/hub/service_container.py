import logging
from src.support_hub.database.memory_store import InMemoryStore
from src.support_hub.database.mongodb_store import MongoStore
from src.support_hub.database.seed import seed_demo_data
from src.support_hub.database.store import SessionStore
from src.support_hub.hub.connection_registry import ConnectionRegistry
from src.support_hub.hub.export import ConversationExporter
from src.support_hub.hub.lifecycle import SessionLifecycleManager
from src.support_hub.hub.session_hub import SessionHub
from src.support_hub.utils.settings import SETTINGS


logger = logging.getLogger(__name__)


class ServiceContainer:
    """Container for all service instances with centralized initialization."""

    def __init__(self, cfg):
        self.cfg = cfg
        self.store: SessionStore = None
        self.registry: ConnectionRegistry = None
        self.lifecycle: SessionLifecycleManager = None
        self.hub: SessionHub = None
        self.exporter: ConversationExporter = None

    def _build_store(self) -> SessionStore:
        backend = self.cfg.store.backend
        if backend == "memory":
            return InMemoryStore()
        if backend == "mongodb":
            if not SETTINGS.MONGODB_URI:
                raise ValueError("MONGODB_URI is required for the mongodb store")
            return MongoStore(self.cfg, SETTINGS.MONGODB_URI)
        raise ValueError(f"Unknown store backend: {backend}")

    async def initialize(self):
        """Initialize all service components with proper dependency order."""
        try:
            self.store = self._build_store()
            await self.store.connect()
            if self.cfg.store.seed_demo_data:
                await seed_demo_data(self.store)
            self.registry = ConnectionRegistry()
            self.lifecycle = SessionLifecycleManager(
                self.store,
                session_code_attempts=self.cfg.hub.session_code_attempts,
            )
            self.hub = SessionHub(
                self.store,
                self.registry,
                self.lifecycle,
                history_limit=self.cfg.hub.history_limit,
            )
            self.exporter = ConversationExporter(self.store)
            logger.info(f"Services initialized with {self.cfg.store.backend} store")
        except Exception as e:
            logger.error(f"Error initializing services: {e}")
            raise

    async def cleanup(self):
        """Cleanup all resources."""
        if self.registry:
            await self.registry.clear()
        if self.store:
            await self.store.cleanup()
        logger.info("Cleanup complete")
