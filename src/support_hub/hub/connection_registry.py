import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Protocol, Set
from uuid import uuid4

from src.support_hub.models.websocket import ParticipantKind

logger = logging.getLogger(__name__)


class Connection(Protocol):
    """Outbound side of a live client connection.

    ``send`` only queues the frame; delivery happens on the connection's own
    writer so a slow client never blocks a broadcast.
    """

    @property
    def closed(self) -> bool: ...

    def send(self, message: dict) -> None: ...


@dataclass(frozen=True)
class Binding:
    participant_id: Optional[str]
    participant_kind: ParticipantKind
    session_code: str


@dataclass
class ConnectionRecord:
    handle: str
    connection: Connection
    participant_id: Optional[str] = None
    participant_kind: ParticipantKind = ParticipantKind.CUSTOMER
    session_code: Optional[str] = None

    @property
    def binding(self) -> Optional[Binding]:
        if self.session_code is None:
            return None
        return Binding(
            self.participant_id, self.participant_kind, self.session_code
        )


class ConnectionRegistry:
    """Live connection bookkeeping: handle -> participant -> session code.

    The primary map and the per-session index are mutated together under one
    lock. Lookups return snapshots so callers can iterate without the lock.
    """

    def __init__(self):
        self._connections: Dict[str, ConnectionRecord] = {}
        # Structure: {session_code: {handle, ...}}
        self._by_session: Dict[str, Set[str]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._connections)

    async def register(self, connection: Connection) -> str:
        handle = str(uuid4())
        async with self._lock:
            self._connections[handle] = ConnectionRecord(handle, connection)
        logger.info(f"Registered connection {handle}")
        return handle

    async def bind(
        self,
        handle: str,
        participant_id: Optional[str],
        participant_kind: ParticipantKind,
        session_code: str
    ) -> Binding:
        async with self._lock:
            record = self._connections.get(handle)
            if record is None:
                raise KeyError(f"Unknown connection {handle}")
            self._drop_from_index(record)
            record.participant_id = participant_id
            record.participant_kind = participant_kind
            record.session_code = session_code
            self._by_session.setdefault(session_code, set()).add(handle)
            binding = record.binding
        logger.info(
            f"Bound connection {handle} ({participant_kind.value} "
            f"{participant_id}) to session {session_code}"
        )
        return binding

    async def unbind(self, handle: str) -> Optional[Binding]:
        """Detach a connection from its session but keep it registered"""
        async with self._lock:
            record = self._connections.get(handle)
            if record is None:
                return None
            previous = record.binding
            self._drop_from_index(record)
            record.session_code = None
        return previous

    async def unregister(self, handle: str) -> Optional[Binding]:
        """Forget a connection, returning its last session binding"""
        async with self._lock:
            record = self._connections.pop(handle, None)
            if record is None:
                return None
            previous = record.binding
            self._drop_from_index(record)
        logger.info(f"Unregistered connection {handle}")
        return previous

    async def get(self, handle: str) -> Optional[ConnectionRecord]:
        async with self._lock:
            record = self._connections.get(handle)
            return replace(record) if record else None

    async def connections_for_session(
        self, session_code: str
    ) -> List[ConnectionRecord]:
        async with self._lock:
            return [
                replace(self._connections[h])
                for h in self._by_session.get(session_code, ())
            ]

    async def connections_for_participant(
        self, participant_id: str
    ) -> List[ConnectionRecord]:
        async with self._lock:
            return [
                replace(r) for r in self._connections.values()
                if r.participant_id == participant_id
            ]

    async def clear(self) -> None:
        async with self._lock:
            self._connections.clear()
            self._by_session.clear()

    def _drop_from_index(self, record: ConnectionRecord) -> None:
        if record.session_code is None:
            return
        handles = self._by_session.get(record.session_code)
        if handles is not None:
            handles.discard(record.handle)
            # If no more connections for this session, remove the session entry
            if not handles:
                del self._by_session[record.session_code]
