import asyncio
import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Depends
from starlette.websockets import WebSocketState

from src.support_hub.api.deps import get_websocket_service_container
from src.support_hub.hub.service_container import ServiceContainer

logger = logging.getLogger(__name__)

router = APIRouter()


class WebSocketConnection:
    """Queues outbound frames and drains them to the socket in order.

    The hub only ever calls ``send``, which never blocks; ``pump`` runs as
    the connection's writer task until the socket closes.
    """

    def __init__(self, websocket: WebSocket, max_pending: int = 0):
        self.websocket = websocket
        self.outbox: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self._close_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return (
            self._closed
            or self.websocket.client_state == WebSocketState.DISCONNECTED
        )

    def send(self, message: dict) -> None:
        if self._closed:
            return
        try:
            self.outbox.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                f"Outbox full ({self.outbox.maxsize} frames), dropping slow WebSocket"
            )
            self._closed = True
            self._close_task = asyncio.create_task(self._close_slow_client())

    async def _close_slow_client(self) -> None:
        try:
            await self.websocket.close(code=1008)  # 1008 = Policy Violation
        except Exception as e:
            logger.info(f"Slow WebSocket already gone: {e}")

    def close(self) -> None:
        self._closed = True

    async def pump(self) -> None:
        while True:
            message = await self.outbox.get()
            try:
                await self.websocket.send_json(message)
            except Exception as e:
                logger.info(f"Stopped writing to closed WebSocket: {e}")
                self._closed = True
                return


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    services: ServiceContainer = Depends(get_websocket_service_container)
):
    """Handles WebSocket connections for real-time chat.

    Workflow:
        1. Accepts the connection and registers it with the hub
        2. Starts the writer task draining the connection's outbox
        3. Feeds every inbound text or binary frame to the hub
        4. On disconnect, unregisters so participants see an implicit leave

    Frames are JSON envelopes ``{type, sessionId, userId, userType, data}``;
    the connection joins a session with a ``join_session`` frame.
    """
    if services is None:
        return
    await websocket.accept()
    connection = WebSocketConnection(
        websocket, max_pending=services.cfg.hub.outbox_limit
    )
    handle = await services.hub.connect(connection)
    writer = asyncio.create_task(connection.pump())
    try:
        # Keep connection alive, handle client frames
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            # binary frames go through the same validation as text
            data = message.get("text")
            if data is None:
                data = message.get("bytes")
            if data is not None:
                await services.hub.handle_frame(handle, data)
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {handle}")
    except Exception as e:
        logger.error(f"WebSocket error on {handle}: {e}")
        if websocket.client_state != WebSocketState.DISCONNECTED:
            try:
                await websocket.close(code=1011)  # 1011 = Internal Error
            except Exception as close_error:
                logger.error(f"Error closing WebSocket: {close_error}")
    finally:
        connection.close()
        writer.cancel()
        await services.hub.disconnect(handle)
