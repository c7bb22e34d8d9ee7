import logging
from typing import List, Optional
from fastapi import HTTPException, Request, WebSocket
from hydra import compose, initialize
from omegaconf import DictConfig

from src.support_hub.hub.service_container import ServiceContainer

logger = logging.getLogger(__name__)


def get_config(overrides: Optional[List[str]] = None) -> DictConfig:
    """Compose config/config.yaml, e.g. overrides=["store.backend=mongodb"]"""
    with initialize(version_base=None, config_path="./../../../config"):
        cfg = compose(config_name="config.yaml", overrides=overrides or [])
    return cfg


def get_service_container(request: Request) -> ServiceContainer:
    if not getattr(request.app.state, "startup_complete", False):
        raise HTTPException(
            status_code=503,
            detail="Support hub is starting up. Please try again in a moment."
        )
    container = getattr(request.app.state, "service_container", None)
    if container is None:
        raise HTTPException(status_code=500, detail="Services not available")
    return container


async def get_websocket_service_container(
    websocket: WebSocket
) -> Optional[ServiceContainer]:
    """Closes the socket with 1013 (try again later) until startup completes"""
    container = getattr(websocket.app.state, "service_container", None)
    if container is None or not getattr(websocket.app.state, "startup_complete", False):
        logger.warning("Rejected WebSocket: hub not ready")
        await websocket.close(code=1013)
        return None
    return container
