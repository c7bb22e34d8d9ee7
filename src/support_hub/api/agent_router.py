import logging
import secrets
from fastapi import APIRouter, Depends

from src.support_hub.api.deps import get_service_container
from src.support_hub.hub.errors import InvalidCredentialsError
from src.support_hub.hub.service_container import ServiceContainer
from src.support_hub.models.api import LoginRequest

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/auth/login")
async def login(
    request: LoginRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    """Plain credential check, marks the user online on success"""
    user = await services.store.get_user_by_username(request.username)
    if user is None or not secrets.compare_digest(
        user.password.encode(), request.password.encode()
    ):
        logger.info(f"Failed login for {request.username}")
        raise InvalidCredentialsError()
    user = await services.store.set_user_online(user.id, True)
    logger.info(f"User {user.id} logged in")
    return {"user": user.to_public()}


@router.get("/agents")
async def get_online_agents(
    services: ServiceContainer = Depends(get_service_container)
):
    agents = await services.store.list_online_agents()
    return [agent.to_public() for agent in agents]


@router.get("/agents/by-role/{role}")
async def get_agents_by_role(
    role: str,
    services: ServiceContainer = Depends(get_service_container)
):
    agents = await services.store.list_users_by_role(role)
    return [agent.to_public() for agent in agents]
