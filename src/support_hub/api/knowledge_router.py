"""SOP documents and quick replies for agents"""
import logging
from fastapi import APIRouter, Depends

from src.support_hub.api.deps import get_service_container
from src.support_hub.hub.errors import QuickReplyNotFoundError, SOPNotFoundError
from src.support_hub.hub.service_container import ServiceContainer
from src.support_hub.models.api import (
    QuickReplyCreateRequest,
    SOPCreateRequest,
    SOPSearchRequest,
    SOPUpdateRequest,
)
from src.support_hub.models.entities import QuickReply, SOPDocument

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/sop")
async def list_sops(services: ServiceContainer = Depends(get_service_container)):
    return [sop.to_public() for sop in await services.store.list_sops()]


@router.get("/sop/category/{category}")
async def list_sops_by_category(
    category: str,
    services: ServiceContainer = Depends(get_service_container)
):
    sops = await services.store.list_sops_by_category(category)
    return [sop.to_public() for sop in sops]


@router.get("/sop/{sop_id}")
async def get_sop(
    sop_id: str,
    services: ServiceContainer = Depends(get_service_container)
):
    sop = await services.store.get_sop(sop_id)
    if sop is None:
        raise SOPNotFoundError(sop_id)
    return sop.to_public()


@router.post("/sop/search")
async def search_sops(
    request: SOPSearchRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    sops = await services.store.search_sops(request.keyword_list())
    return [sop.to_public() for sop in sops]


@router.post("/sop")
async def create_sop(
    request: SOPCreateRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    sop = await services.store.create_sop(SOPDocument(**request.model_dump()))
    logger.info(f"Created SOP document {sop.id}: {sop.title}")
    return sop.to_public()


@router.put("/sop/{sop_id}")
async def update_sop(
    sop_id: str,
    request: SOPUpdateRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    sop = await services.store.update_sop(
        sop_id, **request.model_dump(exclude_unset=True)
    )
    if sop is None:
        raise SOPNotFoundError(sop_id)
    return sop.to_public()


@router.delete("/sop/{sop_id}")
async def delete_sop(
    sop_id: str,
    services: ServiceContainer = Depends(get_service_container)
):
    if not await services.store.delete_sop(sop_id):
        raise SOPNotFoundError(sop_id)
    return {"success": True}


@router.get("/quick-replies")
async def list_quick_replies(
    services: ServiceContainer = Depends(get_service_container)
):
    replies = await services.store.list_quick_replies()
    return [reply.to_public() for reply in replies]


@router.get("/quick-replies/category/{category}")
async def list_quick_replies_by_category(
    category: str,
    services: ServiceContainer = Depends(get_service_container)
):
    replies = await services.store.list_quick_replies_by_category(category)
    return [reply.to_public() for reply in replies]


@router.post("/quick-replies")
async def create_quick_reply(
    request: QuickReplyCreateRequest,
    services: ServiceContainer = Depends(get_service_container)
):
    reply = await services.store.create_quick_reply(
        QuickReply(**request.model_dump())
    )
    return reply.to_public()


@router.delete("/quick-replies/{reply_id}")
async def delete_quick_reply(
    reply_id: str,
    services: ServiceContainer = Depends(get_service_container)
):
    if not await services.store.delete_quick_reply(reply_id):
        raise QuickReplyNotFoundError(reply_id)
    return {"success": True}
