import logging
import time
from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from src.support_hub.api.deps import get_service_container
from src.support_hub.hub.export import ExportFormat, ExportScope, to_csv
from src.support_hub.hub.service_container import ServiceContainer

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/export/conversations/{scope}")
async def export_conversations(
    scope: ExportScope,
    format: ExportFormat = Query(ExportFormat.JSON),
    customer_id: Optional[str] = Query(None, alias="customerId"),
    agent_id: Optional[str] = Query(None, alias="agentId"),
    services: ServiceContainer = Depends(get_service_container)
):
    """Download conversations with transcripts as JSON or one-row-per-message CSV"""
    export_data = await services.exporter.collect(scope, customer_id, agent_id)
    filename = f"conversations-{scope.value}-{int(time.time() * 1000)}"
    if format == ExportFormat.CSV:
        return Response(
            content=to_csv(export_data),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="{filename}.csv"'
            },
        )
    return JSONResponse(
        content=export_data,
        headers={"Content-Disposition": f'attachment; filename="{filename}.json"'},
    )
