"""
Fact ingestion router.

Facts are validated one by one by the engine so a rejected batch reports the
index of the offending fact.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from controltower.dependencies import get_engine, get_tenant_context
from controltower.engine.service import ControlTowerEngine
from controltower.models.facts import TenantContext
from controltower.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class IngestFactsRequest(BaseModel):
    """Fact batch upload request."""

    source_name: str = Field(..., min_length=1, max_length=255, description="Upload or connector name")
    facts: list[dict[str, Any]] = Field(..., description="Raw fact records")


@router.post("/batches", status_code=status.HTTP_201_CREATED)
async def ingest_batch(
    request: IngestFactsRequest,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """Append a validated fact batch to the tenant's fact store."""
    logger.info(
        "fact_batch_received",
        tenant_id=ctx.tenant_id,
        source_name=request.source_name,
        batch_size=len(request.facts),
    )

    receipt = engine.ingest_facts(ctx, request.facts, request.source_name)

    return {
        "success": True,
        "data": receipt.model_dump(mode="json"),
    }
