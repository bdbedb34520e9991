"""
Root-cause-action (RCA) router.

Wired to:
- ControlTowerEngine RCA operations (create, update status, list, get)
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from controltower.dependencies import get_engine, get_tenant_context
from controltower.engine.service import ControlTowerEngine
from controltower.models.facts import TenantContext
from controltower.models.rca import RcaCreate, RcaUpdate
from controltower.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_rca(
    severity: Optional[str] = None,
    status_filter: Optional[str] = Query(default=None, alias="status"),
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """List the tenant's RCA records, newest first, optionally filtered."""
    records = engine.list_rca(ctx, severity=severity, status=status_filter)

    return {
        "success": True,
        "data": [record.model_dump(mode="json") for record in records],
        "count": len(records),
    }


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_rca(
    request: RcaCreate,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """Open an RCA record for an alert."""
    logger.info("rca_create", tenant_id=ctx.tenant_id, alert_id=request.alert_id)

    record = engine.create_rca(ctx, request)

    return {
        "success": True,
        "data": record.model_dump(mode="json"),
    }


@router.get("/{rca_id}")
async def get_rca(
    rca_id: int,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """Fetch one RCA record."""
    record = engine.get_rca(ctx, rca_id)

    return {
        "success": True,
        "data": record.model_dump(mode="json"),
    }


@router.patch("/{rca_id}/status")
async def update_rca_status(
    rca_id: int,
    request: RcaUpdate,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """
    Update the status (and optional fields) of an RCA record.

    An id that does not belong to the tenant is a no-op reported as
    updated=false.
    """
    logger.info("rca_status_update", tenant_id=ctx.tenant_id, rca_id=rca_id, status=request.status.value)

    updated = engine.update_rca_status(ctx, rca_id, request)

    return {
        "success": True,
        "data": {"rca_id": rca_id, "updated": updated},
    }
