"""
Dashboard router: KPI snapshot and prioritized alerts.

Wired to:
- ControlTowerEngine.compute_snapshot_and_alerts
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from controltower.dependencies import get_engine, get_tenant_context
from controltower.engine.service import ControlTowerEngine
from controltower.models.facts import FactFilter, TenantContext
from controltower.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.post("/snapshot")
async def compute_snapshot(
    filters: FactFilter,
    at: Optional[datetime] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """
    Compute the snapshot and alerts for the tenant's filtered facts.

    The optional `at` query parameter pins the reference instant of the
    period window and of the alert timestamps.
    """
    logger.info("dashboard_snapshot_requested", tenant_id=ctx.tenant_id, period=filters.period.value)

    result = engine.compute_snapshot_and_alerts(ctx, filters, now=at)

    return {
        "success": True,
        "data": result.model_dump(mode="json"),
    }
