"""
Export cadence router.

Reports the rate-limit window under which the tenant's executive report
exports are counted.
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends

from controltower.dependencies import get_engine, get_tenant_context
from controltower.engine.service import ControlTowerEngine
from controltower.models.facts import TenantContext

router = APIRouter()


@router.get("/cadence-window")
async def get_cadence_window(
    at: Optional[datetime] = None,
    ctx: TenantContext = Depends(get_tenant_context),
    engine: ControlTowerEngine = Depends(get_engine),
):
    """Current export window for the tenant's plan (or the one containing `at`)."""
    window = engine.get_export_cadence_window(ctx.plan, at)

    return {
        "success": True,
        "data": window.model_dump(mode="json"),
    }
