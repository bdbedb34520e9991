"""
FastAPI dependencies for tenant resolution and engine access.

The tenant and its plan arrive as headers set by the upstream gateway that
authenticates the caller. X-Tenant-ID is required; X-Plan-Tier is normalized
and falls back to the essential tier.
"""

from functools import lru_cache
from typing import Optional

import structlog
from fastapi import Header, HTTPException, status

from controltower.config import get_settings
from controltower.engine.plans import normalize_plan_tier
from controltower.engine.service import ControlTowerEngine
from controltower.models.facts import TenantContext
from controltower.storage import get_storage
from controltower.utils.logging import get_logger

logger = get_logger(__name__)


async def get_tenant_context(
    x_tenant_id: Optional[str] = Header(default=None),
    x_plan_tier: Optional[str] = Header(default=None),
) -> TenantContext:
    """
    Build the TenantContext of the current request.

    Raises:
        HTTPException: If the tenant header is missing or blank
    """
    if not x_tenant_id or not x_tenant_id.strip():
        logger.warning("tenant_resolution_failed", reason="missing_tenant_header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-Tenant-ID header",
        )

    ctx = TenantContext(tenant_id=x_tenant_id.strip(), plan=normalize_plan_tier(x_plan_tier))
    structlog.contextvars.bind_contextvars(tenant_id=ctx.tenant_id)
    logger.debug("tenant_resolved", tenant_id=ctx.tenant_id, plan=ctx.plan.value)
    return ctx


@lru_cache
def get_engine() -> ControlTowerEngine:
    """Get the cached engine bound to the configured storage backend."""
    return ControlTowerEngine(storage=get_storage(), settings=get_settings())
