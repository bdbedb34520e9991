"""
Plan Catalogue: subscription tier normalization and ranking.

Tenants arrive with free-form plan labels from billing and CRM exports
("essencial", "starter", "entreprise", ...). Everything inside the engine works
on the closed PlanTier enum; this module is the single place where labels are
mapped onto it.
"""

from types import MappingProxyType
from typing import Mapping, Optional, Union

from controltower.models.enums import PlanTier

PLAN_RANK: Mapping[PlanTier, int] = MappingProxyType(
    {
        PlanTier.ESSENTIAL: 0,
        PlanTier.PRO: 1,
        PlanTier.ENTERPRISE: 2,
    }
)

PLAN_ALIASES: Mapping[str, PlanTier] = MappingProxyType(
    {
        "essential": PlanTier.ESSENTIAL,
        "essencial": PlanTier.ESSENTIAL,
        "start": PlanTier.ESSENTIAL,
        "starter": PlanTier.ESSENTIAL,
        "pro": PlanTier.PRO,
        "enterprise": PlanTier.ENTERPRISE,
        "entreprise": PlanTier.ENTERPRISE,
    }
)


def normalize_plan_tier(plan: Optional[Union[str, PlanTier]]) -> PlanTier:
    """
    Map a plan label onto PlanTier.

    Unknown or missing labels fall back to the least capable tier, so a
    misconfigured tenant never gains access it did not pay for.

    Args:
        plan: Plan label or PlanTier

    Returns:
        Normalized PlanTier
    """
    if isinstance(plan, PlanTier):
        return plan
    if isinstance(plan, str):
        return PLAN_ALIASES.get(plan.strip().lower(), PlanTier.ESSENTIAL)
    return PlanTier.ESSENTIAL


def is_plan_at_least(
    plan: Optional[Union[str, PlanTier]], minimum: PlanTier
) -> bool:
    """Check whether a plan ranks at or above the minimum tier."""
    return PLAN_RANK[normalize_plan_tier(plan)] >= PLAN_RANK[minimum]
