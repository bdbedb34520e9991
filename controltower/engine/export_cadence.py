"""
Export Cadence Gate: maps (plan tier, instant) to the current export window.

The window key is the rate-limit bucket an external counter uses to cap
executive report exports per tenant. The gate only derives the window; it
never counts exports.

Version: export_cadence_v1
"""

from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from typing import Mapping, Optional, Union

import structlog

from controltower.engine.plans import normalize_plan_tier
from controltower.errors import ConfigurationError
from controltower.models.cadence import CadenceRule, ExportCadenceWindow
from controltower.models.enums import ExportCadence, PlanTier

logger = structlog.get_logger(__name__)


EXPORT_CADENCE_POLICY: Mapping[PlanTier, CadenceRule] = MappingProxyType(
    {
        PlanTier.ESSENTIAL: CadenceRule(cadence=ExportCadence.MONTHLY, max_exports=1),
        PlanTier.PRO: CadenceRule(cadence=ExportCadence.MONTHLY, max_exports=1),
        PlanTier.ENTERPRISE: CadenceRule(cadence=ExportCadence.MONTHLY, max_exports=1),
    }
)


def _month_window(moment: datetime) -> tuple[datetime, datetime, str]:
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end, f"m-{start.year:04d}-{start.month:02d}"


def _week_window(moment: datetime) -> tuple[datetime, datetime, str]:
    midnight = moment.replace(hour=0, minute=0, second=0, microsecond=0)
    start = midnight - timedelta(days=midnight.weekday())
    end = start + timedelta(days=7)
    iso_year, iso_week, _ = start.isocalendar()
    return start, end, f"w-{iso_year}-{iso_week:02d}"


def get_export_cadence_window(
    plan: Union[PlanTier, str, None],
    now: Optional[datetime] = None,
    policy: Mapping[PlanTier, CadenceRule] = EXPORT_CADENCE_POLICY,
) -> ExportCadenceWindow:
    """
    Compute the export window containing an instant.

    Monthly windows span the calendar month (key m-YYYY-MM). Weekly windows
    start on Monday 00:00 (key w-<ISO year>-<ISO week>). Naive instants are
    taken as UTC; boundaries are expressed in the instant's own timezone.

    Args:
        plan: Plan tier (labels are normalized)
        now: Reference instant (defaults to current UTC time)
        policy: Cadence rule per tier (defaults to EXPORT_CADENCE_POLICY)

    Returns:
        ExportCadenceWindow with start (inclusive) and end (exclusive)

    Raises:
        ConfigurationError: Policy has no rule for the tier

    Example:
        >>> get_export_cadence_window("pro", datetime(2025, 1, 15, tzinfo=timezone.utc)).key
        'm-2025-01'
    """
    tier = normalize_plan_tier(plan)
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    rule = policy.get(tier)
    if rule is None:
        logger.error("export_cadence_rule_missing", plan=tier.value)
        raise ConfigurationError(
            f"No export cadence rule for plan '{tier.value}'", {"plan": tier.value}
        )

    if rule.cadence == ExportCadence.MONTHLY:
        start, end, key = _month_window(moment)
    else:
        start, end, key = _week_window(moment)

    return ExportCadenceWindow(
        start=start,
        end=end,
        key=key,
        cadence=rule.cadence,
        max_exports=rule.max_exports,
    )
