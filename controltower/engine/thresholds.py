"""
Threshold Classifier: tier-aware KPI priority classification.

Each plan tier owns an immutable threshold table mapping every tracked KPI key
to a comparator and three boundaries (P3, P2, P1). The tables are built once at
import time, checked for completeness and boundary ordering, and then only
read. The classifier itself never re-validates a rule.

Classification for a greater_than rule:
    value > p1 -> P1, else value > p2 -> P2, else value > p3 -> P3, else None
and mirrored with < for less_than rules.

Version: thresholds_v1
"""

from types import MappingProxyType
from typing import Mapping, Optional, Union

import structlog
from pydantic import BaseModel, ConfigDict, model_validator

from controltower.engine.plans import normalize_plan_tier
from controltower.errors import ConfigurationError
from controltower.models.alerts import Snapshot
from controltower.models.enums import AlertSeverity, KpiKey, PlanTier, ThresholdComparator

logger = structlog.get_logger(__name__)


class ThresholdRule(BaseModel):
    """
    Threshold rule for one (plan tier, KPI key) pair.

    Attributes:
        comparator: Direction in which the KPI breaches
        target: Desired value shown next to the KPI
        p3: Boundary past which the KPI is P3
        p2: Boundary past which the KPI is P2
        p1: Boundary past which the KPI is P1
    """

    model_config = ConfigDict(frozen=True)

    comparator: ThresholdComparator
    target: float
    p3: float
    p2: float
    p1: float

    @model_validator(mode="after")
    def validate_boundary_order(self) -> "ThresholdRule":
        """Boundaries must get stricter from P3 to P2 to P1."""
        if self.comparator == ThresholdComparator.GREATER_THAN:
            ordered = self.p3 <= self.p2 <= self.p1
        else:
            ordered = self.p3 >= self.p2 >= self.p1
        if not ordered:
            raise ValueError(
                f"Boundaries p3={self.p3}, p2={self.p2}, p1={self.p1} are not "
                f"monotonic for {self.comparator.value}"
            )
        return self


ThresholdTable = Mapping[KpiKey, ThresholdRule]

_GT = ThresholdComparator.GREATER_THAN
_LT = ThresholdComparator.LESS_THAN


def _rule(comparator: ThresholdComparator, target: float, p3: float, p2: float, p1: float) -> ThresholdRule:
    return ThresholdRule(comparator=comparator, target=target, p3=p3, p2=p2, p1=p1)


def _freeze_table(plan: PlanTier, rules: dict[KpiKey, ThresholdRule]) -> ThresholdTable:
    missing = set(KpiKey) - set(rules)
    if missing:
        raise ConfigurationError(
            f"Threshold table for {plan.value} is missing KPI keys",
            {"plan": plan.value, "missing": sorted(k.value for k in missing)},
        )
    return MappingProxyType(dict(rules))


ESSENTIAL_THRESHOLDS = _freeze_table(
    PlanTier.ESSENTIAL,
    {
        KpiKey.NO_SHOW_RATE: _rule(_GT, 10, 8, 10, 15),
        KpiKey.NET_MARGIN: _rule(_LT, 18, 18, 15, 12),
        KpiKey.NPS: _rule(_LT, 8, 8, 7.8, 7.5),
        KpiKey.REVENUE_GAP_PERCENT: _rule(_LT, 0, -5, -15, -20),
        KpiKey.CASH_FLOW: _rule(_LT, 0, 50_000, 10_000, 0),
        KpiKey.CHURN_RATE: _rule(_GT, 5, 5, 8, 12),
        KpiKey.LTV_CAC_RATIO: _rule(_LT, 3, 3, 2.5, 2),
        KpiKey.OCCUPANCY_RATE: _rule(_LT, 75, 75, 70, 60),
    },
)

PRO_THRESHOLDS = _freeze_table(
    PlanTier.PRO,
    {
        KpiKey.NO_SHOW_RATE: _rule(_GT, 8, 8, 12, 20),
        KpiKey.NET_MARGIN: _rule(_LT, 18, 18, 15, 12),
        KpiKey.NPS: _rule(_LT, 8, 8, 7.8, 7.5),
        KpiKey.REVENUE_GAP_PERCENT: _rule(_LT, 0, -10, -15, -30),
        KpiKey.CASH_FLOW: _rule(_LT, 0, 50_000, 10_000, 0),
        KpiKey.CHURN_RATE: _rule(_GT, 5, 5, 8, 12),
        KpiKey.LTV_CAC_RATIO: _rule(_LT, 3, 3, 2.5, 2),
        KpiKey.OCCUPANCY_RATE: _rule(_LT, 80, 80, 70, 55),
    },
)

# Enterprise shares the Pro operational table; its extra strictness lives in
# the hard P1 rules of the alert generator.
ALERT_THRESHOLDS: Mapping[PlanTier, ThresholdTable] = MappingProxyType(
    {
        PlanTier.ESSENTIAL: ESSENTIAL_THRESHOLDS,
        PlanTier.PRO: PRO_THRESHOLDS,
        PlanTier.ENTERPRISE: PRO_THRESHOLDS,
    }
)

# Snapshot fields that have a tier rule
SNAPSHOT_KPIS: Mapping[KpiKey, str] = MappingProxyType(
    {
        KpiKey.NO_SHOW_RATE: "no_show_rate",
        KpiKey.NET_MARGIN: "net_margin",
        KpiKey.OCCUPANCY_RATE: "occupancy_rate",
    }
)


def get_threshold_rule(
    kpi: Union[KpiKey, str],
    plan: Union[PlanTier, str, None],
    tables: Mapping[PlanTier, ThresholdTable] = ALERT_THRESHOLDS,
) -> ThresholdRule:
    """
    Look up the threshold rule of a KPI for a plan tier.

    Raises:
        ConfigurationError: KPI key is not tracked for the tier
    """
    tier = normalize_plan_tier(plan)
    try:
        return tables[tier][KpiKey(kpi)]
    except (KeyError, ValueError) as e:
        logger.error(
            "threshold_rule_missing",
            kpi=str(getattr(kpi, "value", kpi)),
            plan=tier.value,
        )
        raise ConfigurationError(
            f"No threshold rule for KPI '{getattr(kpi, 'value', kpi)}' on plan '{tier.value}'",
            {"kpi": str(getattr(kpi, "value", kpi)), "plan": tier.value},
        ) from e


def classify_priority(
    kpi: Union[KpiKey, str],
    value: float,
    plan: Union[PlanTier, str, None],
    tables: Mapping[PlanTier, ThresholdTable] = ALERT_THRESHOLDS,
) -> Optional[AlertSeverity]:
    """
    Classify a KPI value into P1/P2/P3 for a plan tier.

    Args:
        kpi: Tracked KPI key
        value: KPI value
        plan: Plan tier (labels are normalized)
        tables: Threshold tables (defaults to ALERT_THRESHOLDS)

    Returns:
        AlertSeverity, or None when the value is inside the healthy zone

    Raises:
        ConfigurationError: KPI key is not tracked for the tier

    Example:
        >>> classify_priority(KpiKey.NO_SHOW_RATE, 20.0, PlanTier.ESSENTIAL)
        <AlertSeverity.P1: 'P1'>
    """
    rule = get_threshold_rule(kpi, plan, tables)

    if rule.comparator == ThresholdComparator.GREATER_THAN:
        if value > rule.p1:
            return AlertSeverity.P1
        if value > rule.p2:
            return AlertSeverity.P2
        if value > rule.p3:
            return AlertSeverity.P3
        return None

    if value < rule.p1:
        return AlertSeverity.P1
    if value < rule.p2:
        return AlertSeverity.P2
    if value < rule.p3:
        return AlertSeverity.P3
    return None


def classify_snapshot(
    snapshot: Snapshot, plan: Union[PlanTier, str, None]
) -> dict[str, AlertSeverity]:
    """
    Classify every snapshot KPI that has a tier rule.

    Occupancy is skipped when the subset carries no capacity data.

    Returns:
        Mapping of KPI key value to priority, breaching KPIs only
    """
    priorities: dict[str, AlertSeverity] = {}
    for kpi, field in SNAPSHOT_KPIS.items():
        if kpi == KpiKey.OCCUPANCY_RATE and snapshot.available_slots == 0:
            continue
        priority = classify_priority(kpi, getattr(snapshot, field), plan)
        if priority is not None:
            priorities[kpi.value] = priority
    return priorities
