"""
Alert Generator: turns a KPI snapshot into a severity-ordered alert list.

Evaluation is an explicit ordered rule list:

1. Hard P1 rules. Four catastrophic conditions (net margin, no-show rate,
   financial impact, RevPAS drop) checked against fixed absolute thresholds,
   independent of the plan tier. Each rule is a pure
   (Snapshot, evaluated_at) -> Optional[AlertEvent] function; adding a fifth
   condition means appending one function to HARD_P1_RULES.
2. Monitoring bands. Only when no hard rule fired: softer P2/P3 bands produce a
   single synthetic "deviation under monitoring" alert with the highest
   severity found.

An empty snapshot never alarms. Output is ordered P1 first, ties broken by
financial impact descending; identical snapshots evaluated at the same instant
produce identical alerts.

Version: alert_gen_v1
"""

from datetime import datetime, timezone
from typing import Callable, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, ConfigDict

from controltower.engine.plans import normalize_plan_tier
from controltower.engine.thresholds import classify_snapshot
from controltower.models.alerts import AlertEvent, Snapshot
from controltower.models.enums import AlertSeverity, PlanTier

logger = structlog.get_logger(__name__)


class EnterpriseThresholds(BaseModel):
    """Absolute thresholds of the hard P1 rules."""

    model_config = ConfigDict(frozen=True)

    net_margin_p1: float = 10.0
    no_show_rate_p1: float = 25.0
    financial_impact_p1: float = 5000.0
    revpas_drop_p1: float = 15.0


class MonitoringBand(BaseModel):
    """Secondary band: any breached bound puts the snapshot at this severity."""

    model_config = ConfigDict(frozen=True)

    severity: AlertSeverity
    net_margin_below: float
    no_show_rate_above: float
    financial_impact_above: float
    revpas_drop_above: float

    def matches(self, snapshot: Snapshot) -> bool:
        return (
            snapshot.net_margin < self.net_margin_below
            or snapshot.no_show_rate > self.no_show_rate_above
            or snapshot.financial_impact > self.financial_impact_above
            or snapshot.revpas_drop_percent > self.revpas_drop_above
        )


ENTERPRISE_THRESHOLDS = EnterpriseThresholds()

# Strictest band first
MONITORING_BANDS: tuple[MonitoringBand, ...] = (
    MonitoringBand(
        severity=AlertSeverity.P2,
        net_margin_below=15.0,
        no_show_rate_above=18.0,
        financial_impact_above=2500.0,
        revpas_drop_above=8.0,
    ),
    MonitoringBand(
        severity=AlertSeverity.P3,
        net_margin_below=18.0,
        no_show_rate_above=12.0,
        financial_impact_above=1000.0,
        revpas_drop_above=4.0,
    ),
)

SEVERITY_ORDER = {severity: rank for rank, severity in enumerate(AlertSeverity)}

AlertRule = Callable[[Snapshot, datetime], Optional[AlertEvent]]


# =============================================================================
# Hard P1 rules
# =============================================================================


def net_margin_rule(snapshot: Snapshot, evaluated_at: datetime) -> Optional[AlertEvent]:
    if snapshot.net_margin >= ENTERPRISE_THRESHOLDS.net_margin_p1:
        return None
    return AlertEvent(
        alert_id=f"margin-{evaluated_at.isoformat()}",
        severity=AlertSeverity.P1,
        metric_key="margem_ebitda_normalizada",
        title="Critical Net Margin",
        description=f"Net margin below {ENTERPRISE_THRESHOLDS.net_margin_p1:g}%.",
        financial_impact=max(0.0, snapshot.financial_impact),
        triggered_at=evaluated_at,
        context={"net_margin": snapshot.net_margin},
    )


def no_show_rule(snapshot: Snapshot, evaluated_at: datetime) -> Optional[AlertEvent]:
    if snapshot.no_show_rate <= ENTERPRISE_THRESHOLDS.no_show_rate_p1:
        return None
    return AlertEvent(
        alert_id=f"noshow-{evaluated_at.isoformat()}",
        severity=AlertSeverity.P1,
        metric_key="mapa_vazamentos_noshow",
        title="Critical No-Show Rate",
        description=f"No-show rate above {ENTERPRISE_THRESHOLDS.no_show_rate_p1:g}%.",
        financial_impact=snapshot.financial_impact,
        triggered_at=evaluated_at,
        context={"no_show_rate": snapshot.no_show_rate},
    )


def financial_impact_rule(snapshot: Snapshot, evaluated_at: datetime) -> Optional[AlertEvent]:
    if snapshot.financial_impact <= ENTERPRISE_THRESHOLDS.financial_impact_p1:
        return None
    return AlertEvent(
        alert_id=f"impact-{evaluated_at.isoformat()}",
        severity=AlertSeverity.P1,
        metric_key="custo_oportunidade",
        title="Critical Financial Impact",
        description=(
            f"Idle capacity costs above {ENTERPRISE_THRESHOLDS.financial_impact_p1:,.0f}."
        ),
        financial_impact=snapshot.financial_impact,
        triggered_at=evaluated_at,
        context={"financial_impact": snapshot.financial_impact},
    )


def revpas_drop_rule(snapshot: Snapshot, evaluated_at: datetime) -> Optional[AlertEvent]:
    if snapshot.revpas_drop_percent <= ENTERPRISE_THRESHOLDS.revpas_drop_p1:
        return None
    return AlertEvent(
        alert_id=f"revpas-{evaluated_at.isoformat()}",
        severity=AlertSeverity.P1,
        metric_key="revpas",
        title="RevPAS Falling Fast",
        description=(
            f"RevPAS dropped more than {ENTERPRISE_THRESHOLDS.revpas_drop_p1:g}% in 7 days."
        ),
        financial_impact=snapshot.financial_impact,
        triggered_at=evaluated_at,
        context={
            "revpas_current": snapshot.revpas_current,
            "revpas_previous": snapshot.revpas_previous,
            "revpas_drop_percent": snapshot.revpas_drop_percent,
        },
    )


HARD_P1_RULES: tuple[AlertRule, ...] = (
    net_margin_rule,
    no_show_rule,
    financial_impact_rule,
    revpas_drop_rule,
)


def monitoring_severity(
    snapshot: Snapshot, bands: Sequence[MonitoringBand] = MONITORING_BANDS
) -> Optional[AlertSeverity]:
    """Highest monitoring-band severity the snapshot falls into, if any."""
    for band in bands:
        if band.matches(snapshot):
            return band.severity
    return None


def monitoring_rule(snapshot: Snapshot, evaluated_at: datetime) -> Optional[AlertEvent]:
    """Synthetic "deviation under monitoring" alert for sub-critical snapshots."""
    severity = monitoring_severity(snapshot)
    if severity is None:
        return None
    return AlertEvent(
        alert_id=f"monitor-{evaluated_at.isoformat()}",
        severity=severity,
        metric_key="faturamento_liquido",
        title="Deviation Under Monitoring",
        description="Indicators outside the healthy zone.",
        financial_impact=snapshot.financial_impact,
        triggered_at=evaluated_at,
        context=snapshot.model_dump(),
    )


def sort_alerts(alerts: Sequence[AlertEvent]) -> list[AlertEvent]:
    """Order alerts P1 first, then by financial impact descending."""
    return sorted(
        alerts,
        key=lambda alert: (SEVERITY_ORDER[alert.severity], -alert.financial_impact),
    )


class AlertGenerator:
    """
    Evaluates the ordered alert rule list over a snapshot.

    Attributes:
        hard_rules: Rules evaluated unconditionally
        fallback_rule: Rule evaluated only when no hard rule fired

    Example:
        >>> alerts = AlertGenerator().evaluate(snapshot, PlanTier.PRO)
        >>> [a.severity for a in alerts]
        [<AlertSeverity.P1: 'P1'>]
    """

    def __init__(
        self,
        hard_rules: Sequence[AlertRule] = HARD_P1_RULES,
        fallback_rule: AlertRule = monitoring_rule,
    ):
        self.hard_rules = tuple(hard_rules)
        self.fallback_rule = fallback_rule

    def evaluate(
        self,
        snapshot: Snapshot,
        plan: Union[PlanTier, str, None],
        evaluated_at: Optional[datetime] = None,
    ) -> list[AlertEvent]:
        """
        Produce the ordered alert list for a snapshot.

        Args:
            snapshot: KPI snapshot
            plan: Tenant plan tier, recorded with the tier classification in
                every alert context
            evaluated_at: Evaluation instant (defaults to current UTC time)

        Returns:
            Alerts ordered by severity then financial impact; empty for an
            empty snapshot
        """
        if snapshot.is_empty:
            return []

        evaluated_at = evaluated_at or datetime.now(timezone.utc)
        tier = normalize_plan_tier(plan)

        alerts = [
            alert
            for alert in (rule(snapshot, evaluated_at) for rule in self.hard_rules)
            if alert is not None
        ]
        if not alerts:
            fallback = self.fallback_rule(snapshot, evaluated_at)
            if fallback is not None:
                alerts.append(fallback)

        tier_priorities = {
            kpi: priority.value for kpi, priority in classify_snapshot(snapshot, tier).items()
        }
        alerts = [
            alert.model_copy(
                update={
                    "context": {
                        **alert.context,
                        "plan_tier": tier.value,
                        "tier_priorities": tier_priorities,
                    }
                }
            )
            for alert in alerts
        ]

        logger.debug(
            "alerts_evaluated",
            plan=tier.value,
            alert_count=len(alerts),
            severities=[alert.severity.value for alert in alerts],
        )

        return sort_alerts(alerts)
