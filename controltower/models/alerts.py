"""
Snapshot and alert models for the Control Tower engine.

A Snapshot is the derived KPI aggregate over a fact subset. It is never
persisted on its own and is recomputed for every query. Alert events are
projections of a snapshot at an evaluation instant; the engine does not store
them either.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .enums import AlertSeverity
from .facts import FactFilter


class Snapshot(BaseModel):
    """
    KPI snapshot over a filtered fact subset.

    Attributes:
        net_margin: (entries - exits) / entries, in percent (signed, unbounded)
        no_show_rate: Share of no-show facts, in percent [0, 100]
        occupancy_rate: Share of available slots filled, in percent [0, 100]
        financial_impact: Revenue lost to idle slots (currency)
        revpas_current: Revenue per available slot, most recent window
        revpas_previous: Revenue per available slot, preceding window
        revpas_drop_percent: Drop from previous to current, in percent (signed)
        available_slots: Total capacity slots
        empty_slots: Total idle slots
        average_ticket: Mean ticket price across the subset
        fact_count: Number of facts aggregated
    """

    model_config = ConfigDict(frozen=True)

    net_margin: float = 0.0
    no_show_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    occupancy_rate: float = Field(default=0.0, ge=0.0, le=100.0)
    financial_impact: float = 0.0
    revpas_current: float = 0.0
    revpas_previous: float = 0.0
    revpas_drop_percent: float = 0.0
    available_slots: int = Field(default=0, ge=0)
    empty_slots: int = Field(default=0, ge=0)
    average_ticket: float = 0.0
    fact_count: int = Field(default=0, ge=0)

    @property
    def is_empty(self) -> bool:
        """True when the snapshot was built from no facts."""
        return self.fact_count == 0


class AlertEvent(BaseModel):
    """
    A priority alert produced from a snapshot.

    Attributes:
        alert_id: Identifier derived from the metric and evaluation instant
        severity: P1, P2 or P3
        metric_key: Stable metric key consumed by downstream views
        title: Short human title
        description: Human-readable description
        financial_impact: Estimated revenue at stake
        triggered_at: Evaluation instant
        context: Snapshot values that produced the alert
    """

    model_config = ConfigDict(frozen=True)

    alert_id: str
    severity: AlertSeverity
    metric_key: str
    title: str
    description: str
    financial_impact: float
    triggered_at: datetime
    context: dict[str, Any] = Field(default_factory=dict)


class DashboardResult(BaseModel):
    """Snapshot plus alerts returned by compute_snapshot_and_alerts."""

    filters: FactFilter
    snapshot: Snapshot
    alerts: list[AlertEvent]
    fact_count: int = Field(ge=0)
