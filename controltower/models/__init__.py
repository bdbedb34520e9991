"""
Domain models for the Control Tower engine.

All models are pydantic; value objects (facts, snapshots, alerts, windows,
rule tables) are frozen.
"""

from .alerts import AlertEvent, DashboardResult, Snapshot
from .cadence import CadenceRule, ExportCadenceWindow
from .enums import (
    AlertSeverity,
    ExportCadence,
    FactStatus,
    KpiKey,
    Period,
    PlanTier,
    RcaStatus,
    SourceType,
    ThresholdComparator,
)
from .facts import Fact, FactFilter, IngestionReceipt, TenantContext
from .rca import RcaCreate, RcaRecord, RcaUpdate

__all__ = [
    "AlertEvent",
    "AlertSeverity",
    "CadenceRule",
    "DashboardResult",
    "ExportCadence",
    "ExportCadenceWindow",
    "Fact",
    "FactFilter",
    "FactStatus",
    "IngestionReceipt",
    "KpiKey",
    "Period",
    "PlanTier",
    "RcaCreate",
    "RcaRecord",
    "RcaStatus",
    "RcaUpdate",
    "Snapshot",
    "SourceType",
    "TenantContext",
    "ThresholdComparator",
]
