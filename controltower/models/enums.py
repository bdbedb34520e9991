"""
Enumeration types for the Control Tower engine.

This module defines all enum types used across the system for type safety
and consistent validation. All enums inherit from str to ensure JSON
serialization compatibility.
"""

from enum import Enum


class PlanTier(str, Enum):
    """
    Subscription plan tiers, totally ordered by capability rank.

    Each tier owns a threshold table and an export cadence rule.
    """

    ESSENTIAL = "essential"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class FactStatus(str, Enum):
    """Resolution status of an operational fact (appointment)."""

    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELED = "canceled"
    NO_SHOW = "no_show"


# Legacy status spellings seen in spreadsheet exports
STATUS_ALIASES = {
    "noshow": "no_show",
    "no-show": "no_show",
    "cancelled": "canceled",
}


class SourceType(str, Enum):
    """Channel through which a fact reached the Fact Store."""

    UPLOAD = "upload"
    CRM = "crm"
    API = "api"
    WEBHOOK = "webhook"
    MANUAL = "manual"


class AlertSeverity(str, Enum):
    """
    Priority levels for alerts and RCA records.

    P1 requires action within 24h, P2 within 7 days, P3 is monitored.
    Declaration order is the display order (P1 first).
    """

    P1 = "P1"
    P2 = "P2"
    P3 = "P3"


class RcaStatus(str, Enum):
    """
    Lifecycle status for RCA records.

    Any transition among the three states is allowed; operators may reopen
    a record by moving it back to open or in_progress.
    """

    OPEN = "open"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class Period(str, Enum):
    """Dashboard period selector."""

    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_12_MONTHS = "12m"
    CUSTOM = "custom"


class ThresholdComparator(str, Enum):
    """Direction in which a KPI value breaches its threshold."""

    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"


class KpiKey(str, Enum):
    """
    Closed set of KPI keys tracked by the tier threshold tables.

    Every plan tier must define a rule for every member.
    """

    NO_SHOW_RATE = "no_show_rate"
    NET_MARGIN = "net_margin"
    NPS = "nps"
    REVENUE_GAP_PERCENT = "revenue_gap_percent"
    CASH_FLOW = "cash_flow"
    CHURN_RATE = "churn_rate"
    LTV_CAC_RATIO = "ltv_cac_ratio"
    OCCUPANCY_RATE = "occupancy_rate"


class ExportCadence(str, Enum):
    """Recurring window against which report export limits are enforced."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
