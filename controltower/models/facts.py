"""
Fact and filter models for the Control Tower engine.

A Fact is one immutable operational event (appointment or transaction) as
handed over by ingestion. Facts are validated once at the boundary and never
mutated afterwards; the engine treats them as read-only input.
"""

from datetime import date, datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import STATUS_ALIASES, AlertSeverity, FactStatus, Period, PlanTier, SourceType


class TenantContext(BaseModel):
    """
    Tenant/session context passed as the first argument of every engine entry point.

    Attributes:
        tenant_id: Owning tenant identifier
        plan: Subscription plan tier of the tenant
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(min_length=1, description="Owning tenant identifier")
    plan: PlanTier = Field(default=PlanTier.ESSENTIAL, description="Tenant plan tier")


class Fact(BaseModel):
    """
    An immutable operational fact record.

    Attributes:
        fact_id: Unique identifier for this fact
        timestamp: When the event happened (normalized to UTC)
        channel: Acquisition channel (e.g., "meta", "google")
        professional: Professional who attended
        procedure: Procedure performed
        unit: Clinic unit
        pipeline: Optional CRM pipeline
        status: Resolution status of the appointment
        entries: Money in
        exits: Money out
        slots_available: Capacity slots available
        slots_empty: Capacity slots left idle
        ticket_price: Average ticket price
        variable_cost: Variable cost of the procedure
        duration_minutes: Procedure duration
        wait_minutes: Patient wait time
        satisfaction_score: NPS-style score in [-100, 100]
        material_list: Materials consumed
        source_type: Ingestion channel
        crm_reference: Optional external CRM lead id
    """

    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    fact_id: str = Field(default_factory=lambda: str(uuid4()), min_length=1)
    timestamp: datetime = Field(description="When the event happened")
    channel: str = Field(min_length=1)
    professional: str = Field(min_length=1)
    procedure: str = Field(min_length=1)
    unit: Optional[str] = Field(default=None)
    pipeline: Optional[str] = Field(default=None)
    status: FactStatus = Field(default=FactStatus.SCHEDULED)
    entries: float = Field(default=0.0)
    exits: float = Field(default=0.0)
    slots_available: int = Field(default=0, ge=0)
    slots_empty: int = Field(default=0, ge=0)
    ticket_price: float = Field(default=0.0, ge=0)
    variable_cost: float = Field(default=0.0, ge=0)
    duration_minutes: int = Field(default=0, ge=0)
    wait_minutes: int = Field(default=0, ge=0)
    satisfaction_score: int = Field(default=0, ge=-100, le=100)
    material_list: tuple[str, ...] = Field(default=())
    source_type: SourceType = Field(default=SourceType.UPLOAD)
    crm_reference: Optional[str] = Field(default=None)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> Any:
        """Accept legacy spellings such as "no-show" and "cancelled"."""
        if isinstance(v, str):
            label = v.strip().lower()
            return STATUS_ALIASES.get(label, label)
        return v

    @field_validator("timestamp")
    @classmethod
    def normalize_timestamp(cls, v: datetime) -> datetime:
        """Store timestamps as timezone-aware UTC; naive values are taken as UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def revenue_value(self) -> float:
        """Net revenue of the fact (entries minus exits)."""
        return self.entries - self.exits


class FactFilter(BaseModel):
    """
    Time window and dimensional filter for dashboard queries.

    Dimensional filters are case-insensitive exact matches; None, empty string
    and "all" all mean no filter on that dimension.
    """

    model_config = ConfigDict(frozen=True)

    period: Period = Field(default=Period.LAST_30_DAYS)
    date_from: Optional[date] = Field(default=None)
    date_to: Optional[date] = Field(default=None)
    channel: Optional[str] = Field(default=None)
    professional: Optional[str] = Field(default=None)
    procedure: Optional[str] = Field(default=None)
    unit: Optional[str] = Field(default=None)
    status: Optional[str] = Field(default=None)
    pipeline: Optional[str] = Field(default=None)
    alert_severity: Optional[str] = Field(
        default=None, description="Restrict returned alerts to P1, P2, P3 or all"
    )

    @field_validator("alert_severity")
    @classmethod
    def validate_alert_severity(cls, v: Optional[str]) -> Optional[str]:
        """Only P1/P2/P3/all are meaningful severity filters."""
        if v is None:
            return v
        if v != "all" and v not in {s.value for s in AlertSeverity}:
            raise ValueError("Alert severity filter must be one of: P1, P2, P3, all")
        return v

    @model_validator(mode="after")
    def validate_date_range(self) -> "FactFilter":
        """Ensure an explicit custom range is not inverted."""
        if self.date_from and self.date_to and self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")
        return self


class IngestionReceipt(BaseModel):
    """Result of appending a validated fact batch to the Fact Store."""

    ingestion_id: str
    source_name: str
    inserted_rows: int = Field(ge=0)
