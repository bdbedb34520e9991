"""
Root-cause-action (RCA) models for the Control Tower engine.

An RCA record links one alert (by alert_id) to a remediation: root cause,
action plan, owner and due date, with a status in {open, in_progress, done}.
Records are created explicitly by an operator, start in open and are never
deleted by the engine. Every record belongs to exactly one tenant.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .enums import AlertSeverity, RcaStatus

MIN_TEXT_LENGTH = 3
MIN_OWNER_LENGTH = 2


def _require_text(v: Optional[str], min_length: int, field: str) -> Optional[str]:
    if v is None:
        return v
    if len(v) < min_length:
        raise ValueError(f"{field} must be at least {min_length} characters")
    if not v.strip():
        raise ValueError(f"{field} must not be blank")
    return v


class RcaCreate(BaseModel):
    """
    Payload for creating an RCA record.

    alert_id is free-form and not checked against live alerts: an RCA may
    reference an alert that has since stopped firing.
    """

    alert_id: str = Field(min_length=1, max_length=64)
    severity: AlertSeverity
    title: str = Field(min_length=1, max_length=255)
    root_cause: str
    action_plan: str
    owner: str = Field(max_length=120)
    due_date: date

    @field_validator("root_cause")
    @classmethod
    def validate_root_cause(cls, v: str) -> str:
        """Ensure root cause is not trivial."""
        return _require_text(v, MIN_TEXT_LENGTH, "Root cause")

    @field_validator("action_plan")
    @classmethod
    def validate_action_plan(cls, v: str) -> str:
        """Ensure action plan is not trivial."""
        return _require_text(v, MIN_TEXT_LENGTH, "Action plan")

    @field_validator("owner")
    @classmethod
    def validate_owner(cls, v: str) -> str:
        """Ensure owner identifier is present."""
        return _require_text(v, MIN_OWNER_LENGTH, "Owner")


class RcaUpdate(BaseModel):
    """Partial patch for an RCA record. status is required, the rest optional."""

    status: RcaStatus
    root_cause: Optional[str] = None
    action_plan: Optional[str] = None
    owner: Optional[str] = Field(default=None, max_length=120)
    due_date: Optional[date] = None

    @field_validator("root_cause")
    @classmethod
    def validate_root_cause(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v, MIN_TEXT_LENGTH, "Root cause")

    @field_validator("action_plan")
    @classmethod
    def validate_action_plan(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v, MIN_TEXT_LENGTH, "Action plan")

    @field_validator("owner")
    @classmethod
    def validate_owner(cls, v: Optional[str]) -> Optional[str]:
        return _require_text(v, MIN_OWNER_LENGTH, "Owner")


class RcaRecord(BaseModel):
    """
    A persisted RCA record.

    Attributes:
        rca_id: Store-assigned autoincrement identifier
        tenant_id: Owning tenant
        alert_id: Alert this remediation addresses
        severity: Severity copied from the alert
        title: Short title
        root_cause: Root cause analysis text
        action_plan: Remediation plan text
        owner: Responsible person
        due_date: Deadline for the action plan
        status: Lifecycle status
        created_at: Creation time
        updated_at: Last update time
    """

    rca_id: int = Field(ge=1)
    tenant_id: str
    alert_id: str
    severity: AlertSeverity
    title: str
    root_cause: str
    action_plan: str
    owner: str
    due_date: date
    status: RcaStatus = RcaStatus.OPEN
    created_at: datetime
    updated_at: datetime
