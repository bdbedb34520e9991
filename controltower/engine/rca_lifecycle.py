"""
RCA Lifecycle Manager: create, update, list and fetch remediation records.

Payloads are validated at this boundary (pydantic errors become engine
ValidationErrors) and every store call is scoped by the caller's tenant.
Status transitions are unrestricted among open, in_progress and done;
operators may reopen a finished record.

Version: rca_lifecycle_v1
"""

from datetime import datetime, timezone
from typing import Any, Optional, Type, TypeVar, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from controltower.errors import RcaNotFoundError, ValidationError
from controltower.models.enums import AlertSeverity, RcaStatus
from controltower.models.facts import TenantContext
from controltower.models.rca import RcaCreate, RcaRecord, RcaUpdate
from controltower.storage.base import StorageBackend

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def parse_payload(
    model: Type[ModelT], payload: Union[ModelT, dict[str, Any]], subject: str
) -> ModelT:
    """Coerce a dict into model, translating pydantic errors."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e, subject) from e


def _parse_enum(enum_type, value, field: str):
    if value is None or isinstance(value, enum_type):
        return value
    try:
        return enum_type(value)
    except ValueError as e:
        allowed = [member.value for member in enum_type]
        raise ValidationError(
            f"Invalid {field} filter '{value}'", {"field": field, "allowed": allowed}
        ) from e


class RcaLifecycleManager:
    """
    Manages RCA records for the requesting tenant.

    Attributes:
        storage: Backend holding the rca_records table

    Example:
        >>> manager = RcaLifecycleManager(storage)
        >>> record = manager.create(ctx, {"alert_id": "margin-...", ...})
        >>> manager.update_status(ctx, record.rca_id, {"status": "done"})
        True
    """

    def __init__(self, storage: StorageBackend):
        self.storage = storage

    def create(
        self, ctx: TenantContext, payload: Union[RcaCreate, dict[str, Any]]
    ) -> RcaRecord:
        """
        Validate and persist a new RCA record in status open.

        Raises:
            ValidationError: Payload violates field constraints
            StorageError: Store failure
        """
        data = parse_payload(RcaCreate, payload, "RCA payload")
        record = self.storage.write_rca(ctx.tenant_id, data, datetime.now(timezone.utc))

        logger.info(
            "rca_created",
            tenant_id=ctx.tenant_id,
            rca_id=record.rca_id,
            alert_id=record.alert_id,
            severity=record.severity.value,
        )
        return record

    def update_status(
        self, ctx: TenantContext, rca_id: int, patch: Union[RcaUpdate, dict[str, Any]]
    ) -> bool:
        """
        Apply a status patch to a record owned by the tenant.

        Args:
            ctx: Tenant context
            rca_id: Record id
            patch: Status plus optional root_cause, action_plan, owner, due_date

        Returns:
            True if the record was updated, False if no record matched the
            (tenant, id) pair

        Raises:
            ValidationError: Patch violates field constraints
            StorageError: Store failure
        """
        data = parse_payload(RcaUpdate, patch, "RCA update")
        updated = self.storage.update_rca(ctx.tenant_id, rca_id, data, datetime.now(timezone.utc))

        if updated:
            logger.info(
                "rca_status_updated",
                tenant_id=ctx.tenant_id,
                rca_id=rca_id,
                status=data.status.value,
            )
        else:
            logger.info("rca_update_no_match", tenant_id=ctx.tenant_id, rca_id=rca_id)
        return updated

    def list_records(
        self,
        ctx: TenantContext,
        severity: Optional[Union[AlertSeverity, str]] = None,
        status: Optional[Union[RcaStatus, str]] = None,
    ) -> list[RcaRecord]:
        """
        List the tenant's records, newest first.

        Raises:
            ValidationError: Unknown severity or status filter value
            StorageError: Store failure
        """
        return self.storage.read_rca(
            ctx.tenant_id,
            severity=_parse_enum(AlertSeverity, severity, "severity"),
            status=_parse_enum(RcaStatus, status, "status"),
        )

    def get_record(self, ctx: TenantContext, rca_id: int) -> RcaRecord:
        """
        Fetch one record owned by the tenant.

        Raises:
            RcaNotFoundError: Record is missing or owned by another tenant
            StorageError: Store failure
        """
        record = self.storage.read_rca_by_id(ctx.tenant_id, rca_id)
        if record is None:
            raise RcaNotFoundError(rca_id)
        return record
