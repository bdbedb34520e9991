"""
Control Tower engine facade.

ControlTowerEngine wires the pure components (window evaluator, snapshot
builder, alert generator, export cadence gate) to the storage backend and
exposes the operations the HTTP layer calls. Every tenant-scoped operation takes
a TenantContext as its first argument.
"""

from datetime import datetime, timezone
from typing import Any, Iterable, Optional, Union
from uuid import uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from controltower.config import Settings, get_settings
from controltower.engine.alert_generator import AlertGenerator
from controltower.engine.export_cadence import get_export_cadence_window
from controltower.engine.rca_lifecycle import RcaLifecycleManager, parse_payload
from controltower.engine.snapshot_builder import SnapshotBuilder
from controltower.engine.window import FactWindowEvaluator
from controltower.errors import ValidationError
from controltower.models.alerts import DashboardResult
from controltower.models.cadence import ExportCadenceWindow
from controltower.models.enums import AlertSeverity, PlanTier, RcaStatus
from controltower.models.facts import Fact, FactFilter, IngestionReceipt, TenantContext
from controltower.models.rca import RcaCreate, RcaRecord, RcaUpdate
from controltower.storage.base import StorageBackend

logger = structlog.get_logger(__name__)


class ControlTowerEngine:
    """
    Snapshot, alerting and RCA operations for one storage backend.

    Attributes:
        storage: Fact and RCA store
        settings: Application settings
        window_evaluator: Period and dimension filter
        snapshot_builder: KPI aggregation
        alert_generator: Alert rule evaluation
        rca_manager: RCA lifecycle
    """

    def __init__(self, storage: StorageBackend, settings: Optional[Settings] = None):
        self.storage = storage
        self.settings = settings or get_settings()
        self.window_evaluator = FactWindowEvaluator(
            fallback_lookback_days=self.settings.fallback_lookback_days,
            strict_custom_period=self.settings.strict_custom_period,
        )
        self.snapshot_builder = SnapshotBuilder()
        self.alert_generator = AlertGenerator()
        self.rca_manager = RcaLifecycleManager(storage)

    def compute_snapshot_and_alerts(
        self,
        ctx: TenantContext,
        filters: Union[FactFilter, dict[str, Any], None] = None,
        now: Optional[datetime] = None,
    ) -> DashboardResult:
        """
        Filter the tenant's facts, build the snapshot and evaluate alerts.

        Args:
            ctx: Tenant context (plan tier drives the tier classification)
            filters: Filter or its dict form (defaults to last 30 days)
            now: Reference instant for the window and alert timestamps

        Returns:
            DashboardResult with snapshot, ordered alerts and fact count

        Raises:
            ValidationError: Malformed filter
            StorageError: Fact store failure
        """
        fact_filter = parse_payload(FactFilter, filters or {}, "filter")
        now = now or datetime.now(timezone.utc)

        facts = self.storage.read_facts(ctx.tenant_id)
        subset = self.window_evaluator.apply(facts, fact_filter, now)
        snapshot = self.snapshot_builder.build(subset)
        alerts = self.alert_generator.evaluate(snapshot, ctx.plan, evaluated_at=now)

        if fact_filter.alert_severity and fact_filter.alert_severity != "all":
            wanted = AlertSeverity(fact_filter.alert_severity)
            alerts = [alert for alert in alerts if alert.severity == wanted]

        logger.info(
            "snapshot_computed",
            tenant_id=ctx.tenant_id,
            plan=ctx.plan.value,
            period=fact_filter.period.value,
            fact_count=len(subset),
            alert_count=len(alerts),
        )

        return DashboardResult(
            filters=fact_filter,
            snapshot=snapshot,
            alerts=alerts,
            fact_count=len(subset),
        )

    def ingest_facts(
        self,
        ctx: TenantContext,
        facts: Iterable[Union[Fact, dict[str, Any]]],
        source_name: str,
    ) -> IngestionReceipt:
        """
        Validate and append a fact batch for the tenant.

        Raises:
            ValidationError: Batch size out of range or a fact fails validation
            StorageError: Fact store failure
        """
        batch = list(facts)
        limit = self.settings.max_ingestion_batch
        if not 1 <= len(batch) <= limit:
            raise ValidationError(
                f"Batch must contain between 1 and {limit} facts",
                {"batch_size": len(batch), "max_batch_size": limit},
            )
        if not source_name or not source_name.strip():
            raise ValidationError("source_name must not be empty", {"field": "source_name"})

        validated = []
        for index, item in enumerate(batch):
            if isinstance(item, Fact):
                validated.append(item)
                continue
            try:
                validated.append(Fact.model_validate(item))
            except PydanticValidationError as e:
                error = ValidationError.from_pydantic(e, f"fact at index {index}")
                error.details["index"] = index
                raise error from e

        ingestion_id = str(uuid4())
        inserted = self.storage.append_facts(
            ctx.tenant_id, validated, ingestion_id, source_name.strip()
        )

        logger.info(
            "facts_ingested",
            tenant_id=ctx.tenant_id,
            ingestion_id=ingestion_id,
            source_name=source_name,
            inserted_rows=inserted,
        )
        return IngestionReceipt(
            ingestion_id=ingestion_id,
            source_name=source_name.strip(),
            inserted_rows=inserted,
        )

    def create_rca(
        self, ctx: TenantContext, payload: Union[RcaCreate, dict[str, Any]]
    ) -> RcaRecord:
        return self.rca_manager.create(ctx, payload)

    def update_rca_status(
        self, ctx: TenantContext, rca_id: int, patch: Union[RcaUpdate, dict[str, Any]]
    ) -> bool:
        return self.rca_manager.update_status(ctx, rca_id, patch)

    def list_rca(
        self,
        ctx: TenantContext,
        severity: Optional[Union[AlertSeverity, str]] = None,
        status: Optional[Union[RcaStatus, str]] = None,
    ) -> list[RcaRecord]:
        return self.rca_manager.list_records(ctx, severity=severity, status=status)

    def get_rca(self, ctx: TenantContext, rca_id: int) -> RcaRecord:
        return self.rca_manager.get_record(ctx, rca_id)

    def get_export_cadence_window(
        self, plan: Union[PlanTier, str, None], now: Optional[datetime] = None
    ) -> ExportCadenceWindow:
        return get_export_cadence_window(plan, now)
