"""
In-memory storage implementation for tests and ephemeral deployments.

Same contract as DuckDBStorage. A single lock guards every read-modify-write so
concurrent RCA updates on the same record serialize.
"""

import itertools
import threading
from datetime import datetime
from typing import Optional

import structlog

from controltower.models.enums import AlertSeverity, RcaStatus
from controltower.models.facts import Fact
from controltower.models.rca import RcaCreate, RcaRecord, RcaUpdate

from .base import StorageBackend

logger = structlog.get_logger(__name__)


class InMemoryStorage(StorageBackend):
    """
    Process-local storage backend.

    Attributes:
        _facts: Facts per tenant, in insertion order
        _rca: RCA records per (tenant_id, rca_id)
        _ids: Global RCA id sequence
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._facts: dict[str, list[Fact]] = {}
        self._rca: dict[tuple[str, int], RcaRecord] = {}
        self._ids = itertools.count(1)

    def append_facts(
        self, tenant_id: str, facts: list[Fact], ingestion_id: str, source_name: str
    ) -> int:
        with self._lock:
            self._facts.setdefault(tenant_id, []).extend(facts)
        logger.info(
            "facts_appended", tenant_id=tenant_id, ingestion_id=ingestion_id, count=len(facts)
        )
        return len(facts)

    def read_facts(self, tenant_id: str) -> list[Fact]:
        with self._lock:
            facts = list(self._facts.get(tenant_id, []))
        return sorted(facts, key=lambda fact: fact.timestamp)

    def write_rca(
        self, tenant_id: str, payload: RcaCreate, created_at: datetime
    ) -> RcaRecord:
        with self._lock:
            record = RcaRecord(
                rca_id=next(self._ids),
                tenant_id=tenant_id,
                status=RcaStatus.OPEN,
                created_at=created_at,
                updated_at=created_at,
                **payload.model_dump(),
            )
            self._rca[(tenant_id, record.rca_id)] = record
        logger.info("rca_written", tenant_id=tenant_id, rca_id=record.rca_id)
        return record

    def update_rca(
        self, tenant_id: str, rca_id: int, patch: RcaUpdate, updated_at: datetime
    ) -> bool:
        with self._lock:
            current = self._rca.get((tenant_id, rca_id))
            if current is None:
                return False
            changes = patch.model_dump(exclude_none=True)
            changes["updated_at"] = updated_at
            self._rca[(tenant_id, rca_id)] = current.model_copy(update=changes)
        return True

    def read_rca(
        self,
        tenant_id: str,
        severity: Optional[AlertSeverity] = None,
        status: Optional[RcaStatus] = None,
    ) -> list[RcaRecord]:
        with self._lock:
            records = [record for (owner, _), record in self._rca.items() if owner == tenant_id]
        if severity is not None:
            records = [record for record in records if record.severity == severity]
        if status is not None:
            records = [record for record in records if record.status == status]
        return sorted(records, key=lambda r: (r.created_at, r.rca_id), reverse=True)

    def read_rca_by_id(self, tenant_id: str, rca_id: int) -> Optional[RcaRecord]:
        with self._lock:
            return self._rca.get((tenant_id, rca_id))
