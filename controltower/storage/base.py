"""
Abstract storage interface for the Control Tower engine.

The engine reads facts and reads/writes RCA records through this contract, so
the durable DuckDB store and the in-memory store are interchangeable. Every
operation is scoped by tenant_id; an implementation must never return or
modify a row owned by another tenant.

Two logical tables:
- facts: append-only operational facts, keyed by tenant
- rca_records: remediation records keyed by (tenant, autoincrement id)
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from controltower.models.enums import AlertSeverity, RcaStatus
from controltower.models.facts import Fact
from controltower.models.rca import RcaCreate, RcaRecord, RcaUpdate


class StorageBackend(ABC):
    """
    Abstract base class for all storage implementations.

    Storage implementations should ensure:
    - Thread safety for concurrent access
    - Atomic read-modify-write of a single RCA record
    - Tenant scoping on every read and write
    - Failures surfaced as StorageError, never retried
    """

    # =========================================================================
    # Fact Store
    # =========================================================================

    @abstractmethod
    def append_facts(
        self, tenant_id: str, facts: list[Fact], ingestion_id: str, source_name: str
    ) -> int:
        """
        Append a validated fact batch for a tenant.

        Args:
            tenant_id: Owning tenant
            facts: Facts to append
            ingestion_id: Identifier of the ingestion batch
            source_name: Human name of the upload or connector

        Returns:
            Number of rows inserted

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def read_facts(self, tenant_id: str) -> list[Fact]:
        """
        Read every fact of a tenant.

        Returns:
            Facts ordered by timestamp ascending

        Raises:
            StorageError: If read operation fails
        """
        pass

    # =========================================================================
    # RCA Store
    # =========================================================================

    @abstractmethod
    def write_rca(
        self, tenant_id: str, payload: RcaCreate, created_at: datetime
    ) -> RcaRecord:
        """
        Insert a new RCA record in status open.

        Args:
            tenant_id: Owning tenant
            payload: Validated create payload
            created_at: Creation instant (also the initial updated_at)

        Returns:
            The persisted record with its store-assigned rca_id

        Raises:
            StorageError: If write operation fails
        """
        pass

    @abstractmethod
    def update_rca(
        self, tenant_id: str, rca_id: int, patch: RcaUpdate, updated_at: datetime
    ) -> bool:
        """
        Apply a patch to an RCA record owned by the tenant.

        Optional fields left as None keep their stored value.

        Returns:
            True if a record matched (tenant_id, rca_id), False otherwise

        Raises:
            StorageError: If update operation fails
        """
        pass

    @abstractmethod
    def read_rca(
        self,
        tenant_id: str,
        severity: Optional[AlertSeverity] = None,
        status: Optional[RcaStatus] = None,
    ) -> list[RcaRecord]:
        """
        Read a tenant's RCA records with optional exact filters.

        Returns:
            Records ordered by created_at descending (newest first)

        Raises:
            StorageError: If read operation fails
        """
        pass

    @abstractmethod
    def read_rca_by_id(self, tenant_id: str, rca_id: int) -> Optional[RcaRecord]:
        """
        Read one RCA record owned by the tenant.

        Returns:
            The record, or None when missing or owned by another tenant

        Raises:
            StorageError: If read operation fails
        """
        pass
