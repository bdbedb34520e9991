"""
DuckDB storage implementation for the Control Tower engine.

Durable store for the append-only fact table and the RCA records. Suitable for
single-node deployments; every query is scoped by tenant_id.

Key features:
- Thread-local connections
- Idempotent schema creation on first access
- RCA ids from a database sequence
- Single-statement conditional RCA updates, writes serialized per instance
- Insertion sequence as the tiebreaker for facts sharing a timestamp
- Failures wrapped in StorageError with structured logging

Timestamps are stored as naive UTC TIMESTAMP columns and returned as
timezone-aware UTC datetimes.
"""

import json
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb
import structlog

from controltower.errors import StorageError
from controltower.models.enums import AlertSeverity, RcaStatus
from controltower.models.facts import Fact
from controltower.models.rca import RcaCreate, RcaRecord, RcaUpdate

from .base import StorageBackend

logger = structlog.get_logger(__name__)

_FACT_COLUMNS = """
    fact_id, event_at, channel, professional, procedure_name, unit, pipeline,
    status, entries, exits, slots_available, slots_empty, ticket_price,
    variable_cost, duration_minutes, wait_minutes, satisfaction_score,
    material_list, source_type, crm_reference
"""

_RCA_COLUMNS = """
    rca_id, tenant_id, alert_id, severity, title, root_cause, action_plan,
    owner, due_date, status, created_at, updated_at
"""


def _to_db_timestamp(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _from_db_timestamp(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc)


def _row_to_fact(row: tuple) -> Fact:
    return Fact(
        fact_id=row[0],
        timestamp=_from_db_timestamp(row[1]),
        channel=row[2],
        professional=row[3],
        procedure=row[4],
        unit=row[5],
        pipeline=row[6],
        status=row[7],
        entries=row[8],
        exits=row[9],
        slots_available=row[10],
        slots_empty=row[11],
        ticket_price=row[12],
        variable_cost=row[13],
        duration_minutes=row[14],
        wait_minutes=row[15],
        satisfaction_score=row[16],
        material_list=tuple(json.loads(row[17])) if row[17] else (),
        source_type=row[18],
        crm_reference=row[19],
    )


def _row_to_rca(row: tuple) -> RcaRecord:
    return RcaRecord(
        rca_id=row[0],
        tenant_id=row[1],
        alert_id=row[2],
        severity=row[3],
        title=row[4],
        root_cause=row[5],
        action_plan=row[6],
        owner=row[7],
        due_date=row[8],
        status=row[9],
        created_at=_from_db_timestamp(row[10]),
        updated_at=_from_db_timestamp(row[11]),
    )


class DuckDBStorage(StorageBackend):
    """
    DuckDB implementation of the storage backend.

    Attributes:
        db_path: Path to the DuckDB database file
        _local: Thread-local storage for per-thread connections
        _lock: Thread lock for schema operations
        _write_lock: Serializes writes; DuckDB aborts concurrent writers to the same row
        _initialized: Flag tracking whether schema is initialized
    """

    def __init__(self, db_path: str = "./data/control_tower.duckdb"):
        """
        Initialize DuckDB storage backend.

        Args:
            db_path: Path to DuckDB database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._local = threading.local()
        self._lock = threading.Lock()
        self._write_lock = threading.Lock()
        self._initialized = False

        logger.info("duckdb_storage_initialized", db_path=str(self.db_path))

        self._initialize_schema()

    @contextmanager
    def _get_connection(self):
        """
        Get a thread-local DuckDB connection.

        Yields:
            DuckDB connection instance

        Raises:
            StorageError: If connection cannot be established
        """
        if not hasattr(self._local, "connection"):
            try:
                self._local.connection = duckdb.connect(str(self.db_path))
                logger.debug("duckdb_connection_created", thread_id=threading.get_ident())
            except duckdb.Error as e:
                logger.error("duckdb_connection_failed", error=str(e))
                raise StorageError(f"Failed to connect to DuckDB: {e}") from e

        try:
            yield self._local.connection
        except Exception:
            try:
                self._local.connection.rollback()
            except duckdb.Error as rollback_error:
                # Nothing to roll back outside an explicit transaction
                logger.debug("duckdb_rollback_skipped", error=str(rollback_error))
            raise

    def _initialize_schema(self):
        """
        Create the facts and rca_records tables if missing.

        Idempotent and safe to call multiple times.

        Raises:
            StorageError: If schema creation fails
        """
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return

            try:
                with self._get_connection() as conn:
                    conn.execute("CREATE SEQUENCE IF NOT EXISTS fact_seq START 1")

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS facts (
                            fact_id VARCHAR NOT NULL,
                            tenant_id VARCHAR NOT NULL,
                            ingestion_id VARCHAR NOT NULL,
                            source_name VARCHAR NOT NULL,
                            event_at TIMESTAMP NOT NULL,
                            channel VARCHAR NOT NULL,
                            professional VARCHAR NOT NULL,
                            procedure_name VARCHAR NOT NULL,
                            unit VARCHAR,
                            pipeline VARCHAR,
                            status VARCHAR NOT NULL,
                            entries DOUBLE NOT NULL,
                            exits DOUBLE NOT NULL,
                            slots_available INTEGER NOT NULL,
                            slots_empty INTEGER NOT NULL,
                            ticket_price DOUBLE NOT NULL,
                            variable_cost DOUBLE NOT NULL,
                            duration_minutes INTEGER NOT NULL,
                            wait_minutes INTEGER NOT NULL,
                            satisfaction_score INTEGER NOT NULL,
                            material_list JSON NOT NULL,
                            source_type VARCHAR NOT NULL,
                            crm_reference VARCHAR,
                            ingest_seq BIGINT NOT NULL DEFAULT nextval('fact_seq'),
                            ingested_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_facts_tenant_event_at
                        ON facts(tenant_id, event_at)
                    """)

                    conn.execute("CREATE SEQUENCE IF NOT EXISTS rca_id_seq START 1")

                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS rca_records (
                            rca_id BIGINT PRIMARY KEY DEFAULT nextval('rca_id_seq'),
                            tenant_id VARCHAR NOT NULL,
                            alert_id VARCHAR NOT NULL,
                            severity VARCHAR NOT NULL,
                            title VARCHAR NOT NULL,
                            root_cause TEXT NOT NULL,
                            action_plan TEXT NOT NULL,
                            owner VARCHAR NOT NULL,
                            due_date DATE NOT NULL,
                            status VARCHAR NOT NULL,
                            created_at TIMESTAMP NOT NULL,
                            updated_at TIMESTAMP NOT NULL
                        )
                    """)

                    conn.execute("""
                        CREATE INDEX IF NOT EXISTS idx_rca_records_tenant
                        ON rca_records(tenant_id)
                    """)

                    conn.commit()
                    logger.info("duckdb_schema_initialized", table_count=2)
                    self._initialized = True

            except duckdb.Error as e:
                logger.error("duckdb_schema_initialization_failed", error=str(e))
                raise StorageError(f"Failed to initialize schema: {e}") from e

    def close(self) -> None:
        """Close the calling thread's connection, if any."""
        connection = getattr(self._local, "connection", None)
        if connection is not None:
            connection.close()
            del self._local.connection

    # =========================================================================
    # Fact Store
    # =========================================================================

    def append_facts(
        self, tenant_id: str, facts: list[Fact], ingestion_id: str, source_name: str
    ) -> int:
        """Append a fact batch in one transaction."""
        if not facts:
            return 0

        rows = [
            [
                fact.fact_id,
                tenant_id,
                ingestion_id,
                source_name,
                _to_db_timestamp(fact.timestamp),
                fact.channel,
                fact.professional,
                fact.procedure,
                fact.unit,
                fact.pipeline,
                fact.status.value,
                fact.entries,
                fact.exits,
                fact.slots_available,
                fact.slots_empty,
                fact.ticket_price,
                fact.variable_cost,
                fact.duration_minutes,
                fact.wait_minutes,
                fact.satisfaction_score,
                json.dumps(list(fact.material_list)),
                fact.source_type.value,
                fact.crm_reference,
            ]
            for fact in facts
        ]

        try:
            with self._write_lock, self._get_connection() as conn:
                conn.begin()
                conn.executemany(
                    """
                    INSERT INTO facts (
                        fact_id, tenant_id, ingestion_id, source_name, event_at,
                        channel, professional, procedure_name, unit, pipeline,
                        status, entries, exits, slots_available, slots_empty,
                        ticket_price, variable_cost, duration_minutes, wait_minutes,
                        satisfaction_score, material_list, source_type, crm_reference
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                conn.commit()
                logger.info(
                    "facts_appended",
                    tenant_id=tenant_id,
                    ingestion_id=ingestion_id,
                    count=len(rows),
                )
                return len(rows)

        except duckdb.Error as e:
            logger.error("append_facts_failed", tenant_id=tenant_id, error=str(e))
            raise StorageError(f"Failed to append facts: {e}") from e

    def read_facts(self, tenant_id: str) -> list[Fact]:
        """Read a tenant's facts, oldest first."""
        try:
            with self._get_connection() as conn:
                result = conn.execute(
                    f"""
                    SELECT {_FACT_COLUMNS}
                    FROM facts
                    WHERE tenant_id = ?
                    ORDER BY event_at ASC, ingest_seq ASC
                    """,
                    [tenant_id],
                ).fetchall()

                facts = [_row_to_fact(row) for row in result]
                logger.debug("facts_read", tenant_id=tenant_id, count=len(facts))
                return facts

        except duckdb.Error as e:
            logger.error("read_facts_failed", tenant_id=tenant_id, error=str(e))
            raise StorageError(f"Failed to read facts: {e}") from e

    # =========================================================================
    # RCA Store
    # =========================================================================

    def write_rca(
        self, tenant_id: str, payload: RcaCreate, created_at: datetime
    ) -> RcaRecord:
        """Insert an RCA record and return it with its sequence id."""
        timestamp = _to_db_timestamp(created_at)
        try:
            with self._write_lock, self._get_connection() as conn:
                row = conn.execute(
                    f"""
                    INSERT INTO rca_records (
                        tenant_id, alert_id, severity, title, root_cause,
                        action_plan, owner, due_date, status, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    RETURNING {_RCA_COLUMNS}
                    """,
                    [
                        tenant_id,
                        payload.alert_id,
                        payload.severity.value,
                        payload.title,
                        payload.root_cause,
                        payload.action_plan,
                        payload.owner,
                        payload.due_date,
                        RcaStatus.OPEN.value,
                        timestamp,
                        timestamp,
                    ],
                ).fetchone()
                conn.commit()

                record = _row_to_rca(row)
                logger.info("rca_written", tenant_id=tenant_id, rca_id=record.rca_id)
                return record

        except duckdb.Error as e:
            logger.error("write_rca_failed", tenant_id=tenant_id, error=str(e))
            raise StorageError(f"Failed to write RCA record: {e}") from e

    def update_rca(
        self, tenant_id: str, rca_id: int, patch: RcaUpdate, updated_at: datetime
    ) -> bool:
        """Apply a patch in a single conditional UPDATE."""
        try:
            with self._write_lock, self._get_connection() as conn:
                result = conn.execute(
                    """
                    UPDATE rca_records
                    SET status = ?,
                        root_cause = COALESCE(CAST(? AS TEXT), root_cause),
                        action_plan = COALESCE(CAST(? AS TEXT), action_plan),
                        owner = COALESCE(CAST(? AS VARCHAR), owner),
                        due_date = COALESCE(CAST(? AS DATE), due_date),
                        updated_at = ?
                    WHERE tenant_id = ? AND rca_id = ?
                    RETURNING rca_id
                    """,
                    [
                        patch.status.value,
                        patch.root_cause,
                        patch.action_plan,
                        patch.owner,
                        patch.due_date,
                        _to_db_timestamp(updated_at),
                        tenant_id,
                        rca_id,
                    ],
                ).fetchall()
                conn.commit()

                updated = len(result) > 0
                logger.debug(
                    "rca_update_applied", tenant_id=tenant_id, rca_id=rca_id, updated=updated
                )
                return updated

        except duckdb.Error as e:
            logger.error("update_rca_failed", tenant_id=tenant_id, rca_id=rca_id, error=str(e))
            raise StorageError(f"Failed to update RCA record: {e}") from e

    def read_rca(
        self,
        tenant_id: str,
        severity: Optional[AlertSeverity] = None,
        status: Optional[RcaStatus] = None,
    ) -> list[RcaRecord]:
        """Read a tenant's RCA records, newest first."""
        try:
            with self._get_connection() as conn:
                query = f"""
                    SELECT {_RCA_COLUMNS}
                    FROM rca_records
                    WHERE tenant_id = ?
                """
                params: list = [tenant_id]

                if severity is not None:
                    query += " AND severity = ?"
                    params.append(severity.value)

                if status is not None:
                    query += " AND status = ?"
                    params.append(status.value)

                query += " ORDER BY created_at DESC, rca_id DESC"

                records = [_row_to_rca(row) for row in conn.execute(query, params).fetchall()]
                logger.debug("rca_records_read", tenant_id=tenant_id, count=len(records))
                return records

        except duckdb.Error as e:
            logger.error("read_rca_failed", tenant_id=tenant_id, error=str(e))
            raise StorageError(f"Failed to read RCA records: {e}") from e

    def read_rca_by_id(self, tenant_id: str, rca_id: int) -> Optional[RcaRecord]:
        """Read one RCA record owned by the tenant."""
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    f"""
                    SELECT {_RCA_COLUMNS}
                    FROM rca_records
                    WHERE tenant_id = ? AND rca_id = ?
                    """,
                    [tenant_id, rca_id],
                ).fetchone()
                return _row_to_rca(row) if row else None

        except duckdb.Error as e:
            logger.error("read_rca_by_id_failed", tenant_id=tenant_id, rca_id=rca_id, error=str(e))
            raise StorageError(f"Failed to read RCA record: {e}") from e
