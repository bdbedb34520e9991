"""
Data storage layer.

facts: append-only operational facts, keyed by tenant
rca_records: remediation records keyed by (tenant, autoincrement id)

DuckDB is the durable backend; the in-memory backend serves tests and
ephemeral deployments.
"""

from functools import lru_cache

from controltower.config import get_settings

from .base import StorageBackend
from .duckdb_storage import DuckDBStorage
from .memory_storage import InMemoryStorage


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation selected by settings.storage_backend
    """
    settings = get_settings()
    if settings.storage_backend == "memory":
        return InMemoryStorage()
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "StorageBackend",
    "DuckDBStorage",
    "InMemoryStorage",
    "get_storage",
]
