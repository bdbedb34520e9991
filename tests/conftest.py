"""
Pytest configuration and shared fixtures for the Control Tower test suite.

Data factories, an isolated in-memory engine, tenant contexts and a fixed
reference instant, reused across unit, integration, golden and property-based
tests.
"""

import os
from datetime import date, datetime, timedelta, timezone
from typing import Optional

import pytest

# Set testing environment BEFORE importing the app
os.environ["TESTING"] = "true"
os.environ["STORAGE_BACKEND"] = "memory"
os.environ["LOG_FORMAT"] = "console"

from controltower.config import Settings
from controltower.engine.service import ControlTowerEngine
from controltower.models.enums import FactStatus, PlanTier
from controltower.models.facts import Fact, TenantContext
from controltower.storage.memory_storage import InMemoryStorage

# Reference instant shared by tests that pin the period window
FIXED_NOW = datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Pydantic model factories, reusable across all test suites
# ---------------------------------------------------------------------------


def make_fact(
    timestamp: Optional[datetime] = None,
    status: FactStatus = FactStatus.COMPLETED,
    entries: float = 1000.0,
    exits: float = 400.0,
    slots_available: int = 10,
    slots_empty: int = 0,
    ticket_price: float = 300.0,
    **overrides,
) -> Fact:
    """Factory function for creating test Fact objects."""
    defaults = dict(
        timestamp=timestamp or FIXED_NOW - timedelta(days=1),
        channel="meta",
        professional="dr_ana",
        procedure="cleaning",
        unit="centro",
        status=status,
        entries=entries,
        exits=exits,
        slots_available=slots_available,
        slots_empty=slots_empty,
        ticket_price=ticket_price,
        duration_minutes=45,
    )
    defaults.update(overrides)
    return Fact(**defaults)


def make_fact_series(
    count: int,
    end: datetime = FIXED_NOW - timedelta(hours=1),
    step: timedelta = timedelta(hours=6),
    **overrides,
) -> list[Fact]:
    """Facts spaced `step` apart, the last one at `end`, oldest first."""
    return [
        make_fact(timestamp=end - step * (count - 1 - i), **overrides)
        for i in range(count)
    ]


def make_rca_payload(**overrides) -> dict:
    """Factory function for RCA create payloads."""
    defaults = dict(
        alert_id="noshow-2025-03-15T12:00:00+00:00",
        severity="P1",
        title="No-show spike on Monday mornings",
        root_cause="Confirmation messages stopped after CRM migration",
        action_plan="Re-enable WhatsApp confirmations 24h before appointments",
        owner="maria",
        due_date=date(2025, 3, 31),
    )
    defaults.update(overrides)
    return defaults


# ---------------------------------------------------------------------------
# Pytest fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def memory_storage() -> InMemoryStorage:
    """Fresh in-memory storage for each test."""
    return InMemoryStorage()


@pytest.fixture
def engine(memory_storage) -> ControlTowerEngine:
    """Engine bound to an isolated in-memory store."""
    return ControlTowerEngine(storage=memory_storage, settings=Settings())


@pytest.fixture
def tenant_a() -> TenantContext:
    return TenantContext(tenant_id="clinic-a", plan=PlanTier.ESSENTIAL)


@pytest.fixture
def tenant_b() -> TenantContext:
    return TenantContext(tenant_id="clinic-b", plan=PlanTier.PRO)


@pytest.fixture
def no_show_heavy_facts() -> list[Fact]:
    """
    100 facts: 20 no-shows, entries 100,000 and exits 40,000 in total.

    Yields a 20% no-show rate and a 60% net margin.
    """
    facts = make_fact_series(100, entries=1000.0, exits=400.0)
    return [
        fact.model_copy(update={"status": FactStatus.NO_SHOW}) if i % 5 == 0 else fact
        for i, fact in enumerate(facts)
    ]
