"""
Property-based tests using Hypothesis for the Control Tower engine.

Invariants checked over generated inputs:
- Empty input yields the zero snapshot and no alerts
- Rates stay within [0, 100] and arithmetic never produces NaN/inf
- Classification is monotonic around each tier boundary
- Snapshot and alert evaluation are deterministic
- Cadence keys are stable within a calendar month and ISO week
"""

import math
from datetime import datetime, timedelta, timezone

import hypothesis.strategies as st
from hypothesis import given, settings

from controltower.engine.alert_generator import SEVERITY_ORDER, AlertGenerator
from controltower.engine.export_cadence import get_export_cadence_window
from controltower.engine.snapshot_builder import EMPTY_SNAPSHOT, SnapshotBuilder
from controltower.engine.thresholds import ALERT_THRESHOLDS, classify_priority
from controltower.models.cadence import CadenceRule
from controltower.models.enums import ExportCadence, FactStatus, KpiKey, PlanTier, ThresholdComparator
from tests.conftest import FIXED_NOW, make_fact

money = st.floats(min_value=0.0, max_value=1_000_000.0, allow_nan=False, allow_infinity=False)

fact_strategy = st.builds(
    make_fact,
    timestamp=st.datetimes(
        min_value=datetime(2025, 1, 1),
        max_value=datetime(2025, 3, 15),
        timezones=st.just(timezone.utc),
    ),
    status=st.sampled_from(list(FactStatus)),
    entries=money,
    exits=money,
    slots_available=st.integers(min_value=0, max_value=50),
    slots_empty=st.integers(min_value=0, max_value=50),
    ticket_price=st.floats(min_value=0.0, max_value=10_000.0, allow_nan=False, allow_infinity=False),
)

instants = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2099, 12, 1),
    timezones=st.just(timezone.utc),
)


# =============================================================================
# Snapshot Builder Property Tests
# =============================================================================


def test_prop_empty_input_yields_zero_snapshot_and_no_alerts():
    """Invariant: no facts -> canonical zero snapshot and zero alerts."""
    snapshot = SnapshotBuilder().build([])
    assert snapshot == EMPTY_SNAPSHOT
    for plan in PlanTier:
        assert AlertGenerator().evaluate(snapshot, plan, FIXED_NOW) == []


@given(facts=st.lists(fact_strategy, min_size=1, max_size=40))
@settings(max_examples=100)
def test_prop_snapshot_rates_bounded_and_finite(facts):
    """
    Invariant: rates in [0, 100]; every KPI finite.
    """
    snapshot = SnapshotBuilder().build(facts)

    assert 0.0 <= snapshot.no_show_rate <= 100.0
    assert 0.0 <= snapshot.occupancy_rate <= 100.0
    assert snapshot.fact_count == len(facts)
    for value in snapshot.model_dump().values():
        assert math.isfinite(value)


@given(facts=st.lists(fact_strategy, min_size=1, max_size=40))
@settings(max_examples=50)
def test_prop_snapshot_and_alerts_deterministic(facts):
    """Invariant: identical inputs at the same instant -> identical output."""
    builder = SnapshotBuilder()
    generator = AlertGenerator()

    first = builder.build(facts)
    second = builder.build(list(facts))

    assert first == second
    assert generator.evaluate(first, PlanTier.PRO, FIXED_NOW) == generator.evaluate(
        second, PlanTier.PRO, FIXED_NOW
    )


@given(facts=st.lists(fact_strategy, min_size=1, max_size=40))
@settings(max_examples=50)
def test_prop_alerts_sorted(facts):
    """Invariant: alerts are ordered by severity, then impact descending."""
    alerts = AlertGenerator().evaluate(SnapshotBuilder().build(facts), PlanTier.ESSENTIAL, FIXED_NOW)
    keys = [(SEVERITY_ORDER[a.severity], -a.financial_impact) for a in alerts]
    assert keys == sorted(keys)


# =============================================================================
# Threshold Classifier Property Tests
# =============================================================================


@given(
    plan=st.sampled_from(list(PlanTier)),
    kpi=st.sampled_from(list(KpiKey)),
    delta=st.floats(min_value=1e-6, max_value=1e6, allow_nan=False, allow_infinity=False),
)
@settings(max_examples=100)
def test_prop_boundary_classification(plan, kpi, delta):
    """
    Invariant: a value strictly past the P1 boundary is P1; a value exactly on
    the P3 boundary, or on the healthy side of it, is unclassified.
    """
    rule = ALERT_THRESHOLDS[plan][kpi]

    if rule.comparator == ThresholdComparator.GREATER_THAN:
        breaching, healthy = rule.p1 + delta, rule.p3 - delta
    else:
        breaching, healthy = rule.p1 - delta, rule.p3 + delta

    assert classify_priority(kpi, breaching, plan).value == "P1"
    assert classify_priority(kpi, rule.p3, plan) is None
    assert classify_priority(kpi, healthy, plan) is None


# =============================================================================
# Export Cadence Property Tests
# =============================================================================


@given(moment=instants, other_day=st.integers(min_value=1, max_value=28))
@settings(max_examples=100)
def test_prop_monthly_key_stable_within_month(moment, other_day):
    """Invariant: instants in the same calendar month share a window key."""
    sibling = moment.replace(day=other_day)
    first = get_export_cadence_window(PlanTier.PRO, moment)
    second = get_export_cadence_window(PlanTier.PRO, sibling)

    assert first.key == second.key == f"m-{moment.year:04d}-{moment.month:02d}"
    assert first.start <= moment < first.end


@given(moment=instants, offset_days=st.integers(min_value=0, max_value=6))
@settings(max_examples=100)
def test_prop_weekly_key_stable_within_iso_week(moment, offset_days):
    """Invariant: instants in the same Monday-start week share a window key."""
    policy = {PlanTier.PRO: CadenceRule(cadence=ExportCadence.WEEKLY, max_exports=1)}
    window = get_export_cadence_window(PlanTier.PRO, moment, policy=policy)
    sibling = window.start + timedelta(days=offset_days, hours=12)

    assert get_export_cadence_window(PlanTier.PRO, sibling, policy=policy).key == window.key
    assert window.start.weekday() == 0
    assert window.start <= moment < window.end
