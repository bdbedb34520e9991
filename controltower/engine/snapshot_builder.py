"""
Snapshot Builder: aggregates a fact subset into KPI values.

Computes net margin, no-show rate, occupancy, financial impact of idle slots
and the RevPAS trend between the most recent facts and the ones before them.

All arithmetic degrades to 0 instead of raising on division by zero or
non-finite intermediate values; an empty subset yields the canonical all-zero
snapshot.

Version: snapshot_v1
"""

import math
from typing import Sequence

from controltower.engine.formulas import (
    calc_financial_impact,
    calc_revpas,
    calc_revpas_drop_percent,
    safe_divide,
)
from controltower.models.alerts import Snapshot
from controltower.models.enums import FactStatus
from controltower.models.facts import Fact

# Number of most recent facts forming each RevPAS window
REVPAS_WINDOW_SIZE = 7

EMPTY_SNAPSHOT = Snapshot()


def _finite_or_zero(value: float) -> float:
    return value if math.isfinite(value) else 0.0


def _window_revpas(window: Sequence[Fact]) -> float:
    revenue = sum(fact.revenue_value for fact in window)
    slots = sum(fact.slots_available for fact in window)
    return calc_revpas(revenue, slots)


def split_revpas_windows(
    facts: Sequence[Fact], window_size: int = REVPAS_WINDOW_SIZE
) -> tuple[list[Fact], list[Fact]]:
    """
    Split facts into (current, previous) RevPAS windows.

    Facts are sorted by timestamp ascending (stable for equal timestamps). The
    current window holds the last window_size facts, or all of them when there
    are fewer; the previous window holds up to window_size facts preceding it.
    """
    ordered = sorted(facts, key=lambda fact: fact.timestamp)
    split_index = max(0, len(ordered) - window_size)
    current = ordered[split_index:]
    previous = ordered[max(0, split_index - window_size):split_index]
    return current, previous


class SnapshotBuilder:
    """
    Builds KPI snapshots from fact subsets.

    Stateless; a single instance can be shared across concurrent requests.

    Example:
        >>> snapshot = SnapshotBuilder().build(facts)
        >>> snapshot.no_show_rate
        20.0
    """

    def __init__(self, revpas_window_size: int = REVPAS_WINDOW_SIZE):
        self.revpas_window_size = revpas_window_size

    def build(self, facts: Sequence[Fact]) -> Snapshot:
        """
        Aggregate a fact subset into a Snapshot.

        Args:
            facts: Filtered facts (any order)

        Returns:
            Snapshot; EMPTY_SNAPSHOT when facts is empty
        """
        if not facts:
            return EMPTY_SNAPSHOT

        total = len(facts)
        entries = sum(fact.entries for fact in facts)
        exits = sum(fact.exits for fact in facts)
        net_margin = _finite_or_zero(safe_divide(entries - exits, entries) * 100)

        no_shows = sum(1 for fact in facts if fact.status == FactStatus.NO_SHOW)
        no_show_rate = safe_divide(no_shows, total) * 100

        slots_available = sum(fact.slots_available for fact in facts)
        empty_slots = sum(fact.slots_empty for fact in facts)
        occupancy = safe_divide(slots_available - empty_slots, slots_available) * 100
        occupancy_rate = min(100.0, max(0.0, occupancy))

        average_ticket = safe_divide(sum(fact.ticket_price for fact in facts), total)
        financial_impact = _finite_or_zero(calc_financial_impact(empty_slots, average_ticket))

        current, previous = split_revpas_windows(facts, self.revpas_window_size)
        revpas_current = _window_revpas(current)
        revpas_previous = _window_revpas(previous)

        return Snapshot(
            net_margin=net_margin,
            no_show_rate=no_show_rate,
            occupancy_rate=occupancy_rate,
            financial_impact=financial_impact,
            revpas_current=revpas_current,
            revpas_previous=revpas_previous,
            revpas_drop_percent=_finite_or_zero(
                calc_revpas_drop_percent(revpas_current, revpas_previous)
            ),
            available_slots=slots_available,
            empty_slots=empty_slots,
            average_ticket=average_ticket,
            fact_count=total,
        )
