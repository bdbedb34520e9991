"""
Filter/Window Evaluator: resolves a period plus dimensional filter into the
subset of facts relevant to a dashboard query.

The evaluator is a pure view over the fact collection: it never mutates facts
and preserves their original ordering.

Version: window_eval_v1
"""

from datetime import datetime, time, timedelta, timezone
from typing import Iterable, Optional

import structlog

from controltower.errors import ValidationError
from controltower.models.enums import STATUS_ALIASES, Period
from controltower.models.facts import Fact, FactFilter

logger = structlog.get_logger(__name__)


PERIOD_LOOKBACK_DAYS = {
    Period.LAST_7_DAYS: 7,
    Period.LAST_30_DAYS: 30,
    Period.LAST_90_DAYS: 90,
    Period.LAST_12_MONTHS: 365,
}


def normalize_filter_value(value: Optional[str]) -> Optional[str]:
    """Lowercase and trim a filter value; "all" and blanks mean no filter."""
    if not value:
        return None
    trimmed = value.strip().lower()
    if not trimmed or trimmed == "all":
        return None
    return trimmed


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class FactWindowEvaluator:
    """
    Applies FactFilter specs to fact collections.

    Attributes:
        fallback_lookback_days: Lookback used when a custom period lacks bounds
        strict_custom_period: Reject custom periods without bounds instead

    Example:
        >>> evaluator = FactWindowEvaluator()
        >>> subset = evaluator.apply(facts, FactFilter(period="7d", channel="meta"))
    """

    def __init__(
        self,
        fallback_lookback_days: int = 30,
        strict_custom_period: bool = False,
    ):
        self.fallback_lookback_days = fallback_lookback_days
        self.strict_custom_period = strict_custom_period

    def resolve_window(
        self, filters: FactFilter, now: Optional[datetime] = None
    ) -> tuple[datetime, datetime]:
        """
        Resolve the [start, end] instants of a filter.

        Fixed periods look back a fixed number of days from now. Custom periods
        use date_from at 00:00 and date_to at 23:59:59.999999 (UTC); a missing
        bound falls back to the default lookback or to now.

        Args:
            filters: Period and dimension filter
            now: Reference instant (defaults to current UTC time)

        Returns:
            (start, end) tuple of UTC datetimes

        Raises:
            ValidationError: Custom period without bounds in strict mode
        """
        now = _as_utc(now or datetime.now(timezone.utc))
        default_start = now - timedelta(days=self.fallback_lookback_days)

        if filters.period != Period.CUSTOM:
            lookback = PERIOD_LOOKBACK_DAYS[filters.period]
            return now - timedelta(days=lookback), now

        if self.strict_custom_period and (filters.date_from is None or filters.date_to is None):
            raise ValidationError(
                "Custom period requires both date_from and date_to",
                {"date_from": str(filters.date_from), "date_to": str(filters.date_to)},
            )

        if filters.date_from is None or filters.date_to is None:
            logger.info(
                "custom_period_fallback",
                date_from=str(filters.date_from),
                date_to=str(filters.date_to),
                fallback_lookback_days=self.fallback_lookback_days,
            )

        start = (
            datetime.combine(filters.date_from, time.min, tzinfo=timezone.utc)
            if filters.date_from
            else default_start
        )
        end = (
            datetime.combine(filters.date_to, time.max, tzinfo=timezone.utc)
            if filters.date_to
            else now
        )
        return start, end

    def apply(
        self,
        facts: Iterable[Fact],
        filters: FactFilter,
        now: Optional[datetime] = None,
    ) -> list[Fact]:
        """
        Return the facts matching the filter, in their original order.

        Args:
            facts: Fact collection (already scoped to one tenant)
            filters: Period and dimension filter
            now: Reference instant

        Returns:
            Filtered list of facts
        """
        start, end = self.resolve_window(filters, now)

        channel = normalize_filter_value(filters.channel)
        professional = normalize_filter_value(filters.professional)
        procedure = normalize_filter_value(filters.procedure)
        unit = normalize_filter_value(filters.unit)
        pipeline = normalize_filter_value(filters.pipeline)
        status = normalize_filter_value(filters.status)
        if status is not None:
            status = STATUS_ALIASES.get(status, status)

        selected = []
        for fact in facts:
            if fact.timestamp < start or fact.timestamp > end:
                continue
            if channel and fact.channel.strip().lower() != channel:
                continue
            if professional and fact.professional.strip().lower() != professional:
                continue
            if procedure and fact.procedure.strip().lower() != procedure:
                continue
            if unit and (fact.unit or "").strip().lower() != unit:
                continue
            if pipeline and (fact.pipeline or "").strip().lower() != pipeline:
                continue
            if status and fact.status.value != status:
                continue
            selected.append(fact)

        return selected
