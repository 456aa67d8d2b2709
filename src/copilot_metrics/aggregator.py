"""Breakdown aggregation over canonical daily records.

All functions here are pure and deterministic: records are filtered to an
inclusive date window, counts are summed per key, and output ordering never
depends on mapping iteration order.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Union

from .models import (
    Breakdown,
    BreakdownEntry,
    CanonicalMetricsRecord,
    DailyPoint,
    DateRange,
    Dimension,
    DimensionCounts,
    WindowSummary,
)
from .stats import acceptance_rate


def _filter_records(
    records: Sequence[CanonicalMetricsRecord],
    date_range: Optional[DateRange],
) -> List[CanonicalMetricsRecord]:
    window = date_range or DateRange()
    selected = [record for record in records if window.contains(record.date)]
    return sorted(selected, key=lambda record: record.date)


def _summarize(records: List[CanonicalMetricsRecord]) -> WindowSummary:
    if not records:
        return WindowSummary()

    total_suggestions = sum(record.total_suggestions for record in records)
    total_acceptances = sum(record.total_acceptances for record in records)
    return WindowSummary(
        total_suggestions=total_suggestions,
        total_acceptances=total_acceptances,
        acceptance_rate=acceptance_rate(total_acceptances, total_suggestions),
        # Daily active users are not additive across days.
        active_users=max(record.active_users for record in records),
        days=len(records),
        start=records[0].date,
        end=records[-1].date,
    )


def summarize_window(
    records: Sequence[CanonicalMetricsRecord],
    date_range: Optional[DateRange] = None,
) -> WindowSummary:
    """Compute whole-window totals for records inside ``date_range``.

    ``active_users`` is the maximum daily value observed in the window.
    An empty window yields zero totals and an acceptance rate of ``0.0``.
    """
    return _summarize(_filter_records(records, date_range))


def aggregate(
    records: Sequence[CanonicalMetricsRecord],
    dimension: Union[Dimension, str],
    date_range: Optional[DateRange] = None,
) -> Breakdown:
    """Aggregate records into a per-key breakdown for one dimension.

    Entries are sorted by suggestions descending, ties broken by key
    ascending. ``acceptance_rate`` is ``0.0`` for keys with no suggestions.

    Args:
        records: Canonical daily records, in any order.
        dimension: ``language``, ``editor`` or ``model``.
        date_range: Optional inclusive date filter; defaults to all records.

    Raises:
        ValueError: If ``dimension`` is not a known dimension.
    """
    dimension = Dimension(dimension)
    selected = _filter_records(records, date_range)

    totals: Dict[str, DimensionCounts] = {}
    for record in selected:
        for key, counts in record.breakdown_for(dimension).items():
            totals[key] = totals.get(key, DimensionCounts()).plus(counts)

    entries = tuple(
        BreakdownEntry(
            key=key,
            suggestions=counts.suggestions,
            acceptances=counts.acceptances,
            acceptance_rate=acceptance_rate(counts.acceptances, counts.suggestions),
        )
        for key, counts in sorted(totals.items(), key=lambda item: (-item[1].suggestions, item[0]))
    )

    return Breakdown(dimension=dimension, entries=entries, summary=_summarize(selected))


def daily_series(
    records: Sequence[CanonicalMetricsRecord],
    date_range: Optional[DateRange] = None,
) -> List[DailyPoint]:
    """Return one trend point per day in ``date_range``, in date order."""
    return [
        DailyPoint(
            date=record.date,
            suggestions=record.total_suggestions,
            acceptances=record.total_acceptances,
            acceptance_rate=acceptance_rate(record.total_acceptances, record.total_suggestions),
            active_users=record.active_users,
        )
        for record in _filter_records(records, date_range)
    ]
