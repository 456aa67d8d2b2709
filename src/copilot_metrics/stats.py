"""Statistics and formatting helpers for Copilot metrics reporting.

This module provides utilities for:
- Division-safe acceptance and utilization ratios.
- Computing linear-interpolation percentiles from pre-sorted samples.
- Formatting ratios as percentages.
- Building a human-readable report from a breakdown and a seat summary.
"""

from __future__ import annotations

import math
from typing import List, Optional

from .models import Breakdown, SeatUtilizationSummary


def safe_ratio(numerator: float, denominator: float) -> float:
    """Return ``numerator / denominator``, or ``0.0`` when the denominator is 0."""
    if denominator == 0:
        return 0.0
    return numerator / denominator


def acceptance_rate(acceptances: int, suggestions: int) -> float:
    """Return acceptances per suggestion; ``0.0`` when there are no suggestions."""
    return safe_ratio(acceptances, suggestions)


def calculate_percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """Calculate a percentile using linear interpolation.

    The input sequence is expected to already be sorted in ascending order.
    - Empty input returns ``None``.
    - ``p <= 0`` returns the first value.
    - ``p >= 100`` returns the last value.
    - Otherwise, percentile is linearly interpolated between adjacent ranks.

    Args:
        sorted_values: Sorted numeric samples.
        p: Percentile in the inclusive range ``[0, 100]``.

    Returns:
        Percentile value as ``float`` or ``None`` when input is empty.

    Raises:
        ValueError: If ``p`` is outside ``[0, 100]``.
    """
    if not 0 <= p <= 100:
        raise ValueError("Percentile 'p' must be in the range [0, 100].")

    if not sorted_values:
        return None

    if p <= 0:
        return sorted_values[0]

    if p >= 100:
        return sorted_values[-1]

    position = (len(sorted_values) - 1) * (p / 100.0)
    lower_index = math.floor(position)
    upper_index = math.ceil(position)

    if lower_index == upper_index:
        return sorted_values[int(position)]

    lower_value = sorted_values[lower_index]
    upper_value = sorted_values[upper_index]
    return lower_value + (upper_value - lower_value) * (position - lower_index)


def format_rate(rate: Optional[float]) -> str:
    """Format a ratio in ``[0, 1]`` as a percentage with one decimal."""
    if rate is None:
        return "n/a"
    return f"{rate * 100:.1f}%"


def format_days(days: Optional[float]) -> str:
    """Format a day count with one decimal, or ``"n/a"`` when missing."""
    if days is None:
        return "n/a"
    return f"{days:.1f}d"


def generate_report(
    title: str,
    breakdown: Breakdown,
    seat_summary: Optional[SeatUtilizationSummary] = None,
) -> str:
    """Generate a human-readable Copilot usage report.

    The report includes the window totals, one line per breakdown key and,
    when supplied, the seat utilization section.

    Args:
        title: Report heading, typically the scope and slug.
        breakdown: Aggregated breakdown for the selected dimension.
        seat_summary: Optional seat utilization summary.

    Returns:
        Formatted multi-line text report.
    """
    summary = breakdown.summary
    window = "n/a"
    if summary.start is not None and summary.end is not None:
        window = f"{summary.start.isoformat()} .. {summary.end.isoformat()}"

    lines = [
        f"Copilot Usage: {title}",
        f"Window: {window} ({summary.days} days)",
        "",
        "1) Completions",
        f"   Suggestions: {summary.total_suggestions}",
        f"   Acceptances: {summary.total_acceptances}",
        f"   Acceptance rate: {format_rate(summary.acceptance_rate)}",
        f"   Peak daily active users: {summary.active_users}",
        "",
        f"2) Breakdown by {breakdown.dimension.value}",
    ]

    if breakdown.is_empty:
        lines.append("   (no data)")
    for entry in breakdown.entries:
        lines.append(
            f"   {entry.key}: {entry.suggestions} suggested / {entry.acceptances} accepted"
            f" ({format_rate(entry.acceptance_rate)})"
        )

    if seat_summary is not None:
        lines.extend(
            [
                "",
                f"3) Seats (inactive after {seat_summary.inactivity_threshold_days} days, "
                f"as of {seat_summary.as_of.date().isoformat()})",
                f"   Total: {seat_summary.total_seats}",
                f"   Active: {seat_summary.active_count}",
                f"   Inactive: {seat_summary.inactive_count}",
                f"   Never used: {len(seat_summary.never_used_logins)}",
                f"   Pending cancellation: {len(seat_summary.pending_cancellation_logins)}",
                f"   Utilization: {format_rate(seat_summary.utilization_ratio)}",
                f"   Idle P50: {format_days(seat_summary.idle_days_p50)}",
                f"   Idle P90: {format_days(seat_summary.idle_days_p90)}",
            ]
        )

    return "\n".join(lines)
