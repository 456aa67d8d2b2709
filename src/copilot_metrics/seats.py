"""Seat utilization analysis for Copilot seat assignments.

A seat is active when its last recorded activity falls within the
inactivity threshold of the caller-supplied reference instant. The analyzer
never reads the wall clock, so identical inputs always produce identical
summaries.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Sequence, Union

from .errors import ConversionError
from .models import SchemaRevision, SeatRecord, SeatUtilizationSummary
from .stats import calculate_percentile, safe_ratio
from .validator import parse_timestamp, seat_entries

logger = logging.getLogger(__name__)

UNASSIGNED_TEAM = "(unassigned)"


def _as_utc_datetime(value: Union[date, datetime]) -> datetime:
    """Coerce a date or datetime into a timezone-aware datetime.

    Dates mean midnight UTC; naive datetimes are assumed to be UTC.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)


def parse_seat_records(raw_feed: Any, shape: SchemaRevision) -> List[SeatRecord]:
    """Convert a validated seat feed into ``SeatRecord`` values.

    Raises:
        ConversionError: If the feed cannot be mapped despite validation.
    """
    if shape is not SchemaRevision.SEAT_ASSIGNMENTS:
        raise ConversionError(
            f"Seat feed cannot be converted from schema revision {shape!r}",
            {"revision": getattr(shape, "value", shape)},
        )

    seats = seat_entries(raw_feed)
    if seats is None:
        raise ConversionError(
            "Seat feed has no seat entries",
            {"revision": shape.value},
        )

    records: List[SeatRecord] = []
    for index, seat in enumerate(seats):
        try:
            last_activity = seat.get("last_activity_at")
            team = seat.get("assigning_team") or {}
            records.append(
                SeatRecord(
                    login=str(seat["assignee"]["login"]),
                    created_at=parse_timestamp(seat["created_at"]),
                    last_activity_at=parse_timestamp(last_activity) if last_activity else None,
                    assigned_team=team.get("slug"),
                    pending_cancellation=seat.get("pending_cancellation_date") is not None,
                    last_activity_editor=seat.get("last_activity_editor"),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ConversionError(
                f"Cannot map seat entry {index} of a validated feed: {exc!r}",
                {"revision": shape.value, "entry_index": index},
            ) from exc

    return records


def is_active(seat: SeatRecord, inactivity_threshold_days: int, as_of: datetime) -> bool:
    """Return whether ``seat`` had activity within the threshold of ``as_of``."""
    if seat.last_activity_at is None:
        return False
    elapsed = as_of - _as_utc_datetime(seat.last_activity_at)
    return elapsed <= timedelta(days=inactivity_threshold_days)


def analyze(
    seat_records: Sequence[SeatRecord],
    inactivity_threshold_days: int,
    as_of: Union[date, datetime],
) -> SeatUtilizationSummary:
    """Classify seats as active or inactive and compute utilization.

    Business logic:
    - Active means ``last_activity_at`` is present and no more than
      ``inactivity_threshold_days`` before ``as_of``.
    - Seats that were never used are inactive and also listed separately.
    - Pending-cancellation seats count toward totals and are flagged
      separately.
    - Utilization is ``active / total``, ``0.0`` when there are no seats.

    Raises:
        ValueError: If ``inactivity_threshold_days`` is negative.
    """
    if inactivity_threshold_days < 0:
        raise ValueError("inactivity_threshold_days must be zero or greater.")

    reference = _as_utc_datetime(as_of)
    active: List[str] = []
    inactive: List[str] = []
    never_used: List[str] = []
    pending: List[str] = []
    idle_days: List[float] = []

    for seat in seat_records:
        if seat.pending_cancellation:
            pending.append(seat.login)

        if seat.last_activity_at is None:
            never_used.append(seat.login)
        else:
            elapsed = reference - _as_utc_datetime(seat.last_activity_at)
            idle_days.append(max(0.0, elapsed.total_seconds() / 86400))

        if is_active(seat, inactivity_threshold_days, reference):
            active.append(seat.login)
        else:
            inactive.append(seat.login)

    idle_days.sort()
    total = len(seat_records)

    logger.debug(
        "Analyzed seat utilization",
        extra={
            "total_seats": total,
            "active_seats": len(active),
            "never_used_seats": len(never_used),
            "pending_cancellation_seats": len(pending),
        },
    )

    return SeatUtilizationSummary(
        total_seats=total,
        active_logins=tuple(sorted(active)),
        inactive_logins=tuple(sorted(inactive)),
        never_used_logins=tuple(sorted(never_used)),
        pending_cancellation_logins=tuple(sorted(pending)),
        utilization_ratio=safe_ratio(len(active), total),
        inactivity_threshold_days=inactivity_threshold_days,
        as_of=reference,
        idle_days_p50=calculate_percentile(idle_days, 50),
        idle_days_p90=calculate_percentile(idle_days, 90),
    )


def analyze_by_team(
    seat_records: Sequence[SeatRecord],
    inactivity_threshold_days: int,
    as_of: Union[date, datetime],
) -> Dict[str, SeatUtilizationSummary]:
    """Analyze seats grouped by assigning team, ordered by team name.

    Seats without an assigning team are grouped under ``"(unassigned)"``.
    """
    by_team: Dict[str, List[SeatRecord]] = {}
    for seat in seat_records:
        by_team.setdefault(seat.assigned_team or UNASSIGNED_TEAM, []).append(seat)

    return {
        team: analyze(by_team[team], inactivity_threshold_days, as_of)
        for team in sorted(by_team)
    }
