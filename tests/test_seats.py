"""Tests for seat feed conversion and utilization analysis."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from copilot_metrics.errors import ConversionError
from copilot_metrics.models import SchemaRevision, SeatRecord
from copilot_metrics.seats import analyze, analyze_by_team, parse_seat_records
from copilot_metrics.validator import validate_seats


def _utc(year: int, month: int, day: int, hour: int = 0) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def _seat(
    login: str,
    last_activity: datetime | None,
    team: str | None = None,
    pending: bool = False,
) -> SeatRecord:
    return SeatRecord(
        login=login,
        created_at=_utc(2023, 6, 1),
        last_activity_at=last_activity,
        assigned_team=team,
        pending_cancellation=pending,
    )


def test_analyze_classifies_seats_against_threshold():
    """Verify recent activity is active while stale and never-used seats are inactive."""
    seats = [
        _seat("recent", _utc(2024, 1, 20)),
        _seat("stale", _utc(2024, 1, 1)),
        _seat("never", None),
    ]

    summary = analyze(seats, inactivity_threshold_days=14, as_of=date(2024, 2, 1))

    assert summary.active_logins == ("recent",)
    assert summary.inactive_logins == ("never", "stale")
    assert summary.never_used_logins == ("never",)
    assert summary.total_seats == 3
    assert summary.utilization_ratio == pytest.approx(1 / 3)
    assert summary.as_of == _utc(2024, 2, 1)


def test_analyze_threshold_boundary_is_inclusive():
    """Verify activity exactly at the threshold still counts as active."""
    seats = [_seat("edge", _utc(2024, 1, 18))]

    summary = analyze(seats, inactivity_threshold_days=14, as_of=_utc(2024, 2, 1))

    assert summary.active_count == 1
    assert summary.inactive_count == 0


def test_analyze_zero_seats_returns_zero_utilization():
    """Verify an empty seat list yields a zero ratio and empty lists."""
    summary = analyze([], inactivity_threshold_days=30, as_of=_utc(2024, 2, 1))

    assert summary.total_seats == 0
    assert summary.utilization_ratio == 0.0
    assert summary.active_logins == ()
    assert summary.inactive_logins == ()
    assert summary.idle_days_p50 is None


def test_analyze_flags_pending_cancellation_separately():
    """Verify pending-cancellation seats stay in totals and are listed on their own."""
    seats = [
        _seat("leaving", _utc(2024, 1, 30), pending=True),
        _seat("staying", _utc(2024, 1, 30)),
    ]

    summary = analyze(seats, inactivity_threshold_days=14, as_of=_utc(2024, 2, 1))

    assert summary.total_seats == 2
    assert summary.active_logins == ("leaving", "staying")
    assert summary.pending_cancellation_logins == ("leaving",)
    assert summary.utilization_ratio == 1.0


def test_analyze_idle_day_percentiles_skip_never_used_seats():
    """Verify idle-day percentiles only consider seats with recorded activity."""
    seats = [
        _seat("a", _utc(2024, 1, 20)),
        _seat("b", _utc(2024, 1, 1)),
        _seat("c", None),
    ]

    summary = analyze(seats, inactivity_threshold_days=14, as_of=_utc(2024, 2, 1))

    assert summary.idle_days_p50 == pytest.approx(21.5)
    assert summary.idle_days_p90 == pytest.approx(29.1)


def test_analyze_treats_naive_datetimes_as_utc():
    """Verify naive reference instants are interpreted as UTC."""
    seats = [_seat("recent", _utc(2024, 1, 20))]

    summary = analyze(seats, inactivity_threshold_days=14, as_of=datetime(2024, 2, 1))

    assert summary.active_logins == ("recent",)


def test_analyze_rejects_negative_threshold():
    """Verify a negative inactivity threshold raises ValueError."""
    with pytest.raises(ValueError):
        analyze([], inactivity_threshold_days=-1, as_of=_utc(2024, 2, 1))


def test_analyze_by_team_groups_unassigned_seats():
    """Verify per-team summaries are ordered and unassigned seats are grouped together."""
    seats = [
        _seat("alice", _utc(2024, 1, 30), team="platform"),
        _seat("bob", None, team="platform"),
        _seat("carol", _utc(2024, 1, 30)),
    ]

    by_team = analyze_by_team(seats, inactivity_threshold_days=14, as_of=_utc(2024, 2, 1))

    assert list(by_team) == ["(unassigned)", "platform"]
    assert by_team["platform"].utilization_ratio == pytest.approx(0.5)
    assert by_team["(unassigned)"].active_logins == ("carol",)


def test_parse_seat_records_maps_feed_fields():
    """Verify seat feed entries map login, timestamps, team and cancellation flag."""
    feed = {
        "total_seats": 2,
        "seats": [
            {
                "created_at": "2021-08-03T18:00:00-06:00",
                "pending_cancellation_date": None,
                "last_activity_at": "2021-10-14T00:53:32-06:00",
                "last_activity_editor": "vscode/1.77.3/copilot/1.86.82",
                "assignee": {"login": "octocat", "id": 1},
                "assigning_team": {"name": "Justice League", "slug": "justice-league"},
            },
            {
                "created_at": "2021-09-23T18:00:00-06:00",
                "pending_cancellation_date": "2021-11-01",
                "last_activity_at": None,
                "assignee": {"login": "octokitten", "id": 2},
            },
        ],
    }

    seats = parse_seat_records(feed, SchemaRevision.SEAT_ASSIGNMENTS)

    assert [seat.login for seat in seats] == ["octocat", "octokitten"]
    assert seats[0].assigned_team == "justice-league"
    assert seats[0].last_activity_at.isoformat() == "2021-10-14T00:53:32-06:00"
    assert seats[0].last_activity_editor == "vscode/1.77.3/copilot/1.86.82"
    assert seats[0].pending_cancellation is False
    assert seats[1].last_activity_at is None
    assert seats[1].assigned_team is None
    assert seats[1].pending_cancellation is True


def test_parse_seat_records_rejects_metrics_revision():
    """Verify converting with a non-seat revision raises ConversionError."""
    with pytest.raises(ConversionError):
        parse_seat_records({"seats": []}, SchemaRevision.METRICS_NESTED)


def test_parse_seat_records_missing_assignee_raises_conversion_error():
    """Verify unvalidated malformed seats surface as ConversionError with the entry index."""
    feed = {"seats": [{"created_at": "2021-08-03T18:00:00Z"}]}

    with pytest.raises(ConversionError) as exc_info:
        parse_seat_records(feed, SchemaRevision.SEAT_ASSIGNMENTS)

    assert exc_info.value.context["entry_index"] == 0


def test_team_without_slug_is_grouped_as_unassigned():
    """Verify a validated seat whose team has only a non-string name is treated as unassigned."""
    feed = {
        "total_seats": 2,
        "seats": [
            {
                "created_at": "2023-06-01T00:00:00Z",
                "last_activity_at": "2024-01-25T10:00:00Z",
                "assignee": {"login": "octocat"},
                "assigning_team": {"name": 5},
            },
            {
                "created_at": "2023-06-01T00:00:00Z",
                "last_activity_at": "2024-01-25T10:00:00Z",
                "assignee": {"login": "hubot"},
                "assigning_team": {"slug": "platform", "name": "Platform"},
            },
        ],
    }

    result = validate_seats(feed)
    seats = parse_seat_records(feed, result.shape)
    by_team = analyze_by_team(seats, 14, _utc(2024, 2, 1))

    assert result.is_valid
    assert [seat.assigned_team for seat in seats] == [None, "platform"]
    assert list(by_team) == ["(unassigned)", "platform"]


def test_validate_seats_rejects_non_string_team_slug():
    """Verify a team slug that is not a string is reported at its path."""
    feed = {
        "seats": [
            {
                "created_at": "2023-06-01T00:00:00Z",
                "assignee": {"login": "octocat"},
                "assigning_team": {"slug": 5},
            }
        ]
    }

    result = validate_seats(feed)

    assert [violation.path for violation in result.violations] == [
        "seats[0].assigning_team.slug"
    ]
