"""Tests for raw payload schema validation."""

import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from copilot_metrics.models import Scope, SchemaRevision, ViolationKind
from copilot_metrics.validator import (
    classify,
    parse_calendar_date,
    parse_timestamp,
    validate,
    validate_seats,
)


def _legacy_day(day: str = "2024-01-01", suggestions: int = 100, acceptances: int = 40) -> dict:
    return {
        "day": day,
        "total_suggestions_count": suggestions,
        "total_acceptances_count": acceptances,
        "total_lines_suggested": 200,
        "total_lines_accepted": 80,
        "total_active_users": 7,
        "breakdown": [
            {
                "language": "python",
                "editor": "vscode",
                "suggestions_count": 60,
                "acceptances_count": 30,
                "active_users": 5,
            },
            {
                "language": "go",
                "editor": "vscode",
                "suggestions_count": 40,
                "acceptances_count": 10,
                "active_users": 2,
            },
        ],
    }


def _nested_day(day: str = "2024-06-24") -> dict:
    return {
        "date": day,
        "total_active_users": 24,
        "total_engaged_users": 20,
        "copilot_ide_code_completions": {
            "total_engaged_users": 20,
            "languages": [
                {"name": "python", "total_engaged_users": 10},
                {"name": "ruby", "total_engaged_users": 10},
            ],
            "editors": [
                {
                    "name": "vscode",
                    "total_engaged_users": 13,
                    "models": [
                        {
                            "name": "default",
                            "is_custom_model": False,
                            "languages": [
                                {
                                    "name": "python",
                                    "total_code_suggestions": 249,
                                    "total_code_acceptances": 123,
                                },
                                {
                                    "name": "ruby",
                                    "total_code_suggestions": 496,
                                    "total_code_acceptances": 253,
                                },
                            ],
                        }
                    ],
                }
            ],
        },
        "copilot_ide_chat": {
            "total_engaged_users": 13,
            "editors": [
                {
                    "name": "vscode",
                    "models": [{"name": "default", "total_chats": 45}],
                }
            ],
        },
    }


def _seat(login: str, last_activity: str | None = "2024-01-20T10:00:00Z") -> dict:
    return {
        "created_at": "2023-08-03T18:00:00-06:00",
        "last_activity_at": last_activity,
        "pending_cancellation_date": None,
        "assignee": {"login": login, "id": 1},
        "assigning_team": {"slug": "platform", "name": "Platform"},
    }


def test_validate_legacy_payload_is_recognized():
    """Verify a well-formed legacy usage payload validates with its revision tag."""
    payload = [_legacy_day("2024-01-01"), _legacy_day("2024-01-02")]

    result = validate(payload, Scope.ORGANIZATION)

    assert result.is_valid
    assert result.shape is SchemaRevision.USAGE_LEGACY
    assert result.violations == ()
    assert result.payload is payload


def test_validate_nested_payload_is_recognized():
    """Verify a well-formed nested metrics payload validates with its revision tag."""
    result = validate([_nested_day()], Scope.ENTERPRISE)

    assert result.is_valid
    assert result.shape is SchemaRevision.METRICS_NESTED


def test_validate_missing_date_on_one_entry_reports_single_violation():
    """Verify a missing required date yields exactly one violation naming the entry path."""
    second = _legacy_day("2024-01-02")
    del second["day"]

    result = validate([_legacy_day("2024-01-01"), second], Scope.ORGANIZATION)

    assert not result.is_valid
    assert result.shape is SchemaRevision.USAGE_LEGACY
    assert len(result.violations) == 1
    violation = result.violations[0]
    assert violation.path == "[1].day"
    assert violation.kind is ViolationKind.FIELD
    assert violation.observed is None


def test_validate_nested_missing_date_reports_path():
    """Verify nested entries without a date are flagged at the date field."""
    entry = _nested_day()
    del entry["date"]

    result = validate([entry], Scope.ORGANIZATION)

    assert [violation.path for violation in result.violations] == ["[0].date"]


def test_validate_unrecognized_top_level_is_rejected_wholesale():
    """Verify a scalar payload yields a single unrecognized-schema violation."""
    result = validate("not a payload", Scope.ORGANIZATION)

    assert result.shape is None
    assert result.is_unrecognized
    assert len(result.violations) == 1
    assert result.violations[0].kind is ViolationKind.UNRECOGNIZED_SCHEMA
    assert result.violations[0].observed == "str"


def test_validate_mixed_revisions_are_unrecognized():
    """Verify entries of different revisions in one payload are rejected as unrecognized."""
    result = validate([_legacy_day(), _nested_day()], Scope.ORGANIZATION)

    assert result.is_unrecognized
    assert len(result.violations) == 1


def test_validate_entry_without_marker_keys_is_unrecognized():
    """Verify entries matching no revision's marker keys are rejected as unrecognized."""
    result = validate([{"foo": 1, "bar": 2}], Scope.TEAM)

    assert result.is_unrecognized
    assert result.shape is None


def test_validate_negative_and_boolean_counts_are_violations():
    """Verify negative integers and booleans are rejected for count fields."""
    entry = _legacy_day()
    entry["total_lines_suggested"] = -1
    entry["total_active_users"] = True

    result = validate([entry], Scope.ORGANIZATION)

    paths = {violation.path: violation.observed for violation in result.violations}
    assert paths == {
        "[0].total_lines_suggested": -1,
        "[0].total_active_users": True,
    }


def test_validate_invalid_calendar_date_is_violation():
    """Verify impossible calendar dates are reported with the observed value."""
    result = validate([_legacy_day(day="2024-02-30")], Scope.ORGANIZATION)

    assert len(result.violations) == 1
    assert result.violations[0].path == "[0].day"
    assert result.violations[0].observed == "2024-02-30"


def test_validate_acceptances_exceeding_suggestions_is_violation():
    """Verify a day with more acceptances than suggestions is rejected."""
    entry = _legacy_day(suggestions=10, acceptances=20)
    entry["breakdown"] = []

    result = validate([entry], Scope.ORGANIZATION)

    assert [violation.path for violation in result.violations] == [
        "[0].total_acceptances_count"
    ]


def test_validate_duplicate_legacy_breakdown_pair_is_violation():
    """Verify repeated (language, editor) pairs within one day are flagged."""
    entry = _legacy_day()
    entry["breakdown"].append(dict(entry["breakdown"][0]))

    result = validate([entry], Scope.ORGANIZATION)

    assert len(result.violations) == 1
    assert result.violations[0].path == "[0].breakdown[2]"
    assert result.violations[0].observed == "python/vscode"


def test_validate_duplicate_nested_language_is_violation():
    """Verify repeated language names within one model are flagged."""
    entry = _nested_day()
    languages = entry["copilot_ide_code_completions"]["editors"][0]["models"][0]["languages"]
    languages[1]["name"] = "python"

    result = validate([entry], Scope.ORGANIZATION)

    assert [violation.path for violation in result.violations] == [
        "[0].copilot_ide_code_completions.editors[0].models[0].languages[1].name"
    ]


def test_validate_team_scope_allows_missing_active_users():
    """Verify team-scope nested payloads may omit total_active_users while other scopes may not."""
    entry = _nested_day()
    del entry["total_active_users"]

    team_result = validate([entry], Scope.TEAM)
    org_result = validate([entry], Scope.ORGANIZATION)

    assert team_result.is_valid
    assert [violation.path for violation in org_result.violations] == [
        "[0].total_active_users"
    ]


def test_validate_ignores_unknown_fields():
    """Verify extra provider fields do not cause violations."""
    entry = _nested_day()
    entry["copilot_dotcom_pull_requests"] = {"total_engaged_users": 3}
    entry["brand_new_field"] = {"anything": [1, 2, 3]}

    assert validate([entry], Scope.ORGANIZATION).is_valid


def test_validate_empty_array_and_single_object():
    """Verify an empty array is valid and a bare day object is treated as one entry."""
    empty = validate([], Scope.ORGANIZATION)
    single = validate(_legacy_day(), Scope.TEAM)

    assert empty.is_valid
    assert empty.shape is SchemaRevision.METRICS_NESTED
    assert single.is_valid
    assert single.shape is SchemaRevision.USAGE_LEGACY


def test_validate_accepts_string_scope():
    """Verify the scope may be passed as its string value."""
    assert validate([_legacy_day()], "enterprise").is_valid


def test_classify_legacy_entry_with_extra_date_key_stays_legacy():
    """Verify an extra ``date`` field does not override a legacy entry's ``day`` key."""
    entry = _legacy_day()
    entry["date"] = "2024-01-01"

    assert classify([entry]) is SchemaRevision.USAGE_LEGACY


def test_classify_returns_none_for_entries_with_both_date_keys_only():
    """Verify entries carrying both date keys and no other marker are not classified."""
    assert classify([{"day": "2024-01-01", "date": "2024-01-01"}]) is None


def test_validate_nested_entry_with_legacy_named_extra_fields_is_valid():
    """Verify unknown fields named like legacy markers do not make a nested payload unrecognized."""
    entry = {
        "date": "2024-01-01",
        "total_active_users": 3,
        "total_engaged_users": 2,
        "breakdown": [],
    }
    full = _nested_day()
    full["day"] = "2024-06-24"
    full["total_suggestions_count"] = 5

    result = validate([entry, full], Scope.ORGANIZATION)

    assert result.is_valid
    assert result.shape is SchemaRevision.METRICS_NESTED


def test_validate_minimal_nested_entry_missing_date_reports_field_violation():
    """Verify an entry with no marker keys inherits the payload revision and is checked field by field."""
    payload = [
        {"date": "2024-01-01", "total_active_users": 3},
        {"total_active_users": 4},
    ]

    result = validate(payload, Scope.ORGANIZATION)

    assert result.shape is SchemaRevision.METRICS_NESTED
    assert not result.is_unrecognized
    assert [violation.path for violation in result.violations] == ["[1].date"]


def test_validate_non_object_entry_is_unrecognized():
    """Verify entries that are not objects make the payload unrecognized."""
    result = validate([_nested_day(), 42], Scope.ORGANIZATION)

    assert result.is_unrecognized


def test_validate_rejects_compact_and_space_separated_dates():
    """Verify only extended YYYY-MM-DD dates and T-separated timestamps are accepted."""
    compact = validate([_legacy_day(day="20240101")], Scope.ORGANIZATION)
    spaced = validate([_legacy_day(day="2024-01-01 10:00:00")], Scope.ORGANIZATION)

    assert [violation.path for violation in compact.violations] == ["[0].day"]
    assert [violation.path for violation in spaced.violations] == ["[0].day"]


def test_parse_timestamp_rejects_compact_forms():
    """Verify compact ISO-8601 timestamps are rejected regardless of interpreter version."""
    with pytest.raises(ValueError):
        parse_timestamp("20240101T100000Z")
    assert parse_timestamp("2024-01-01T10:00:00.123Z").microsecond == 123000


def test_parse_calendar_date_discards_time_and_zone():
    """Verify timestamps map to the calendar date as written by the provider."""
    assert parse_calendar_date("2024-01-01").isoformat() == "2024-01-01"
    assert parse_calendar_date("2024-01-01T23:30:00-08:00").isoformat() == "2024-01-01"
    assert parse_calendar_date("2024-01-01T00:00:00Z").isoformat() == "2024-01-01"


def test_validate_seats_accepts_feed_object_and_bare_array():
    """Verify seat feeds validate both with and without the paging envelope."""
    feed = {"total_seats": 2, "seats": [_seat("octocat"), _seat("octokitten", None)]}

    wrapped = validate_seats(feed)
    bare = validate_seats(feed["seats"])

    assert wrapped.is_valid
    assert wrapped.shape is SchemaRevision.SEAT_ASSIGNMENTS
    assert bare.is_valid


def test_validate_seats_reports_missing_login_and_duplicates():
    """Verify seats without a login and repeated logins are violations."""
    missing_login = _seat("ignored")
    del missing_login["assignee"]["login"]
    feed = {"seats": [_seat("octocat"), missing_login, _seat("octocat")]}

    result = validate_seats(feed)

    assert [violation.path for violation in result.violations] == [
        "seats[1].assignee.login",
        "seats[2].assignee.login",
    ]


def test_validate_seats_unrecognized_shape():
    """Verify non-feed documents are rejected as unrecognized."""
    result = validate_seats({"value": []})

    assert result.is_unrecognized
    assert result.shape is None
