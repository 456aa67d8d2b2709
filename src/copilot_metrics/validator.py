"""Schema validation for raw Copilot metrics and seat payloads.

The validator classifies an incoming document into one of the known
provider schema revisions and checks it field by field. It never raises on
bad data: every problem is reported as a :class:`Violation` on the returned
:class:`ValidationResult`, so the caller decides how to present it.

Policy:
- Unknown fields are ignored.
- Missing optional fields are not violations; missing required ones are.
- A payload matching no known revision yields a single
  ``unrecognized_schema`` violation instead of a field-by-field dump.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .models import Scope, SchemaRevision, ValidationResult, Violation, ViolationKind

_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}", re.ASCII)
_TIMESTAMP_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(:\d{2}(\.\d{3}|\.\d{6})?)?(Z|[+-]\d{2}:\d{2})?",
    re.ASCII,
)

_LEGACY_DATE_KEY = "day"
_NESTED_DATE_KEY = "date"
_LEGACY_MARKERS = frozenset({"total_suggestions_count", "total_acceptances_count", "breakdown"})
_NESTED_MARKERS = frozenset(
    {
        "total_engaged_users",
        "copilot_ide_code_completions",
        "copilot_ide_chat",
        "copilot_dotcom_chat",
    }
)

_REQUIRED_FIELDS: Dict[Tuple[SchemaRevision, Scope], Tuple[str, ...]] = {
    (SchemaRevision.USAGE_LEGACY, Scope.ENTERPRISE): (
        "day",
        "total_suggestions_count",
        "total_acceptances_count",
    ),
    (SchemaRevision.USAGE_LEGACY, Scope.ORGANIZATION): (
        "day",
        "total_suggestions_count",
        "total_acceptances_count",
    ),
    (SchemaRevision.USAGE_LEGACY, Scope.TEAM): (
        "day",
        "total_suggestions_count",
        "total_acceptances_count",
    ),
    (SchemaRevision.METRICS_NESTED, Scope.ENTERPRISE): ("date", "total_active_users"),
    (SchemaRevision.METRICS_NESTED, Scope.ORGANIZATION): ("date", "total_active_users"),
    # Team responses may omit total_active_users.
    (SchemaRevision.METRICS_NESTED, Scope.TEAM): ("date",),
}

_LEGACY_OPTIONAL_COUNTS = (
    "total_lines_suggested",
    "total_lines_accepted",
    "total_active_users",
    "total_chat_turns",
    "total_chat_acceptances",
    "total_active_chat_users",
)
_LEGACY_ROW_COUNTS = (
    "lines_suggested",
    "lines_accepted",
    "active_users",
)
_NESTED_LANGUAGE_COUNTS = (
    "total_engaged_users",
    "total_code_lines_suggested",
    "total_code_lines_accepted",
)
_NESTED_CHAT_COUNTS = (
    "total_engaged_users",
    "total_chats",
    "total_chat_insertion_events",
    "total_chat_copy_events",
)


def parse_timestamp(value: Any) -> datetime:
    """Parse a provider ISO-8601 timestamp into a timezone-aware datetime.

    Naive values are assumed to be UTC.

    Raises:
        ValueError: If ``value`` is not a string or cannot be parsed.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Expected an ISO-8601 timestamp string, got {value!r}")
    if not _TIMESTAMP_PATTERN.fullmatch(value):
        raise ValueError(f"Expected YYYY-MM-DDTHH:MM[:SS[.ffffff]][zone], got {value!r}")

    normalized = value[:-1] + "+00:00" if value.endswith("Z") else value
    parsed = datetime.fromisoformat(normalized)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_calendar_date(value: Any) -> date:
    """Parse a provider date or timestamp into a calendar date.

    Time of day and zone information are discarded; the date is taken as
    written by the provider.

    Raises:
        ValueError: If ``value`` is not a string or is not a valid date.
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Expected a calendar date string, got {value!r}")

    if _DATE_PATTERN.fullmatch(value):
        return date.fromisoformat(value)
    return parse_timestamp(value).date()


def as_day_entries(raw_payload: Any) -> Optional[List[Any]]:
    """Return the day entries of a metrics payload, or ``None`` if it has none.

    A bare day object is treated as a one-element array.
    """
    if isinstance(raw_payload, list):
        return raw_payload
    if isinstance(raw_payload, dict):
        return [raw_payload]
    return None


def classify(raw_payload: Any) -> Optional[SchemaRevision]:
    """Identify the schema revision of a metrics payload.

    The revision is decided once for the whole payload. Each entry votes
    by its date key (``day`` or ``date``); entries carrying neither or both
    fall back to the remaining marker keys, and entries that still cannot
    be placed take the revision settled by the others. Returns ``None``
    when entries disagree or nothing settles the revision. An empty array
    is the current (nested) revision.
    """
    entries = as_day_entries(raw_payload)
    if entries is None:
        return None
    if not entries:
        return SchemaRevision.METRICS_NESTED
    if not all(isinstance(entry, dict) for entry in entries):
        return None

    votes = {_classify_entry(entry) for entry in entries}
    votes.discard(None)
    if len(votes) != 1:
        return None
    return votes.pop()


def _classify_entry(entry: Dict[str, Any]) -> Optional[SchemaRevision]:
    keys = set(entry.keys())
    has_day = _LEGACY_DATE_KEY in keys
    has_date = _NESTED_DATE_KEY in keys
    if has_day != has_date:
        return SchemaRevision.USAGE_LEGACY if has_day else SchemaRevision.METRICS_NESTED

    is_legacy = bool(keys & _LEGACY_MARKERS)
    is_nested = bool(keys & _NESTED_MARKERS)
    if is_legacy == is_nested:
        return None
    return SchemaRevision.USAGE_LEGACY if is_legacy else SchemaRevision.METRICS_NESTED


def _describe(value: Any) -> str:
    return type(value).__name__


def _unrecognized(raw_payload: Any, expected: str) -> ValidationResult:
    return ValidationResult(
        shape=None,
        payload=raw_payload,
        violations=(
            Violation(
                path="$",
                expected=expected,
                observed=_describe(raw_payload),
                kind=ViolationKind.UNRECOGNIZED_SCHEMA,
            ),
        ),
    )


class _ViolationCollector:
    """Accumulates field-level violations while walking a payload."""

    def __init__(self) -> None:
        self.violations: List[Violation] = []

    def add(self, path: str, expected: str, observed: Any = None) -> None:
        self.violations.append(Violation(path=path, expected=expected, observed=observed))

    def count(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
        required: bool = False,
    ) -> Optional[int]:
        value = container.get(key)
        field_path = f"{path}.{key}"
        if value is None:
            if required:
                self.add(field_path, "non-negative integer (required)")
            return None
        if isinstance(value, bool) or not isinstance(value, int):
            self.add(field_path, "non-negative integer", value)
            return None
        if value < 0:
            self.add(field_path, "non-negative integer", value)
            return None
        return value

    def calendar_date(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
        required: bool = False,
    ) -> Optional[date]:
        value = container.get(key)
        field_path = f"{path}.{key}"
        if value is None:
            if required:
                self.add(field_path, "calendar date (required)")
            return None
        try:
            return parse_calendar_date(value)
        except ValueError:
            self.add(field_path, "calendar date (YYYY-MM-DD)", value)
            return None

    def timestamp(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
        required: bool = False,
    ) -> Optional[datetime]:
        value = container.get(key)
        field_path = f"{path}.{key}"
        if value is None:
            if required:
                self.add(field_path, "ISO-8601 timestamp (required)")
            return None
        try:
            return parse_timestamp(value)
        except ValueError:
            self.add(field_path, "ISO-8601 timestamp", value)
            return None

    def string(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
        required: bool = False,
    ) -> Optional[str]:
        value = container.get(key)
        field_path = f"{path}.{key}"
        if value is None:
            if required:
                self.add(field_path, "non-empty string (required)")
            return None
        if not isinstance(value, str) or not value.strip():
            self.add(field_path, "non-empty string", value)
            return None
        return value

    def obj(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
        required: bool = False,
    ) -> Optional[Dict[str, Any]]:
        value = container.get(key)
        field_path = f"{path}.{key}"
        if value is None:
            if required:
                self.add(field_path, "object (required)")
            return None
        if not isinstance(value, dict):
            self.add(field_path, "object", _describe(value))
            return None
        return value

    def array(self, container: Dict[str, Any], key: str, path: str) -> List[Any]:
        value = container.get(key)
        if value is None:
            return []
        if not isinstance(value, list):
            self.add(f"{path}.{key}", "array", _describe(value))
            return []
        return value

    def not_exceeding(
        self,
        acceptances: Optional[int],
        suggestions: Optional[int],
        path: str,
        constraint: str,
    ) -> None:
        if acceptances is None:
            return
        if acceptances > (suggestions or 0):
            self.add(path, constraint, acceptances)

    def named_rows(
        self,
        container: Dict[str, Any],
        key: str,
        path: str,
    ) -> Iterator[Tuple[Dict[str, Any], str]]:
        """Yield ``(row, row_path)`` for well-formed rows with unique ``name``."""
        seen: set = set()
        for index, row in enumerate(self.array(container, key, path)):
            row_path = f"{path}.{key}[{index}]"
            if not isinstance(row, dict):
                self.add(row_path, "object", _describe(row))
                continue
            name = self.string(row, "name", row_path, required=True)
            if name is None:
                continue
            if name in seen:
                self.add(f"{row_path}.name", f"unique name within {key}", name)
                continue
            seen.add(name)
            yield row, row_path


def validate(raw_payload: Any, scope: Scope) -> ValidationResult:
    """Validate a raw metrics payload for the declared scope.

    Args:
        raw_payload: Parsed JSON document as received from the provider.
        scope: Scope the payload was requested at.

    Returns:
        ``ValidationResult`` carrying the recognized revision and no
        violations on success; otherwise the list of violations. When no
        revision matches, ``shape`` is ``None`` and a single
        ``unrecognized_schema`` violation is reported.
    """
    scope = Scope(scope)
    revision = classify(raw_payload)
    if revision is None:
        return _unrecognized(
            raw_payload,
            f"one of {SchemaRevision.USAGE_LEGACY.value}, "
            f"{SchemaRevision.METRICS_NESTED.value} for scope {scope.value}",
        )

    entries = as_day_entries(raw_payload) or []
    required = _REQUIRED_FIELDS[(revision, scope)]
    collector = _ViolationCollector()

    for index, entry in enumerate(entries):
        path = f"[{index}]"
        if revision is SchemaRevision.USAGE_LEGACY:
            _validate_legacy_entry(entry, path, required, collector)
        else:
            _validate_nested_entry(entry, path, required, collector)

    return ValidationResult(
        shape=revision,
        payload=raw_payload,
        violations=tuple(collector.violations),
    )


def _validate_legacy_entry(
    entry: Dict[str, Any],
    path: str,
    required: Tuple[str, ...],
    collector: _ViolationCollector,
) -> None:
    collector.calendar_date(entry, "day", path, required="day" in required)
    suggestions = collector.count(
        entry, "total_suggestions_count", path, required="total_suggestions_count" in required
    )
    acceptances = collector.count(
        entry, "total_acceptances_count", path, required="total_acceptances_count" in required
    )
    collector.not_exceeding(
        acceptances,
        suggestions,
        f"{path}.total_acceptances_count",
        "<= total_suggestions_count",
    )
    for key in _LEGACY_OPTIONAL_COUNTS:
        collector.count(entry, key, path, required=key in required)

    seen_pairs: set = set()
    for index, row in enumerate(collector.array(entry, "breakdown", path)):
        row_path = f"{path}.breakdown[{index}]"
        if not isinstance(row, dict):
            collector.add(row_path, "object", _describe(row))
            continue

        language = collector.string(row, "language", row_path, required=True)
        editor = collector.string(row, "editor", row_path, required=True)
        row_suggestions = collector.count(row, "suggestions_count", row_path)
        row_acceptances = collector.count(row, "acceptances_count", row_path)
        collector.not_exceeding(
            row_acceptances,
            row_suggestions,
            f"{row_path}.acceptances_count",
            "<= suggestions_count",
        )
        for key in _LEGACY_ROW_COUNTS:
            collector.count(row, key, row_path)

        if language is None or editor is None:
            continue
        pair = (language, editor)
        if pair in seen_pairs:
            collector.add(row_path, "unique (language, editor) pair", f"{language}/{editor}")
        seen_pairs.add(pair)


def _validate_nested_entry(
    entry: Dict[str, Any],
    path: str,
    required: Tuple[str, ...],
    collector: _ViolationCollector,
) -> None:
    collector.calendar_date(entry, "date", path, required="date" in required)
    collector.count(entry, "total_active_users", path, required="total_active_users" in required)
    collector.count(entry, "total_engaged_users", path, required="total_engaged_users" in required)

    completions_path = f"{path}.copilot_ide_code_completions"
    completions = collector.obj(entry, "copilot_ide_code_completions", path)
    if completions is not None:
        collector.count(completions, "total_engaged_users", completions_path)
        for language, language_path in collector.named_rows(
            completions, "languages", completions_path
        ):
            collector.count(language, "total_engaged_users", language_path)

        for editor, editor_path in collector.named_rows(completions, "editors", completions_path):
            collector.count(editor, "total_engaged_users", editor_path)
            for model, model_path in collector.named_rows(editor, "models", editor_path):
                collector.count(model, "total_engaged_users", model_path)
                for language, language_path in collector.named_rows(
                    model, "languages", model_path
                ):
                    suggestions = collector.count(
                        language, "total_code_suggestions", language_path
                    )
                    acceptances = collector.count(
                        language, "total_code_acceptances", language_path
                    )
                    collector.not_exceeding(
                        acceptances,
                        suggestions,
                        f"{language_path}.total_code_acceptances",
                        "<= total_code_suggestions",
                    )
                    for key in _NESTED_LANGUAGE_COUNTS:
                        collector.count(language, key, language_path)

    chat_path = f"{path}.copilot_ide_chat"
    chat = collector.obj(entry, "copilot_ide_chat", path)
    if chat is not None:
        collector.count(chat, "total_engaged_users", chat_path)
        for editor, editor_path in collector.named_rows(chat, "editors", chat_path):
            for model, model_path in collector.named_rows(editor, "models", editor_path):
                for key in _NESTED_CHAT_COUNTS:
                    collector.count(model, key, model_path)

    dotcom_path = f"{path}.copilot_dotcom_chat"
    dotcom = collector.obj(entry, "copilot_dotcom_chat", path)
    if dotcom is not None:
        collector.count(dotcom, "total_engaged_users", dotcom_path)
        for model, model_path in collector.named_rows(dotcom, "models", dotcom_path):
            for key in ("total_engaged_users", "total_chats"):
                collector.count(model, key, model_path)


def seat_entries(raw_feed: Any) -> Optional[List[Any]]:
    """Return the seat objects of a seats feed, or ``None`` for unknown shapes."""
    if isinstance(raw_feed, dict) and "seats" in raw_feed:
        seats = raw_feed["seats"]
        return seats if isinstance(seats, list) else None
    if isinstance(raw_feed, list):
        return raw_feed
    return None


def validate_seats(raw_feed: Any) -> ValidationResult:
    """Validate a Copilot seat-assignment feed.

    Accepts ``{"total_seats": n, "seats": [...]}`` or a bare array of seat
    objects. Each seat needs ``assignee.login`` and ``created_at``;
    ``last_activity_at`` is optional and may be null for never-used seats.
    """
    seats = seat_entries(raw_feed)
    if seats is None:
        return _unrecognized(raw_feed, SchemaRevision.SEAT_ASSIGNMENTS.value)

    collector = _ViolationCollector()
    if isinstance(raw_feed, dict):
        collector.count(raw_feed, "total_seats", "$")

    seen_logins: set = set()
    for index, seat in enumerate(seats):
        path = f"seats[{index}]"
        if not isinstance(seat, dict):
            collector.add(path, "object", _describe(seat))
            continue

        collector.timestamp(seat, "created_at", path, required=True)
        collector.timestamp(seat, "last_activity_at", path)
        collector.calendar_date(seat, "pending_cancellation_date", path)
        collector.string(seat, "last_activity_editor", path)

        team = collector.obj(seat, "assigning_team", path)
        if team is not None:
            collector.string(team, "slug", f"{path}.assigning_team")

        assignee = collector.obj(seat, "assignee", path, required=True)
        if assignee is None:
            continue
        login = collector.string(assignee, "login", f"{path}.assignee", required=True)
        if login is None:
            continue
        if login in seen_logins:
            collector.add(f"{path}.assignee.login", "unique login", login)
        seen_logins.add(login)

    return ValidationResult(
        shape=SchemaRevision.SEAT_ASSIGNMENTS,
        payload=raw_feed,
        violations=tuple(collector.violations),
    )
