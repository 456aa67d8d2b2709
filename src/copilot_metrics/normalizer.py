"""Conversion of validated provider payloads into canonical daily records.

This is the only module that knows more than one provider payload shape
exists. Each schema revision has its own entry mapper; everything after this
module works on :class:`CanonicalMetricsRecord` only.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from typing import Any, Callable, Dict, List, Mapping

from .errors import ConversionError
from .models import CanonicalMetricsRecord, Dimension, DimensionCounts, Scope, SchemaRevision
from .validator import as_day_entries, parse_calendar_date

logger = logging.getLogger(__name__)

_SUMMED_FIELDS = (
    "total_suggestions",
    "total_acceptances",
    "active_users",
    "total_lines_suggested",
    "total_lines_accepted",
    "engaged_users",
    "total_chat_turns",
    "total_chat_acceptances",
    "active_chat_users",
)


def _count(container: Mapping[str, Any], key: str) -> int:
    value = container.get(key)
    return int(value) if value is not None else 0


def _add_counts(
    breakdown: Dict[str, DimensionCounts],
    key: str,
    suggestions: int,
    acceptances: int,
) -> None:
    current = breakdown.get(key, DimensionCounts())
    breakdown[key] = current.plus(DimensionCounts(suggestions=suggestions, acceptances=acceptances))


def _sorted_breakdown(breakdown: Mapping[str, DimensionCounts]) -> Dict[str, DimensionCounts]:
    return {key: breakdown[key] for key in sorted(breakdown)}


def merge_breakdowns(
    left: Mapping[str, DimensionCounts],
    right: Mapping[str, DimensionCounts],
) -> Dict[str, DimensionCounts]:
    """Merge two breakdown mappings by summing counts per key."""
    merged: Dict[str, DimensionCounts] = {}
    for key in sorted(set(left) | set(right)):
        merged[key] = left.get(key, DimensionCounts()).plus(right.get(key, DimensionCounts()))
    return merged


def merge_records(
    left: CanonicalMetricsRecord,
    right: CanonicalMetricsRecord,
) -> CanonicalMetricsRecord:
    """Merge two records for the same calendar date into a new record.

    Counts are summed and breakdown mappings merged per key, so the merge is
    commutative and associative.

    Raises:
        ValueError: If the records belong to different dates.
    """
    if left.date != right.date:
        raise ValueError(
            f"Cannot merge records for different dates: {left.date} and {right.date}"
        )

    summed = {name: getattr(left, name) + getattr(right, name) for name in _SUMMED_FIELDS}
    return replace(
        left,
        language_breakdown=merge_breakdowns(left.language_breakdown, right.language_breakdown),
        editor_breakdown=merge_breakdowns(left.editor_breakdown, right.editor_breakdown),
        model_breakdown=merge_breakdowns(left.model_breakdown, right.model_breakdown),
        **summed,
    )


def _legacy_record(entry: Mapping[str, Any], scope: Scope) -> CanonicalMetricsRecord:
    languages: Dict[str, DimensionCounts] = {}
    editors: Dict[str, DimensionCounts] = {}

    for row in entry.get("breakdown") or []:
        suggestions = _count(row, "suggestions_count")
        acceptances = _count(row, "acceptances_count")
        _add_counts(languages, row["language"], suggestions, acceptances)
        _add_counts(editors, row["editor"], suggestions, acceptances)

    return CanonicalMetricsRecord(
        date=parse_calendar_date(entry["day"]),
        total_suggestions=_count(entry, "total_suggestions_count"),
        total_acceptances=_count(entry, "total_acceptances_count"),
        active_users=_count(entry, "total_active_users"),
        language_breakdown=_sorted_breakdown(languages),
        editor_breakdown=_sorted_breakdown(editors),
        model_breakdown={},
        total_lines_suggested=_count(entry, "total_lines_suggested"),
        total_lines_accepted=_count(entry, "total_lines_accepted"),
        total_chat_turns=_count(entry, "total_chat_turns"),
        total_chat_acceptances=_count(entry, "total_chat_acceptances"),
        active_chat_users=_count(entry, "total_active_chat_users"),
    )


def _nested_record(entry: Mapping[str, Any], scope: Scope) -> CanonicalMetricsRecord:
    languages: Dict[str, DimensionCounts] = {}
    editors: Dict[str, DimensionCounts] = {}
    models: Dict[str, DimensionCounts] = {}
    total_suggestions = 0
    total_acceptances = 0
    lines_suggested = 0
    lines_accepted = 0

    completions = entry.get("copilot_ide_code_completions") or {}
    for editor in completions.get("editors") or []:
        for model in editor.get("models") or []:
            for language in model.get("languages") or []:
                suggestions = _count(language, "total_code_suggestions")
                acceptances = _count(language, "total_code_acceptances")
                total_suggestions += suggestions
                total_acceptances += acceptances
                lines_suggested += _count(language, "total_code_lines_suggested")
                lines_accepted += _count(language, "total_code_lines_accepted")
                _add_counts(languages, language["name"], suggestions, acceptances)
                _add_counts(editors, editor["name"], suggestions, acceptances)
                _add_counts(models, model["name"], suggestions, acceptances)

    chat_turns = 0
    chat_acceptances = 0
    ide_chat = entry.get("copilot_ide_chat") or {}
    for editor in ide_chat.get("editors") or []:
        for model in editor.get("models") or []:
            chat_turns += _count(model, "total_chats")
            chat_acceptances += _count(model, "total_chat_insertion_events")
            chat_acceptances += _count(model, "total_chat_copy_events")

    dotcom_chat = entry.get("copilot_dotcom_chat") or {}
    for model in dotcom_chat.get("models") or []:
        chat_turns += _count(model, "total_chats")

    engaged_users = _count(entry, "total_engaged_users")
    if entry.get("total_active_users") is not None:
        active_users = _count(entry, "total_active_users")
    elif scope is Scope.TEAM:
        active_users = engaged_users
    else:
        raise KeyError("total_active_users")

    return CanonicalMetricsRecord(
        date=parse_calendar_date(entry["date"]),
        total_suggestions=total_suggestions,
        total_acceptances=total_acceptances,
        active_users=active_users,
        language_breakdown=_sorted_breakdown(languages),
        editor_breakdown=_sorted_breakdown(editors),
        model_breakdown=_sorted_breakdown(models),
        total_lines_suggested=lines_suggested,
        total_lines_accepted=lines_accepted,
        engaged_users=engaged_users,
        total_chat_turns=chat_turns,
        total_chat_acceptances=chat_acceptances,
        active_chat_users=_count(ide_chat, "total_engaged_users"),
    )


_ENTRY_MAPPERS: Dict[SchemaRevision, Callable[[Mapping[str, Any], Scope], CanonicalMetricsRecord]] = {
    SchemaRevision.USAGE_LEGACY: _legacy_record,
    SchemaRevision.METRICS_NESTED: _nested_record,
}


def _log_breakdown_anomalies(record: CanonicalMetricsRecord) -> None:
    """Log breakdown dimensions whose suggestion sums exceed the daily total."""
    for dimension in Dimension:
        breakdown = record.breakdown_for(dimension)
        breakdown_suggestions = sum(counts.suggestions for counts in breakdown.values())
        if breakdown_suggestions > record.total_suggestions:
            logger.warning(
                "Breakdown suggestions exceed daily total",
                extra={
                    "date": record.date.isoformat(),
                    "dimension": dimension.value,
                    "breakdown_suggestions": breakdown_suggestions,
                    "total_suggestions": record.total_suggestions,
                },
            )


def normalize(
    raw_payload: Any,
    recognized_shape: SchemaRevision,
    scope: Scope,
) -> List[CanonicalMetricsRecord]:
    """Convert a validated metrics payload into canonical daily records.

    Business logic:
    - Each day entry is mapped by the mapper registered for its revision.
    - Missing optional counts become ``0``; missing dimensions become ``{}``.
    - Entries sharing a calendar date are merged with :func:`merge_records`.
    - Records are returned sorted by date ascending.

    Args:
        raw_payload: Payload that passed :func:`validator.validate`.
        recognized_shape: Revision reported by the validator.
        scope: Scope the payload was requested at.

    Returns:
        One record per distinct calendar date in the payload.

    Raises:
        ConversionError: If the payload cannot be mapped despite validation.
    """
    scope = Scope(scope)
    context: Dict[str, Any] = {
        "revision": getattr(recognized_shape, "value", recognized_shape),
        "scope": scope.value,
    }

    mapper = _ENTRY_MAPPERS.get(recognized_shape)
    if mapper is None:
        raise ConversionError(f"No metrics mapper for schema revision {recognized_shape!r}", context)

    entries = as_day_entries(raw_payload)
    if entries is None:
        raise ConversionError("Metrics payload has no day entries", context)

    by_date: Dict[date, CanonicalMetricsRecord] = {}
    for index, entry in enumerate(entries):
        try:
            record = mapper(entry, scope)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            raise ConversionError(
                f"Cannot map day entry {index} of a validated payload: {exc!r}",
                {**context, "entry_index": index},
            ) from exc

        if record.total_acceptances > record.total_suggestions:
            raise ConversionError(
                "Mapped record has more acceptances than suggestions",
                {**context, "entry_index": index, "date": record.date.isoformat()},
            )

        existing = by_date.get(record.date)
        if existing is None:
            by_date[record.date] = record
            continue

        logger.info(
            "Merging duplicate date entries",
            extra={**context, "date": record.date.isoformat(), "entry_index": index},
        )
        by_date[record.date] = merge_records(existing, record)

    records = [by_date[day] for day in sorted(by_date)]
    for record in records:
        _log_breakdown_anomalies(record)

    logger.debug(
        "Normalized metrics payload",
        extra={**context, "entries": len(entries), "records": len(records)},
    )
    return records
