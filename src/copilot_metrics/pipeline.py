"""Request-level entry points that return outcomes instead of raising.

The calling layer receives an explicit status for every request: provider
data problems are user-visible, conversion failures are internal errors.
Within one request the stages run strictly in order; nothing here holds
state between calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional, Tuple, Union, cast

from .errors import ConversionError
from .models import (
    CanonicalMetricsRecord,
    Scope,
    SchemaRevision,
    SeatRecord,
    SeatUtilizationSummary,
    Violation,
)
from .normalizer import normalize
from .seats import analyze, parse_seat_records
from .validator import validate, validate_seats

logger = logging.getLogger(__name__)


class OutcomeStatus(str, Enum):
    """Result category of processing one payload."""

    OK = "ok"
    SCHEMA_VIOLATION = "schema_violation"
    UNRECOGNIZED_SCHEMA = "unrecognized_schema"
    CONVERSION_ERROR = "conversion_error"


@dataclass(frozen=True)
class MetricsOutcome:
    """Outcome of validating and normalizing one metrics payload."""

    status: OutcomeStatus
    shape: Optional[SchemaRevision] = None
    records: Tuple[CanonicalMetricsRecord, ...] = ()
    violations: Tuple[Violation, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @property
    def is_internal_error(self) -> bool:
        return self.status is OutcomeStatus.CONVERSION_ERROR

    def user_message(self) -> str:
        """Describe the outcome without exposing raw payload contents."""
        return _user_message(self.status, self.violations)


@dataclass(frozen=True)
class SeatsOutcome:
    """Outcome of validating, converting and analyzing one seat feed."""

    status: OutcomeStatus
    seats: Tuple[SeatRecord, ...] = ()
    summary: Optional[SeatUtilizationSummary] = None
    violations: Tuple[Violation, ...] = ()
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @property
    def is_internal_error(self) -> bool:
        return self.status is OutcomeStatus.CONVERSION_ERROR

    def user_message(self) -> str:
        """Describe the outcome without exposing raw payload contents."""
        return _user_message(self.status, self.violations)


def _user_message(status: OutcomeStatus, violations: Tuple[Violation, ...]) -> str:
    if status is OutcomeStatus.OK:
        return "OK"
    if status is OutcomeStatus.UNRECOGNIZED_SCHEMA:
        return (
            "Unexpected data from provider: the response format is not recognized. "
            "The provider API may have changed."
        )
    if status is OutcomeStatus.SCHEMA_VIOLATION:
        paths: List[str] = [violation.path for violation in violations[:5]]
        more = f" (+{len(violations) - 5} more)" if len(violations) > 5 else ""
        return (
            f"Unexpected data from provider: {len(violations)} invalid field(s) at "
            f"{', '.join(paths)}{more}."
        )
    return "Internal error while converting provider data."


def _rejected_status(is_unrecognized: bool) -> OutcomeStatus:
    if is_unrecognized:
        return OutcomeStatus.UNRECOGNIZED_SCHEMA
    return OutcomeStatus.SCHEMA_VIOLATION


def process_metrics_payload(raw_payload: Any, scope: Union[Scope, str]) -> MetricsOutcome:
    """Validate and normalize one metrics payload.

    Normalization runs only when validation succeeds. A ``ConversionError``
    is logged with its full context and returned as ``conversion_error``.
    """
    scope = Scope(scope)
    result = validate(raw_payload, scope)
    if not result.is_valid:
        status = _rejected_status(result.is_unrecognized)
        logger.warning(
            "Rejected metrics payload",
            extra={
                "scope": scope.value,
                "status": status.value,
                "violations": len(result.violations),
            },
        )
        return MetricsOutcome(status=status, shape=result.shape, violations=result.violations)

    try:
        records = normalize(raw_payload, cast(SchemaRevision, result.shape), scope)
    except ConversionError as exc:
        logger.exception(
            "Failed to convert validated metrics payload",
            extra={"scope": scope.value, "context": exc.context},
        )
        return MetricsOutcome(
            status=OutcomeStatus.CONVERSION_ERROR,
            shape=result.shape,
            error=str(exc),
        )

    return MetricsOutcome(status=OutcomeStatus.OK, shape=result.shape, records=tuple(records))


def process_seats_feed(
    raw_feed: Any,
    inactivity_threshold_days: int,
    as_of: Union[date, datetime],
) -> SeatsOutcome:
    """Validate, convert and analyze one seat-assignment feed."""
    result = validate_seats(raw_feed)
    if not result.is_valid:
        status = _rejected_status(result.is_unrecognized)
        logger.warning(
            "Rejected seats feed",
            extra={"status": status.value, "violations": len(result.violations)},
        )
        return SeatsOutcome(status=status, violations=result.violations)

    try:
        seats = parse_seat_records(raw_feed, cast(SchemaRevision, result.shape))
    except ConversionError as exc:
        logger.exception(
            "Failed to convert validated seats feed",
            extra={"context": exc.context},
        )
        return SeatsOutcome(status=OutcomeStatus.CONVERSION_ERROR, error=str(exc))

    summary = analyze(seats, inactivity_threshold_days, as_of)
    return SeatsOutcome(status=OutcomeStatus.OK, seats=tuple(seats), summary=summary)
