"""Domain models for Copilot metrics processing.

These dataclasses are the canonical representation every engine component
operates on. Provider payload shapes never leak past the normalizer; once a
record is built it is never mutated, and derived views are new objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Scope(str, Enum):
    """Granularity at which metrics were requested from the provider."""

    ENTERPRISE = "enterprise"
    ORGANIZATION = "organization"
    TEAM = "team"


class SchemaRevision(str, Enum):
    """Known provider payload shapes recognized by the validator."""

    USAGE_LEGACY = "usage_legacy"
    METRICS_NESTED = "metrics_nested"
    SEAT_ASSIGNMENTS = "seat_assignments"


class Dimension(str, Enum):
    """Breakdown dimension selector."""

    LANGUAGE = "language"
    EDITOR = "editor"
    MODEL = "model"


class ViolationKind(str, Enum):
    """Category of a validation problem."""

    FIELD = "field"
    UNRECOGNIZED_SCHEMA = "unrecognized_schema"


@dataclass(frozen=True, slots=True)
class DimensionCounts:
    """Suggestion and acceptance counts for one breakdown key."""

    suggestions: int = 0
    acceptances: int = 0

    def plus(self, other: DimensionCounts) -> DimensionCounts:
        return DimensionCounts(
            suggestions=self.suggestions + other.suggestions,
            acceptances=self.acceptances + other.acceptances,
        )


@dataclass(frozen=True, slots=True)
class CanonicalMetricsRecord:
    """Usage metrics for a single calendar day."""

    date: date
    total_suggestions: int = 0
    total_acceptances: int = 0
    active_users: int = 0
    language_breakdown: Dict[str, DimensionCounts] = field(default_factory=dict)
    editor_breakdown: Dict[str, DimensionCounts] = field(default_factory=dict)
    model_breakdown: Dict[str, DimensionCounts] = field(default_factory=dict)
    total_lines_suggested: int = 0
    total_lines_accepted: int = 0
    engaged_users: int = 0
    total_chat_turns: int = 0
    total_chat_acceptances: int = 0
    active_chat_users: int = 0

    def breakdown_for(self, dimension: Dimension) -> Dict[str, DimensionCounts]:
        """Return the breakdown mapping for ``dimension``."""
        if dimension is Dimension.LANGUAGE:
            return self.language_breakdown
        if dimension is Dimension.EDITOR:
            return self.editor_breakdown
        return self.model_breakdown


@dataclass(frozen=True, slots=True)
class Violation:
    """A single validation problem located by its field path."""

    path: str
    expected: str
    observed: Any = None
    kind: ViolationKind = ViolationKind.FIELD


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating one raw payload.

    ``shape`` is the recognized schema revision, or ``None`` when the payload
    matched no known revision.
    """

    shape: Optional[SchemaRevision]
    payload: Any
    violations: Tuple[Violation, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.shape is not None and not self.violations

    @property
    def is_unrecognized(self) -> bool:
        return any(v.kind is ViolationKind.UNRECOGNIZED_SCHEMA for v in self.violations)


@dataclass(frozen=True, slots=True)
class DateRange:
    """Inclusive calendar-date window; either bound may be open."""

    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(
                f"Invalid date range: start {self.start.isoformat()} is after "
                f"end {self.end.isoformat()}."
            )

    def contains(self, day: date) -> bool:
        if self.start is not None and day < self.start:
            return False
        if self.end is not None and day > self.end:
            return False
        return True


@dataclass(frozen=True, slots=True)
class BreakdownEntry:
    """Aggregated counts for one key of a breakdown dimension."""

    key: str
    suggestions: int
    acceptances: int
    acceptance_rate: float


@dataclass(frozen=True, slots=True)
class WindowSummary:
    """Totals across every record in an aggregation window."""

    total_suggestions: int = 0
    total_acceptances: int = 0
    acceptance_rate: float = 0.0
    active_users: int = 0
    days: int = 0
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True, slots=True)
class Breakdown:
    """Ordered per-key view of one dimension over a window."""

    dimension: Dimension
    entries: Tuple[BreakdownEntry, ...] = ()
    summary: WindowSummary = field(default_factory=WindowSummary)

    @property
    def is_empty(self) -> bool:
        return not self.entries


@dataclass(frozen=True, slots=True)
class DailyPoint:
    """One day of the acceptance trend series."""

    date: date
    suggestions: int
    acceptances: int
    acceptance_rate: float
    active_users: int


@dataclass(frozen=True, slots=True)
class SeatRecord:
    """A single Copilot seat assignment."""

    login: str
    created_at: datetime
    last_activity_at: Optional[datetime] = None
    assigned_team: Optional[str] = None
    pending_cancellation: bool = False
    last_activity_editor: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SeatUtilizationSummary:
    """Active/inactive seat classification for one reference instant."""

    total_seats: int
    active_logins: Tuple[str, ...]
    inactive_logins: Tuple[str, ...]
    never_used_logins: Tuple[str, ...]
    pending_cancellation_logins: Tuple[str, ...]
    utilization_ratio: float
    inactivity_threshold_days: int
    as_of: datetime
    idle_days_p50: Optional[float] = None
    idle_days_p90: Optional[float] = None

    @property
    def active_count(self) -> int:
        return len(self.active_logins)

    @property
    def inactive_count(self) -> int:
        return len(self.inactive_logins)
