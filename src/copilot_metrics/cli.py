"""Command-line argument parsing for the Copilot metrics report."""

from __future__ import annotations

import argparse
from datetime import date
from typing import Optional, Sequence

from .config import DEFAULT_INACTIVITY_THRESHOLD_DAYS
from .models import Dimension, Scope


def _positive_int(value: str) -> int:
    """Parse and validate a positive integer CLI value.

    Raises:
        argparse.ArgumentTypeError: If value is not a positive integer.
    """
    try:
        parsed = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be an integer") from exc

    if parsed <= 0:
        raise argparse.ArgumentTypeError("must be greater than 0")

    return parsed


def _calendar_date(value: str) -> date:
    """Parse a ``YYYY-MM-DD`` CLI value."""
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError("must be a date in YYYY-MM-DD format") from exc


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments for the metrics report.

    Returns:
        Parsed CLI arguments describing the scope, reporting window, breakdown
        dimension, seat inactivity threshold and optional mock data files.
    """
    parser = argparse.ArgumentParser(
        prog="copilot-metrics-report",
        description=(
            "Validate, normalize and summarize GitHub Copilot usage metrics "
            "(acceptance breakdowns and seat utilization)."
        ),
    )

    parser.add_argument(
        "--scope",
        choices=[scope.value for scope in Scope],
        default=Scope.ORGANIZATION.value,
        help="Metrics scope (default: organization).",
    )
    parser.add_argument("--enterprise", help="Enterprise slug (enterprise scope).")
    parser.add_argument("--org", help="Organization login (organization and team scopes).")
    parser.add_argument("--team", help="Team slug (team scope).")
    parser.add_argument(
        "--since",
        type=_calendar_date,
        default=None,
        help="Inclusive start date of the reporting window (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--until",
        type=_calendar_date,
        default=None,
        help="Inclusive end date of the reporting window (YYYY-MM-DD).",
    )
    parser.add_argument(
        "--dimension",
        choices=[dimension.value for dimension in Dimension],
        default=Dimension.LANGUAGE.value,
        help="Breakdown dimension to report (default: language).",
    )
    parser.add_argument(
        "--inactive-days",
        type=_positive_int,
        default=DEFAULT_INACTIVITY_THRESHOLD_DAYS,
        help=(
            "Days without activity before a seat counts as inactive "
            f"(default: {DEFAULT_INACTIVITY_THRESHOLD_DAYS})."
        ),
    )
    parser.add_argument(
        "--mock-metrics",
        default=None,
        help="JSON fixture used instead of the live metrics endpoint.",
    )
    parser.add_argument(
        "--mock-seats",
        default=None,
        help="JSON fixture used instead of the live seats endpoint.",
    )
    parser.add_argument(
        "--skip-seats",
        action="store_true",
        help="Do not fetch or analyze seat assignments.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity (default: WARNING).",
    )

    return parser.parse_args(argv)
