"""Entry point orchestration for the Copilot metrics report."""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Optional, Union

from .aggregator import aggregate
from .cli import parse_args
from .config import Config, load_config
from .errors import ApiError, AuthenticationError, ConfigurationError
from .github_client import GitHubClient
from .models import Scope
from .pipeline import MetricsOutcome, SeatsOutcome, process_metrics_payload, process_seats_feed
from .seats import analyze
from .stats import generate_report

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_UNEXPECTED_ERROR = 1
EXIT_CONFIGURATION_ERROR = 2
EXIT_AUTHENTICATION_ERROR = 3
EXIT_API_ERROR = 4
EXIT_PROVIDER_DATA_ERROR = 5
EXIT_INTERNAL_CONVERSION_ERROR = 6

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def load_fixture(path: str) -> Any:
    """Load a mock-data JSON fixture used in place of a live API response.

    Raises:
        ConfigurationError: If the file cannot be read or is not valid JSON.
    """
    try:
        with open(path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except OSError as exc:
        raise ConfigurationError(f"Cannot read mock data file '{path}': {exc}") from exc
    except ValueError as exc:
        raise ConfigurationError(f"Mock data file '{path}' is not valid JSON.") from exc


def _rejection_exit_code(outcome: Union[MetricsOutcome, SeatsOutcome]) -> int:
    if outcome.is_internal_error:
        return EXIT_INTERNAL_CONVERSION_ERROR
    return EXIT_PROVIDER_DATA_ERROR


def _seats_outcome(config: Config, client: GitHubClient, as_of: datetime) -> SeatsOutcome:
    """Fetch and analyze seats; team scope keeps only the team's own seats."""
    if config.mock_seats_path:
        raw_seats = load_fixture(config.mock_seats_path)
    else:
        raw_seats = client.fetch_seats()

    outcome = process_seats_feed(raw_seats, config.inactivity_threshold_days, as_of)
    if outcome.ok and config.scope is Scope.TEAM:
        team_seats = [seat for seat in outcome.seats if seat.assigned_team == config.team]
        return replace(
            outcome,
            summary=analyze(team_seats, config.inactivity_threshold_days, as_of),
        )
    return outcome


def orchestrate_metrics_report(as_of: Optional[datetime] = None) -> int:
    """Run the report flow and map failures to process exit codes.

    Args:
        as_of: Reference instant for seat inactivity; defaults to now (UTC).

    Returns:
        ``0`` on success, otherwise one of the ``EXIT_*`` codes.
    """
    try:
        args = parse_args()
        logging.basicConfig(level=getattr(logging, args.log_level), format=_LOG_FORMAT)

        config = load_config(
            scope=args.scope,
            enterprise=args.enterprise,
            organization=args.org,
            team=args.team,
            dimension=args.dimension,
            inactivity_threshold_days=args.inactive_days,
            since=args.since,
            until=args.until,
            mock_metrics_path=args.mock_metrics,
            mock_seats_path=args.mock_seats,
            include_seats=not args.skip_seats,
        )

        client = GitHubClient(config=config)

        if config.mock_metrics_path:
            print(f"Using mock metrics from '{config.mock_metrics_path}'...")
            raw_metrics = load_fixture(config.mock_metrics_path)
        else:
            print(f"Fetching Copilot metrics for {config.title}...")
            raw_metrics = client.fetch_metrics(since=config.since, until=config.until)

        outcome = process_metrics_payload(raw_metrics, config.scope)
        if not outcome.ok:
            print(outcome.user_message(), file=sys.stderr)
            return _rejection_exit_code(outcome)

        breakdown = aggregate(outcome.records, config.dimension, config.date_range)

        exit_code = EXIT_SUCCESS
        seat_summary = None
        if config.include_seats:
            reference = as_of or datetime.now(timezone.utc)
            seats_outcome = _seats_outcome(config, client, reference)
            if seats_outcome.ok:
                seat_summary = seats_outcome.summary
            else:
                print(f"Seats: {seats_outcome.user_message()}", file=sys.stderr)
                exit_code = _rejection_exit_code(seats_outcome)

        # The metrics report is still printed when only the seat feed was rejected.
        print(generate_report(config.title, breakdown, seat_summary))
        return exit_code
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIGURATION_ERROR
    except AuthenticationError as exc:
        print(f"Authentication error: {exc}", file=sys.stderr)
        return EXIT_AUTHENTICATION_ERROR
    except ApiError as exc:
        print(f"GitHub API error: {exc}", file=sys.stderr)
        return EXIT_API_ERROR
    except Exception:
        logger.exception("Unexpected error while generating the metrics report")
        return EXIT_UNEXPECTED_ERROR


def main() -> int:
    """Console-script entry point."""
    return orchestrate_metrics_report()


if __name__ == "__main__":
    raise SystemExit(main())
