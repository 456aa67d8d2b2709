"""Configuration parsing and validation for the Copilot metrics report."""

from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .errors import AuthenticationError, ConfigurationError
from .models import DateRange, Dimension, Scope

DEFAULT_INACTIVITY_THRESHOLD_DAYS = 30


@dataclass(frozen=True)
class Config:
    """Validated runtime settings used by the metrics report."""

    scope: Scope
    enterprise: Optional[str]
    organization: Optional[str]
    team: Optional[str]
    token: str
    dimension: Dimension = Dimension.LANGUAGE
    inactivity_threshold_days: int = DEFAULT_INACTIVITY_THRESHOLD_DAYS
    since: Optional[date] = None
    until: Optional[date] = None
    mock_metrics_path: Optional[str] = None
    mock_seats_path: Optional[str] = None
    include_seats: bool = True

    @property
    def date_range(self) -> DateRange:
        return DateRange(start=self.since, end=self.until)

    @property
    def title(self) -> str:
        """Human-readable scope label such as ``team my-org/backend``."""
        if self.scope is Scope.ENTERPRISE:
            return f"enterprise {self.enterprise}"
        if self.scope is Scope.TEAM:
            return f"team {self.organization}/{self.team}"
        return f"organization {self.organization}"

    @property
    def uses_live_api(self) -> bool:
        if self.mock_metrics_path is None:
            return True
        return self.include_seats and self.mock_seats_path is None


def load_config(
    scope: str,
    enterprise: Optional[str] = None,
    organization: Optional[str] = None,
    team: Optional[str] = None,
    dimension: str = Dimension.LANGUAGE.value,
    inactivity_threshold_days: int = DEFAULT_INACTIVITY_THRESHOLD_DAYS,
    since: Optional[date] = None,
    until: Optional[date] = None,
    mock_metrics_path: Optional[str] = None,
    mock_seats_path: Optional[str] = None,
    include_seats: bool = True,
) -> Config:
    """Build and validate application configuration.

    Args:
        scope: ``enterprise``, ``organization`` or ``team``.
        enterprise: Enterprise slug, required for the enterprise scope.
        organization: Organization login, required for organization and team scopes.
        team: Team slug, required for the team scope.
        dimension: Breakdown dimension to report.
        inactivity_threshold_days: Days without activity before a seat counts as inactive.
        since: Optional inclusive start date of the reporting window.
        until: Optional inclusive end date of the reporting window.
        mock_metrics_path: Fixture file used instead of the live metrics endpoint.
        mock_seats_path: Fixture file used instead of the live seats endpoint.
        include_seats: Whether to fetch and analyze seat assignments.

    Returns:
        A validated ``Config`` instance.

    Raises:
        ConfigurationError: If a value is invalid or a required slug is missing.
        AuthenticationError: If ``GITHUB_TOKEN`` is not set and live API calls are needed.
    """
    try:
        parsed_scope = Scope(scope)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value for 'scope': expected one of "
            f"{', '.join(item.value for item in Scope)}."
        ) from exc

    try:
        parsed_dimension = Dimension(dimension)
    except ValueError as exc:
        raise ConfigurationError(
            f"Invalid value for 'dimension': expected one of "
            f"{', '.join(item.value for item in Dimension)}."
        ) from exc

    if parsed_scope is Scope.ENTERPRISE and not enterprise:
        raise ConfigurationError("The enterprise scope requires an enterprise slug.")
    if parsed_scope in (Scope.ORGANIZATION, Scope.TEAM) and not organization:
        raise ConfigurationError(f"The {parsed_scope.value} scope requires an organization.")
    if parsed_scope is Scope.TEAM and not team:
        raise ConfigurationError("The team scope requires a team slug.")

    if inactivity_threshold_days <= 0:
        raise ConfigurationError(
            "Invalid value for 'inactivity_threshold_days': expected an integer greater than 0."
        )

    if since is not None and until is not None and since > until:
        raise ConfigurationError("Invalid date window: 'since' is after 'until'.")

    token: str = os.getenv("GITHUB_TOKEN", "").strip()
    config = Config(
        scope=parsed_scope,
        enterprise=enterprise,
        organization=organization,
        team=team,
        token=token,
        dimension=parsed_dimension,
        inactivity_threshold_days=inactivity_threshold_days,
        since=since,
        until=until,
        mock_metrics_path=mock_metrics_path,
        mock_seats_path=mock_seats_path,
        include_seats=include_seats,
    )

    if config.uses_live_api and not token:
        raise AuthenticationError(
            "Missing required GitHub token. "
            "Set the 'GITHUB_TOKEN' environment variable or supply mock data files."
        )

    return config
