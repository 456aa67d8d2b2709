"""Custom exception types for the Copilot metrics engine."""

from __future__ import annotations

from typing import Any, Dict, Optional


class CopilotMetricsError(Exception):
    """Base exception for all Copilot metrics engine errors."""


class ConfigurationError(CopilotMetricsError):
    """Raised when runtime configuration values are missing or invalid."""


class AuthenticationError(CopilotMetricsError):
    """Raised when GitHub authentication credentials are unavailable or invalid."""


class ApiError(CopilotMetricsError):
    """Raised when a GitHub API request fails or returns an unexpected response."""


class ConversionError(CopilotMetricsError):
    """Raised when a validated payload cannot be mapped to canonical records.

    This signals a mismatch between validator and normalizer coverage, not a
    data-quality problem. ``context`` carries the revision, scope and entry
    position so the failure can be logged in full.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.context: Dict[str, Any] = dict(context or {})
