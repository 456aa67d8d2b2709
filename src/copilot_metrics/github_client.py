"""GitHub REST API client for Copilot metrics and seat retrieval."""

from __future__ import annotations

import logging
import time
from datetime import date
from typing import Any, Dict, List, Optional

import requests

from .config import Config
from .errors import ApiError
from .models import Scope

logger = logging.getLogger(__name__)


class GitHubClient:
    """Small client for the GitHub Copilot metrics and billing APIs.

    Responses are returned as parsed JSON; validation and conversion belong
    to the engine, not to this client.
    """

    _BASE_URL = "https://api.github.com"
    _API_VERSION = "2022-11-28"
    _SEATS_PAGE_SIZE = 100
    _MAX_RETRIES = 5
    _MAX_BACKOFF_SECONDS = 30

    def __init__(self, config: Config, timeout_seconds: int = 30) -> None:
        """Initialize an authenticated GitHub API client.

        Args:
            config: Validated runtime configuration including scope slugs and token.
            timeout_seconds: Per-request timeout in seconds.
        """
        self._config = config
        self._timeout_seconds = timeout_seconds

        self._session = requests.Session()
        self._session.headers.update(
            {
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {config.token}",
                "X-GitHub-Api-Version": self._API_VERSION,
            }
        )

    def _build_url(self, path: str) -> str:
        """Build a fully qualified API URL from a path below the API root."""
        return f"{self._BASE_URL}/{path.lstrip('/')}"

    def _scope_path(self) -> str:
        """Return the URL prefix of the configured scope."""
        config = self._config
        if config.scope is Scope.ENTERPRISE:
            return f"enterprises/{config.enterprise}"
        if config.scope is Scope.TEAM:
            return f"orgs/{config.organization}/team/{config.team}"
        return f"orgs/{config.organization}"

    def _billing_path(self) -> str:
        """Return the URL prefix that owns seat billing for the configured scope."""
        if self._config.scope is Scope.ENTERPRISE:
            return f"enterprises/{self._config.enterprise}"
        return f"orgs/{self._config.organization}"

    def _extract_backoff_seconds(self, response: requests.Response, attempt: int) -> int:
        """Compute exponential backoff seconds, honoring Retry-After when available."""
        retry_after_header = response.headers.get("Retry-After")
        if retry_after_header:
            try:
                retry_after_seconds = int(retry_after_header)
                return min(self._MAX_BACKOFF_SECONDS, max(1, retry_after_seconds))
            except ValueError:
                pass

        return min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1))

    def _get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Execute a GET request with retry logic for 429/5xx responses.

        Raises:
            ApiError: If the request repeatedly fails, returns HTTP >= 400,
                or does not return valid JSON.
        """
        url = self._build_url(path)
        query = dict(params or {})

        last_error: Optional[Exception] = None

        for attempt in range(1, self._MAX_RETRIES + 1):
            try:
                response = self._session.get(url, params=query, timeout=self._timeout_seconds)
            except requests.RequestException as exc:
                last_error = exc
                if attempt == self._MAX_RETRIES:
                    raise ApiError(f"GitHub request failed after retries: GET {url}") from exc
                time.sleep(min(self._MAX_BACKOFF_SECONDS, 2 ** (attempt - 1)))
                continue

            status_code = response.status_code
            is_retryable = status_code == 429 or 500 <= status_code <= 599

            if is_retryable and attempt < self._MAX_RETRIES:
                logger.info(
                    "Retrying GitHub request",
                    extra={"url": url, "status_code": status_code, "attempt": attempt},
                )
                time.sleep(self._extract_backoff_seconds(response, attempt))
                continue

            if status_code >= 400:
                raise ApiError(
                    "GitHub API request failed: "
                    f"GET {url} returned {status_code} - {response.text}"
                )

            try:
                return response.json()
            except ValueError as exc:
                raise ApiError(f"GitHub API returned invalid JSON: GET {url}") from exc

        raise ApiError(f"GitHub request failed after retries: GET {url}") from last_error

    def fetch_metrics(self, since: Optional[date] = None, until: Optional[date] = None) -> Any:
        """Fetch the raw Copilot metrics payload for the configured scope.

        Time bounds are sent only when provided.
        """
        params: Dict[str, Any] = {}
        if since is not None:
            params["since"] = since.isoformat()
        if until is not None:
            params["until"] = until.isoformat()

        return self._get_json(f"{self._scope_path()}/copilot/metrics", params=params)

    def fetch_seats(self) -> Dict[str, Any]:
        """Fetch every Copilot seat assignment using page-based pagination.

        Pages are requested until a short page is returned or ``total_seats``
        entries have been collected.

        Raises:
            ApiError: If a page does not have the seat-feed object shape.
        """
        seats: List[Any] = []
        total_seats: Optional[int] = None
        page = 1

        while True:
            payload = self._get_json(
                f"{self._billing_path()}/copilot/billing/seats",
                params={"page": page, "per_page": self._SEATS_PAGE_SIZE},
            )
            if not isinstance(payload, dict) or not isinstance(payload.get("seats"), list):
                raise ApiError(
                    "GitHub seats endpoint returned unexpected payload shape: "
                    f"page={page}"
                )

            page_items = payload["seats"]
            seats.extend(page_items)
            if isinstance(payload.get("total_seats"), int):
                total_seats = payload["total_seats"]

            if len(page_items) < self._SEATS_PAGE_SIZE:
                break
            if total_seats is not None and len(seats) >= total_seats:
                break

            page += 1

        return {
            "total_seats": total_seats if total_seats is not None else len(seats),
            "seats": seats,
        }
