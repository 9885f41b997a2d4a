"""GraphQL transport for the GitHub API.

Handles authentication, endpoint selection and rate-limit retries. Query
construction lives in :mod:`pmu_cli.api.gateway`.
"""

from __future__ import annotations

import os
import time
from typing import Any, Callable, Mapping, Optional, Sequence

import httpx
from rich.console import Console

from pmu_cli.api.errors import (
    AuthenticationError,
    GatewayError,
    NotFoundError,
    RateLimitedError,
    is_not_found_message,
    is_rate_limit_message,
)
from pmu_cli.core.git_ops import run_command

DEFAULT_HOST = "github.com"
DEFAULT_TIMEOUT = 30.0

# Exponential backoff between rate-limited attempts
DEFAULT_RETRY_DELAYS: tuple[float, ...] = (1.0, 2.0, 4.0, 8.0)
DEFAULT_MAX_RETRIES = 3


def graphql_endpoint(host: str = DEFAULT_HOST) -> str:
    """Return the GraphQL endpoint for github.com or a GitHub Enterprise host."""
    if not host or host == DEFAULT_HOST:
        return "https://api.github.com/graphql"
    return f"https://{host}/api/graphql"


def resolve_auth_token(env: Optional[Mapping[str, str]] = None) -> str:
    """Find a GitHub token.

    Checks ``GH_TOKEN`` then ``GITHUB_TOKEN``, then asks the ``gh`` CLI.

    Raises:
        AuthenticationError: If no token can be found
    """
    environ = os.environ if env is None else env
    for name in ("GH_TOKEN", "GITHUB_TOKEN"):
        token = environ.get(name, "").strip()
        if token:
            return token

    try:
        code, stdout, _ = run_command(["gh", "auth", "token"])
    except FileNotFoundError:
        code, stdout = 1, ""
    if code == 0 and stdout:
        return stdout

    raise AuthenticationError(
        "authenticate",
        "no GitHub token found - set GH_TOKEN or run 'gh auth login' first",
    )


def resolve_timeout(env: Optional[Mapping[str, str]] = None) -> float:
    """Return the HTTP timeout in seconds (``GH_PMU_TIMEOUT`` overrides the default)."""
    environ = os.environ if env is None else env
    raw = environ.get("GH_PMU_TIMEOUT", "").strip()
    if not raw:
        return DEFAULT_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_TIMEOUT
    return value if value > 0 else DEFAULT_TIMEOUT


class GraphQLClient:
    """Thin synchronous GraphQL client over ``httpx``.

    Only rate-limit failures are retried; every other failure is raised
    immediately as a :class:`GatewayError` subclass.
    """

    def __init__(
        self,
        token: str,
        *,
        host: str = DEFAULT_HOST,
        timeout: float = DEFAULT_TIMEOUT,
        retry_delays: Sequence[float] = DEFAULT_RETRY_DELAYS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
        console: Optional[Console] = None,
    ) -> None:
        self.endpoint = graphql_endpoint(host)
        self.retry_delays = tuple(retry_delays) or DEFAULT_RETRY_DELAYS
        self.max_retries = max_retries
        self._sleep = sleep
        self._console = console if console is not None else Console(stderr=True)
        self._http = httpx.Client(
            headers={
                "Authorization": f"Bearer {token}",
                "Content-Type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "GraphQLClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def execute(
        self,
        operation: str,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Run a query or mutation and return its ``data`` payload.

        Args:
            operation: Action name used in error messages ("get project")
            query: GraphQL document
            variables: Query variables

        Raises:
            GatewayError: On transport, HTTP or GraphQL errors
        """
        attempt = 0
        while True:
            try:
                return self._execute_once(operation, query, variables)
            except RateLimitedError as exc:
                if attempt >= self.max_retries:
                    raise
                delay = exc.retry_after or self.retry_delays[min(attempt, len(self.retry_delays) - 1)]
                self._console.print(f"[yellow]Warning:[/yellow] rate limited, retrying in {delay:g}s...")
                self._sleep(delay)
                attempt += 1

    def _execute_once(
        self,
        operation: str,
        query: str,
        variables: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        payload = {"query": query, "variables": variables or {}}
        try:
            response = self._http.post(self.endpoint, json=payload)
        except httpx.HTTPError as exc:
            raise GatewayError(operation, f"network error: {exc}") from exc

        if response.status_code == 401:
            raise AuthenticationError(operation, "authentication failed - check your GitHub token")

        if response.status_code in (403, 429):
            text = response.text
            if response.status_code == 429 or is_rate_limit_message(text):
                raise RateLimitedError(
                    operation,
                    "API rate limit exceeded",
                    retry_after=_retry_after_seconds(response),
                )
            raise GatewayError(operation, f"access forbidden (HTTP 403): {text.strip()}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GatewayError(operation, f"HTTP {response.status_code}") from exc

        try:
            result = response.json()
        except ValueError as exc:
            raise GatewayError(operation, "invalid JSON response from GraphQL API") from exc

        errors = result.get("errors") or []
        if errors:
            _raise_graphql_errors(operation, errors)

        return result.get("data") or {}


def _retry_after_seconds(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get("retry-after", "")
    try:
        seconds = float(raw)
    except ValueError:
        return None
    return seconds if seconds > 0 else None


def _raise_graphql_errors(operation: str, errors: list[dict[str, Any]]) -> None:
    messages = [str(error.get("message", error)) for error in errors]
    joined = "; ".join(messages)
    types = {str(error.get("type", "")) for error in errors}

    if "RATE_LIMITED" in types or is_rate_limit_message(joined):
        raise RateLimitedError(operation, joined)
    if "NOT_FOUND" in types or is_not_found_message(joined):
        raise NotFoundError(operation, joined)
    raise GatewayError(operation, joined)


__all__ = [
    "DEFAULT_HOST",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_RETRY_DELAYS",
    "DEFAULT_TIMEOUT",
    "GraphQLClient",
    "graphql_endpoint",
    "resolve_auth_token",
    "resolve_timeout",
]
