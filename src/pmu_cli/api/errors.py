"""Gateway error types and classification helpers.

Every failure that crosses the GitHub gateway boundary is raised as a
``GatewayError`` carrying the operation that failed, so callers can report
``failed to <operation>: <cause>`` without re-wrapping.
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """A GitHub API (or transport) call failed.

    Attributes:
        operation: Human-readable action, e.g. ``"get project"``
        resource: Optional resource identifier (issue number, project ID, ...)
        cause: Underlying exception or message
    """

    def __init__(self, operation: str, cause: object, resource: Optional[str] = None) -> None:
        self.operation = operation
        self.resource = resource
        self.cause = cause
        super().__init__(self._format())

    def _format(self) -> str:
        target = f" {self.resource}" if self.resource else ""
        return f"failed to {self.operation}{target}: {self.cause}"


class NotFoundError(GatewayError):
    """The requested resource does not exist or is not visible to the token."""


class RateLimitedError(GatewayError):
    """GitHub rejected the request because of primary or secondary rate limits."""

    def __init__(
        self,
        operation: str,
        cause: object,
        resource: Optional[str] = None,
        retry_after: Optional[float] = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(operation, cause, resource)


class AuthenticationError(GatewayError):
    """No usable token, or the token was rejected."""


def is_not_found_message(message: str) -> bool:
    """Return True when a GraphQL error message signals a missing resource."""
    return "Could not resolve" in message or "NOT_FOUND" in message


def is_rate_limit_message(message: str) -> bool:
    """Return True when an error message signals rate limiting."""
    lowered = message.lower()
    return "rate limit" in lowered or "rate_limited" in lowered


def wrap_error(operation: str, exc: Exception, resource: Optional[str] = None) -> GatewayError:
    """Wrap an arbitrary exception as the most specific ``GatewayError``.

    Already-wrapped errors keep their class but take the new operation name,
    so the outermost action is the one reported to the user.
    """
    if isinstance(exc, RateLimitedError):
        return RateLimitedError(operation, exc.cause, resource, retry_after=exc.retry_after)
    if isinstance(exc, GatewayError):
        return type(exc)(operation, exc.cause, resource)

    message = str(exc)
    if is_rate_limit_message(message):
        return RateLimitedError(operation, message, resource)
    if is_not_found_message(message):
        return NotFoundError(operation, message, resource)
    return GatewayError(operation, message, resource)


__all__ = [
    "AuthenticationError",
    "GatewayError",
    "NotFoundError",
    "RateLimitedError",
    "is_not_found_message",
    "is_rate_limit_message",
    "wrap_error",
]
