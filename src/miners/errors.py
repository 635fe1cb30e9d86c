"""
GitHub API error types.

Throttling is recovered inside the miners; everything raised from here is fatal
and carries enough context (URL, status, rate-limit headers) to diagnose it.
"""

from datetime import datetime, timezone
from typing import Mapping, Optional

RATE_LIMIT_HEADERS = (
    "x-ratelimit-limit",
    "x-ratelimit-remaining",
    "x-ratelimit-reset",
    "retry-after",
)


def format_reset(reset: Optional[str]) -> str:
    """Render an epoch ``x-ratelimit-reset`` value with its ISO form."""
    if not reset:
        return "N/A"
    try:
        iso = datetime.fromtimestamp(int(reset), timezone.utc).isoformat()
    except ValueError:
        return reset
    return f"{reset} ({iso})"


class GitHubAPIError(Exception):
    """Non-recoverable failure response from a GitHub endpoint."""

    def __init__(
        self,
        message: str,
        url: str,
        status: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        body: str = "",
    ):
        self.url = url
        self.status = status
        self.headers = {
            name: value
            for name, value in (headers or {}).items()
            if name.lower() in RATE_LIMIT_HEADERS
        }
        self.body = body

        lowered = {name.lower(): value for name, value in self.headers.items()}
        details = [
            message,
            f"  Status: {status}",
            f"  URL: {url}",
            f"  Rate-Limit-Limit: {lowered.get('x-ratelimit-limit')}",
            f"  Rate-Limit-Remaining: {lowered.get('x-ratelimit-remaining')}",
            f"  Rate-Limit-Reset: {format_reset(lowered.get('x-ratelimit-reset'))}",
            f"  Retry-After: {lowered.get('retry-after')}",
        ]
        if body:
            details.append(f"  Response body: {body}")
        super().__init__("\n".join(details))


class RateLimitExhaustedError(GitHubAPIError):
    """Throttling persisted past the configured number of retries."""


class UserNotFoundError(GitHubAPIError):
    """The GraphQL API returned no user for the requested login."""
