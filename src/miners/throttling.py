"""
GitHub Throttling Helpers.

Shared by the GraphQL miner and the contributor fetcher. A 403/429 response is
raised as ``ThrottledError`` carrying the wait before a retry:

- ``Retry-After`` seconds (or an HTTP-date), else
- ``X-RateLimit-Reset`` minus now, clamped at zero, else
- the fallback wait,

plus a safety buffer. Retries are bounded; when throttling persists the last
response is reported as ``RateLimitExhaustedError``.
"""

import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Awaitable, Callable, Mapping, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
)

from config import logger
from miners.errors import RateLimitExhaustedError, format_reset

THROTTLE_STATUSES = (403, 429)


class ThrottledError(Exception):
    """A 403/429 response; carries the wait before the request may be retried."""

    def __init__(self, wait_seconds: float, response: httpx.Response):
        super().__init__(f"throttled with status {response.status_code}")
        self.wait_seconds = wait_seconds
        self.response = response


def seconds_until_reset(reset: str) -> float:
    return max(0.0, int(reset) - time.time())


def parse_retry_after(value: str) -> Optional[float]:
    """
    Parse a ``Retry-After`` header given either as seconds or as an HTTP-date.

    Returns:
        Optional[float]: Seconds to wait, None when the value is unreadable
    """
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0.0, (retry_at - datetime.now(timezone.utc)).total_seconds())


def throttle_wait(
    headers: Mapping[str, str], fallback_wait: float, buffer: float
) -> float:
    """
    Wait before retrying a throttled request, buffer included.

    Args:
        headers (Mapping[str, str]): Headers of the throttled response
        fallback_wait (float): Wait when the response carries no retry hints
        buffer (float): Seconds added to every wait

    Returns:
        float: Seconds to wait
    """
    retry_after = headers.get("retry-after")
    reset = headers.get("x-ratelimit-reset")
    retry_after_seconds = parse_retry_after(retry_after) if retry_after else None

    if retry_after_seconds is not None:
        wait = retry_after_seconds
        logger.info(
            {
                "message": "Secondary rate limit hit, honoring retry-after",
                "retry_after": retry_after,
            }
        )
    elif reset:
        wait = seconds_until_reset(reset)
        logger.info(
            {
                "message": "Primary rate limit reached, waiting until reset",
                "remaining": headers.get("x-ratelimit-remaining"),
                "limit": headers.get("x-ratelimit-limit"),
                "reset_time": format_reset(reset),
            }
        )
    else:
        wait = fallback_wait
        logger.info(
            {
                "message": "Rate limit hit without retry information, using fallback wait",
                "wait_seconds": wait,
            }
        )
    return wait + buffer


def _wait_for_throttle(retry_state: RetryCallState) -> float:
    return retry_state.outcome.exception().wait_seconds


def throttle_retrying(
    max_retries: int,
    sleep: Callable[[float], Awaitable[None]],
    before_sleep: Optional[Callable[[RetryCallState], None]] = None,
) -> AsyncRetrying:
    """Retry on ``ThrottledError`` at most ``max_retries`` times, waiting as the response asks."""
    return AsyncRetrying(
        retry=retry_if_exception_type(ThrottledError),
        stop=stop_after_attempt(max_retries + 1),
        wait=_wait_for_throttle,
        before_sleep=before_sleep,
        sleep=sleep,
    )


def exhausted_error(error: RetryError, message: str) -> RateLimitExhaustedError:
    """Describe the last throttled response of an exhausted retry loop."""
    response = error.last_attempt.exception().response
    return RateLimitExhaustedError(
        message,
        url=str(response.url),
        status=response.status_code,
        headers=response.headers,
        body=response.text,
    )
