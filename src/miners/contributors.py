"""
Rate-Limited Contributor Fetching Module.

Fetches repository contributor lists from the GitHub REST API while staying
within both rate-limit regimes:

- secondary (burst) limit: successive requests are spaced by a minimum interval
- primary (hourly) limit: throttled responses are waited out and retried, and
  the fetcher pauses until reset when the remaining quota is about to run out

The pacing state is shared by every fetch issued through one fetcher instance.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Mapping, Optional

import httpx
from tenacity import RetryCallState, RetryError

from config import settings, logger
from miners.errors import GitHubAPIError, format_reset
from miners.models import Contributor
from miners.throttling import (
    THROTTLE_STATUSES,
    ThrottledError,
    exhausted_error,
    seconds_until_reset,
    throttle_retrying,
    throttle_wait,
)

UNAUTHENTICATED_LIMIT = 60
USER_AGENT = "contribstats"


@dataclass
class RateLimitState:
    """
    Process-wide pacing state for one endpoint.

    Attributes:
        request_count (int): Requests issued so far, throttled ones excluded.
        last_request_time (Optional[float]): ``time.monotonic()`` of the last
            request start, None when the next request may start immediately.
        lock (asyncio.Lock): Serializes the pacing and bookkeeping step.
    """

    request_count: int = 0
    last_request_time: Optional[float] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class RateLimitedContributorFetcher:
    """
    Fetches contributors of repositories one request at a time, honoring GitHub
    rate-limit signals.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        state: Optional[RateLimitState] = None,
        api_url: Optional[str] = None,
        min_request_interval: Optional[float] = None,
        fallback_wait: Optional[float] = None,
        buffer: Optional[float] = None,
        max_throttle_retries: Optional[int] = None,
        progress_interval: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the fetcher.

        Args:
            client (Optional[httpx.AsyncClient]): Shared HTTP client; one is
                created and owned by the fetcher when omitted.
            state (Optional[RateLimitState]): Pacing state, new when omitted.
            api_url (Optional[str]): GitHub REST API base URL.
            min_request_interval (Optional[float]): Seconds between request starts.
            fallback_wait (Optional[float]): Wait in seconds when a throttled
                response carries no retry information.
            buffer (Optional[float]): Seconds added to every rate-limit wait.
            max_throttle_retries (Optional[int]): Retries of a throttled request
                before giving up.
            progress_interval (Optional[int]): Log progress every N requests.
            sleep (Callable[[float], Awaitable[None]]): Coroutine used for all waits.
        """
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout)
        self.state = state or RateLimitState()
        self.api_url = (api_url or settings.github_api_url).rstrip("/")
        self.min_request_interval = (
            min_request_interval
            if min_request_interval is not None
            else settings.min_request_interval_ms / 1000
        )
        self.fallback_wait = (
            fallback_wait if fallback_wait is not None else settings.rate_limit_fallback_wait
        )
        self.buffer = buffer if buffer is not None else settings.rate_limit_buffer
        self.max_throttle_retries = (
            max_throttle_retries
            if max_throttle_retries is not None
            else settings.max_throttle_retries
        )
        self.progress_interval = progress_interval or settings.progress_interval
        self.sleep = sleep

    async def __aenter__(self) -> "RateLimitedContributorFetcher":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    @property
    def request_count(self) -> int:
        return self.state.request_count

    async def _pace(self) -> None:
        """Enforce the minimum interval between request starts and count the request."""
        async with self.state.lock:
            if self.state.last_request_time is not None:
                elapsed = time.monotonic() - self.state.last_request_time
                if elapsed < self.min_request_interval:
                    await self.sleep(self.min_request_interval - elapsed)
            self.state.last_request_time = time.monotonic()
            self.state.request_count += 1

            if self.state.request_count % self.progress_interval == 0:
                logger.info(
                    {
                        "message": "Fetched contributors progress",
                        "requests": self.state.request_count,
                    }
                )

    def _log_quota(self, headers: Mapping[str, str]) -> None:
        limit = headers.get("x-ratelimit-limit")
        logger.info(
            {
                "message": "Contributors API rate limit status",
                "remaining": headers.get("x-ratelimit-remaining"),
                "limit": limit,
                "reset_time": format_reset(headers.get("x-ratelimit-reset")),
            }
        )
        if limit and int(limit) == UNAUTHENTICATED_LIMIT:
            logger.warning(
                {
                    "message": "Rate limit is 60/hour, requests are unauthenticated",
                    "hint": "Provide a personal access token with the public_repo scope",
                }
            )

    async def _fetch_once(
        self, name_with_owner: str, token: Optional[str]
    ) -> List[Contributor]:
        await self._pace()

        url = f"{self.api_url}/repos/{name_with_owner}/contributors"
        headers = {"Accept": "application/vnd.github+json", "User-Agent": USER_AGENT}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        response = await self.client.get(url, params={"per_page": 100}, headers=headers)

        if response.status_code in THROTTLE_STATUSES:
            raise ThrottledError(
                throttle_wait(response.headers, self.fallback_wait, self.buffer),
                response,
            )

        if self.state.request_count == 1:
            self._log_quota(response.headers)

        remaining = response.headers.get("x-ratelimit-remaining")
        reset = response.headers.get("x-ratelimit-reset")
        if remaining is not None and int(remaining) <= 1 and reset:
            wait = seconds_until_reset(reset) + self.buffer
            logger.info(
                {
                    "message": "Primary rate limit almost exhausted, waiting until reset",
                    "remaining": remaining,
                    "limit": response.headers.get("x-ratelimit-limit"),
                    "wait_seconds": round(wait, 1),
                }
            )
            await self.sleep(wait)

        if not response.is_success:
            raise GitHubAPIError(
                f"Failed to fetch contributors for {name_with_owner}",
                url=str(response.url),
                status=response.status_code,
                headers=response.headers,
                body=response.text,
            )

        if response.status_code == 204 or not response.content:
            return []
        return [Contributor.model_validate(item) for item in response.json()]

    def _reset_after_throttle(self, retry_state: Optional[RetryCallState] = None) -> None:
        # The throttled attempt does not count and the retry may start at once
        self.state.request_count -= 1
        self.state.last_request_time = None

    async def fetch(
        self, username: str, name_with_owner: str, token: Optional[str] = None
    ) -> List[Contributor]:
        """
        Fetch the contributors of a repository.

        Args:
            username (str): Login of the user the stats are built for.
            name_with_owner (str): Repository identity, ``owner/name``.
            token (Optional[str]): GitHub token; unauthenticated when omitted.

        Returns:
            List[Contributor]: Up to 100 contributors of the repository.

        Raises:
            RateLimitExhaustedError: If throttling outlasts ``max_throttle_retries``.
            GitHubAPIError: On any other unsuccessful response.
        """
        retrying = throttle_retrying(
            self.max_throttle_retries,
            sleep=self.sleep,
            before_sleep=self._reset_after_throttle,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self._fetch_once(name_with_owner, token)
        except RetryError as e:
            # before_sleep does not run after the final attempt
            self._reset_after_throttle()
            logger.error(
                {
                    "message": "Contributors API still throttled after retries",
                    "repository": name_with_owner,
                    "username": username,
                    "attempts": e.last_attempt.attempt_number,
                }
            )
            raise exhausted_error(
                e,
                f"Rate limit persisted after {self.max_throttle_retries} retries "
                f"fetching contributors for {name_with_owner}",
            ) from e
