"""
GitHub Contribution Mining Module.

This module queries the GitHub GraphQL API for a user's contribution history.
Each contribution connection is capped at 100 repositories per query, so ranges
that hit the cap are split and re-queried recursively.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from tenacity import RetryError

from config import settings, logger
from miners.base import ContributionMiner
from miners.errors import GitHubAPIError, UserNotFoundError
from miners.models import ContributionResponse, ContributionYears, TimeRange
from miners.throttling import (
    THROTTLE_STATUSES,
    ThrottledError,
    exhausted_error,
    throttle_retrying,
    throttle_wait,
)
from miners.time_ranges import split_time_range

REPOSITORY_FIELDS = """
    name
    nameWithOwner
    url
    stargazerCount
    owner {
      login
      avatarUrl
    }
"""

CONTRIBUTION_YEARS_QUERY = """
query ($login: String!) {
  user(login: $login) {
    id
    name
    contributionsCollection {
      contributionYears
    }
  }
}
"""

CONTRIBUTIONS_QUERY = f"""
query ($login: String!, $from: DateTime!, $to: DateTime!, $maxRepositories: Int!) {{
  user(login: $login) {{
    contributionsCollection(from: $from, to: $to) {{
      commitContributionsByRepository(maxRepositories: $maxRepositories) {{
        contributions {{
          totalCount
        }}
        repository {{{REPOSITORY_FIELDS}}}
      }}
      pullRequestContributionsByRepository(maxRepositories: $maxRepositories) {{
        contributions {{
          totalCount
        }}
        repository {{{REPOSITORY_FIELDS}}}
      }}
    }}
  }}
}}
"""


class GitHubContributionMiner(ContributionMiner):
    """
    GitHubContributionMiner fetches contribution data from the GitHub GraphQL API.
    It transforms responses into Pydantic models and handles the repository cap
    by splitting time ranges.
    """

    def __init__(
        self,
        github_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        graphql_url: Optional[str] = None,
        max_repos_per_query: Optional[int] = None,
        max_split_depth: Optional[int] = None,
        fallback_wait: Optional[float] = None,
        buffer: Optional[float] = None,
        max_throttle_retries: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize GitHub miner with authentication and configuration.

        Args:
            github_token (Optional[str]): GitHub API token for authentication.
            client (Optional[httpx.AsyncClient]): Shared HTTP client; one is
                created and owned by the miner when omitted.
            graphql_url (Optional[str]): GraphQL endpoint.
            max_repos_per_query (Optional[int]): Repository cap per connection.
            max_split_depth (Optional[int]): Maximum range splitting depth.
            fallback_wait (Optional[float]): Wait in seconds when a throttled
                response carries no retry information.
            buffer (Optional[float]): Seconds added to every rate-limit wait.
            max_throttle_retries (Optional[int]): Retries of a throttled query
                before giving up.
            sleep (Callable[[float], Awaitable[None]]): Coroutine used for throttle waits.
        """
        self.github_token = github_token if github_token is not None else settings.token
        self.graphql_url = graphql_url or settings.github_graphql_url
        self.max_repos_per_query = max_repos_per_query or settings.max_repos_per_query
        self.max_split_depth = (
            max_split_depth if max_split_depth is not None else settings.max_split_depth
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
        self.sleep = sleep
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=settings.request_timeout)

    async def __aenter__(self) -> "GitHubContributionMiner":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def _post(self, query: str, variables: Dict[str, Any]) -> httpx.Response:
        headers = {"Accept": "application/vnd.github+json"}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"

        response = await self.client.post(
            self.graphql_url,
            json={"query": query, "variables": variables},
            headers=headers,
        )
        if response.status_code in THROTTLE_STATUSES:
            raise ThrottledError(
                throttle_wait(response.headers, self.fallback_wait, self.buffer),
                response,
            )
        return response

    async def _graphql(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        """
        Execute a GraphQL query and return its ``data`` member.

        Throttled (403/429) responses are waited out and retried.

        Raises:
            RateLimitExhaustedError: If throttling outlasts ``max_throttle_retries``.
            GitHubAPIError: On any other non-200 status or a GraphQL error payload.
        """
        try:
            async for attempt in throttle_retrying(self.max_throttle_retries, self.sleep):
                with attempt:
                    response = await self._post(query, variables)
        except RetryError as e:
            logger.error(
                {
                    "message": "GraphQL API still throttled after retries",
                    "attempts": e.last_attempt.attempt_number,
                }
            )
            raise exhausted_error(
                e,
                f"Rate limit persisted after {self.max_throttle_retries} retries "
                "querying the GraphQL API",
            ) from e

        if response.status_code != 200:
            raise GitHubAPIError(
                "GitHub GraphQL request failed",
                url=self.graphql_url,
                status=response.status_code,
                headers=response.headers,
                body=response.text,
            )

        payload = response.json()
        if payload.get("errors"):
            messages = "; ".join(e.get("message", "") for e in payload["errors"])
            raise GitHubAPIError(
                f"GitHub GraphQL query returned errors: {messages}",
                url=self.graphql_url,
                status=response.status_code,
                headers=response.headers,
            )
        return payload.get("data") or {}

    async def _get_user(
        self, query: str, username: str, variables: Dict[str, Any]
    ) -> Dict[str, Any]:
        data = await self._graphql(query, {"login": username, **variables})
        user = data.get("user")
        if user is None:
            raise UserNotFoundError(
                f"GitHub user {username!r} not found", url=self.graphql_url
            )
        return user

    async def fetch_contribution_years(self, username: str) -> ContributionYears:
        """
        Fetch the calendar years with contribution activity.

        Args:
            username (str): Login of the user.

        Returns:
            ContributionYears: User id, display name and active years.
        """
        logger.info({"message": "Fetching contribution years", "username": username})
        user = await self._get_user(CONTRIBUTION_YEARS_QUERY, username, {})
        return ContributionYears(
            id=user["id"],
            name=user.get("name"),
            years=user["contributionsCollection"]["contributionYears"],
        )

    async def fetch_contributions_for_range(
        self, username: str, time_range: TimeRange
    ) -> ContributionResponse:
        """
        Issue a single contributions query for a time range.

        Args:
            username (str): Login of the user.
            time_range (TimeRange): Range to query.

        Returns:
            ContributionResponse: At most ``max_repos_per_query`` records per kind.
        """
        user = await self._get_user(
            CONTRIBUTIONS_QUERY,
            username,
            {
                "from": time_range.github_from,
                "to": time_range.github_to,
                "maxRepositories": self.max_repos_per_query,
            },
        )
        return ContributionResponse.model_validate(user["contributionsCollection"])

    async def fetch_contributions(
        self, username: str, time_range: TimeRange, depth: int = 0
    ) -> ContributionResponse:
        """
        Fetch contributions for a range, splitting it while results hit the cap.

        Sub-range results are concatenated, not merged; the aggregator sums them.
        When the cap is hit but the range cannot be split further, or the depth
        limit is reached, the capped result is returned as is.

        Args:
            username (str): Login of the user.
            time_range (TimeRange): Range to query.
            depth (int): Current recursion depth.

        Returns:
            ContributionResponse: Contribution records for the whole range.
        """
        results = await self.fetch_contributions_for_range(username, time_range)

        capped = (
            len(results.commit_contributions) >= self.max_repos_per_query
            or len(results.pull_request_contributions) >= self.max_repos_per_query
        )
        if not capped:
            return results

        sub_ranges = split_time_range(time_range) if depth < self.max_split_depth else []
        if len(sub_ranges) <= 1:
            logger.warning(
                {
                    "message": "Repository cap reached and range cannot be split further, results truncated",
                    "username": username,
                    "range": str(time_range),
                    "depth": depth,
                }
            )
            return results

        logger.debug(
            {
                "message": "Repository cap reached, splitting range",
                "range": str(time_range),
                "sub_ranges": len(sub_ranges),
                "depth": depth,
            }
        )
        sub_results = await asyncio.gather(
            *[
                self.fetch_contributions(username, sub_range, depth + 1)
                for sub_range in sub_ranges
            ]
        )
        return ContributionResponse(
            commit_contributions=[
                c for sub in sub_results for c in sub.commit_contributions
            ],
            pull_request_contributions=[
                c for sub in sub_results for c in sub.pull_request_contributions
            ],
        )
