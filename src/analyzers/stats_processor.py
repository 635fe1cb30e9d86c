"""
Repository Stats Processing Module.

Turns aggregated repository statistics into the rows of the stats card:
- exclusion by wildcard pattern and minimum count thresholds
- star and contribution ranks, computed only for requested columns
- hidden ranks, ordering and row limit
"""

import asyncio
import re
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union

import httpx

from config import logger
from analyzers.columns import get_column_criteria
from analyzers.models import (
    CountColumn,
    OrderBy,
    RankColumn,
    RepositoryStatsRow,
)
from analyzers.ranking import calculate_contributions_rank, calculate_stars_rank
from miners.models import Contributor, RepoWithStats

ContributorFetcher = Callable[[str, str, Optional[str]], Awaitable[List[Contributor]]]
AvatarResolver = Callable[[str], Awaitable[str]]

AVATAR_SIZE = 50


def match_wildcard(text: str, pattern: str) -> bool:
    """
    Match ``text`` against ``pattern`` where ``*`` matches any run of characters.

    Every other character matches literally; the match is anchored at both ends
    and case-sensitive.
    """
    regex = ".*".join(re.escape(part) for part in pattern.split("*"))
    return re.fullmatch(regex, text, flags=re.DOTALL) is not None


def sized_avatar_url(avatar_url: str, size: int = AVATAR_SIZE) -> str:
    return str(httpx.URL(avatar_url).copy_add_param("s", str(size)))


class StatsProcessor:
    """
    Filters, ranks, sorts and limits a user's repositories for the stats card.

    Attributes:
        contributor_fetcher (Optional[ContributorFetcher]): Fetches repository
            contributors; required when a contribution_rank column is requested.
        token (Optional[str]): GitHub token passed to the contributor fetcher.
        avatar_resolver (Optional[AvatarResolver]): Turns an avatar URL into
            embedded image data for the renderer.
    """

    def __init__(
        self,
        contributor_fetcher: Optional[ContributorFetcher] = None,
        token: Optional[str] = None,
        avatar_resolver: Optional[AvatarResolver] = None,
    ):
        self.contributor_fetcher = contributor_fetcher
        self.token = token
        self.avatar_resolver = avatar_resolver

    def _passes_filters(
        self,
        repo: RepoWithStats,
        exclude: List[str],
        commits_criteria: Optional[CountColumn],
        pull_requests_criteria: Optional[CountColumn],
    ) -> bool:
        if any(match_wildcard(repo.name_with_owner, pattern) for pattern in exclude):
            return False

        for given, criteria in (
            (repo.num_contributed_commits, commits_criteria),
            (repo.num_contributed_prs, pull_requests_criteria),
        ):
            minimum = criteria.minimum if criteria else None
            # An absent count never fails a minimum
            if minimum is not None and given is not None and given < minimum:
                return False
        return True

    async def _fetch_all_contributors(
        self, username: str, repositories: List[RepoWithStats]
    ) -> Dict[str, List[Contributor]]:
        """Fetch contributors one repository at a time; the fetcher owns shared pacing state."""
        if self.contributor_fetcher is None:
            raise ValueError("contribution_rank requires a contributor fetcher")

        logger.info(
            {
                "message": "Fetching contributors for repositories",
                "repositories": len(repositories),
            }
        )
        contributors = {}
        for repo in repositories:
            contributors[repo.name_with_owner] = await self.contributor_fetcher(
                username, repo.name_with_owner, self.token
            )
        return contributors

    async def process(
        self,
        repositories: Iterable[RepoWithStats],
        username: str,
        columns: Optional[List[Union[RankColumn, CountColumn]]] = None,
        order_by: OrderBy = OrderBy.STARS,
        limit: int = -1,
        exclude: Optional[List[str]] = None,
    ) -> List[RepositoryStatsRow]:
        """
        Build the ordered, filtered rows of the stats card.

        Args:
            repositories (Iterable[RepoWithStats]): Aggregated repositories.
            username (str): Login of the user.
            columns (Optional[List[Union[RankColumn, CountColumn]]]): Requested
                columns, ``[star_rank]`` when omitted.
            order_by (OrderBy): Sort by stars or by commit count, descending.
            limit (int): Maximum number of rows; non-positive keeps all.
            exclude (Optional[List[str]]): Wildcard patterns on ``owner/name``.

        Returns:
            List[RepositoryStatsRow]: Rows in display order.

        Raises:
            ValueError: If contribution_rank is requested without a contributor fetcher.
        """
        if columns is None:
            columns = [RankColumn(name="star_rank")]
        exclude = exclude or []

        star_rank_criteria = get_column_criteria(columns, "star_rank")
        contribution_rank_criteria = get_column_criteria(columns, "contribution_rank")
        commits_criteria = get_column_criteria(columns, "commits")
        pull_requests_criteria = get_column_criteria(columns, "pull_requests")

        candidates = [
            repo
            for repo in repositories
            if self._passes_filters(
                repo, exclude, commits_criteria, pull_requests_criteria
            )
        ]

        contributors: Dict[str, List[Contributor]] = {}
        if contribution_rank_criteria:
            contributors = await self._fetch_all_contributors(username, candidates)

        rows = []
        for repo in candidates:
            contribution_rank = None
            if contribution_rank_criteria and repo.num_contributed_commits is not None:
                contribution_rank = calculate_contributions_rank(
                    repo.num_contributed_commits, contributors[repo.name_with_owner]
                )
                if contribution_rank in contribution_rank_criteria.hide:
                    continue

            star_rank = None
            if star_rank_criteria:
                star_rank = calculate_stars_rank(repo.stargazer_count)
                if star_rank in star_rank_criteria.hide:
                    continue

            rows.append(
                RepositoryStatsRow(
                    name=repo.name,
                    name_with_owner=repo.name_with_owner,
                    url=repo.url,
                    avatar_url=sized_avatar_url(repo.owner.avatar_url),
                    num_stars=repo.stargazer_count,
                    num_contributed_commits=repo.num_contributed_commits,
                    num_contributed_prs=repo.num_contributed_prs,
                    star_rank=star_rank,
                    contribution_rank=contribution_rank,
                )
            )

        if order_by == OrderBy.STARS:
            rows.sort(key=lambda row: row.num_stars, reverse=True)
        else:
            rows.sort(key=lambda row: row.num_contributed_commits or 0, reverse=True)

        if limit > 0:
            rows = rows[:limit]

        if self.avatar_resolver is not None:
            avatars = await asyncio.gather(
                *[self.avatar_resolver(row.avatar_url) for row in rows]
            )
            for row, avatar in zip(rows, avatars):
                row.avatar = avatar

        logger.info(
            {
                "message": "Stats processing completed",
                "username": username,
                "candidates": len(candidates),
                "rows": len(rows),
            }
        )
        return rows
