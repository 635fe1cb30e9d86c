"""
Contribution Aggregation Module.

Combines a user's contribution history across every active year into one
record per repository. Years are fetched concurrently; records from all years
and split sub-ranges are grouped by ``nameWithOwner`` and summed per kind.

Repositories with pull request contributions but no commit contributions are
not part of the result: the commit grouping is the authoritative repository set.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pandas as pd

from config import logger
from miners.base import ContributionMiner
from miners.models import (
    ContributionResponse,
    ContributionsByRepository,
    RepoWithStats,
    Repository,
    TimeRange,
    UserContributions,
)

DEFAULT_WINDOW_DAYS = 365


def sum_by_repository(items: List[ContributionsByRepository]) -> pd.Series:
    """
    Sum contribution counts per repository.

    Args:
        items (List[ContributionsByRepository]): Records from any number of queries

    Returns:
        pd.Series: Total count indexed by ``name_with_owner``, in first-seen order
    """
    frame = pd.DataFrame(
        [(c.repository.name_with_owner, c.count) for c in items],
        columns=["name_with_owner", "count"],
    )
    return frame.groupby("name_with_owner", sort=False)["count"].sum()


class ContributionAggregator:
    """
    Drives a contribution miner across a user's contribution years and reduces
    the results to one entry per repository.

    Attributes:
        miner (ContributionMiner): Source of contribution data.
    """

    def __init__(self, miner: ContributionMiner):
        self.miner = miner

    async def _fetch_ranges(
        self, username: str, ranges: List[TimeRange]
    ) -> List[ContributionResponse]:
        return await asyncio.gather(
            *[self.miner.fetch_contributions(username, r) for r in ranges]
        )

    def _merge(self, responses: List[ContributionResponse]) -> List[RepoWithStats]:
        commits = [c for r in responses for c in r.commit_contributions]
        pull_requests = [c for r in responses for c in r.pull_request_contributions]

        repositories: Dict[str, Repository] = {}
        for c in commits:
            repositories.setdefault(c.repository.name_with_owner, c.repository)

        commit_totals = sum_by_repository(commits)
        pr_totals = sum_by_repository(pull_requests)

        merged = []
        for name_with_owner, total in commit_totals.items():
            num_prs = pr_totals.get(name_with_owner)
            merged.append(
                RepoWithStats(
                    **repositories[name_with_owner].model_dump(),
                    num_contributed_commits=int(total),
                    num_contributed_prs=int(num_prs) if num_prs is not None else None,
                )
            )
        return merged

    async def aggregate(
        self, username: str, combine_all_years: bool = True
    ) -> UserContributions:
        """
        Aggregate a user's contributions by repository.

        Args:
            username (str): Login of the user.
            combine_all_years (bool): Aggregate every contribution year; when
                False only the last 365 days are aggregated.

        Returns:
            UserContributions: User identity and per-repository totals.
        """
        logger.info(
            {
                "message": "Starting contribution aggregation",
                "username": username,
                "combine_all_years": combine_all_years,
            }
        )
        user = await self.miner.fetch_contribution_years(username)

        if combine_all_years:
            ranges = [TimeRange.for_year(year) for year in user.years]
        elif user.years:
            now = datetime.now(timezone.utc)
            ranges = [TimeRange(start=now - timedelta(days=DEFAULT_WINDOW_DAYS), end=now)]
        else:
            ranges = []

        if not ranges:
            logger.warning(
                {"message": "No contribution years found", "username": username}
            )
            return UserContributions(id=user.id, name=user.name, repositories=[])

        responses = await self._fetch_ranges(username, ranges)
        repositories = self._merge(responses)

        logger.info(
            {
                "message": "Contribution aggregation completed",
                "username": username,
                "ranges": len(ranges),
                "repositories": len(repositories),
            }
        )
        return UserContributions(id=user.id, name=user.name, repositories=repositories)
