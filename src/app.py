"""
Main Application Entry Point.

This module serves as the primary entry point for the contributor stats system.
It orchestrates the workflow, including:
- Contribution aggregation across all contribution years
- Rate-limited contributor fetching when a contribution rank is requested
- Filtering, ranking, ordering and limiting of repository rows
- Error handling and logging

The rows are printed to stdout as JSON for the card renderer.
"""

import asyncio
import json
import sys
from typing import List

import httpx

from config import settings, logger
from analyzers.aggregator import ContributionAggregator
from analyzers.columns import get_column_criteria, parse_columns
from analyzers.models import OrderBy, RepositoryStatsRow
from analyzers.stats_processor import StatsProcessor
from miners.contributors import RateLimitedContributorFetcher
from miners.github_miner import GitHubContributionMiner


async def build_stats(client: httpx.AsyncClient) -> List[RepositoryStatsRow]:
    """
    Run the stats pipeline with the configured options.

    Args:
        client (httpx.AsyncClient): HTTP client shared by every GitHub request

    Returns:
        List[RepositoryStatsRow]: Ordered, filtered rows of the stats card
    """
    columns = parse_columns(settings.columns, settings.hidden_ranks)
    logger.info(
        {
            "message": "Generating stats",
            "username": settings.username,
            "columns": [column.name for column in columns],
            "combine_all_yearly_contributions": settings.combine_all_yearly_contributions,
        }
    )

    miner = GitHubContributionMiner(settings.token, client=client)
    aggregator = ContributionAggregator(miner)
    result = await aggregator.aggregate(
        settings.username, settings.combine_all_yearly_contributions
    )
    logger.info({"message": "Found repositories", "count": len(result.repositories)})

    fetcher = None
    if get_column_criteria(columns, "contribution_rank"):
        fetcher = RateLimitedContributorFetcher(client=client)
        logger.info(
            {
                "message": "Contributors will be fetched with rate limiting",
                "repositories": len(result.repositories),
                "min_request_interval_ms": settings.min_request_interval_ms,
            }
        )

    processor = StatsProcessor(
        contributor_fetcher=fetcher.fetch if fetcher else None,
        token=settings.token,
    )
    rows = await processor.process(
        result.repositories,
        settings.username,
        columns=columns,
        order_by=OrderBy(settings.order_by),
        limit=settings.limit,
        exclude=settings.exclude_patterns,
    )

    if fetcher:
        logger.info(
            {
                "message": "Total contributor API requests made",
                "requests": fetcher.request_count,
            }
        )
    return rows


async def main() -> int:
    """
    Execute the main application workflow.

    Returns:
        int: Process exit code
    """
    if not settings.username:
        logger.error({"message": "USERNAME is not configured"})
        return 1

    try:
        async with httpx.AsyncClient(timeout=settings.request_timeout) as client:
            rows = await build_stats(client)
    except Exception as e:
        logger.error({"message": "Stats generation failed", "error": str(e)})
        return 1

    json.dump(
        {"username": settings.username, "rows": [row.model_dump(mode="json") for row in rows]},
        sys.stdout,
        indent=2,
    )
    sys.stdout.write("\n")
    logger.info("application finished")
    return 0


if __name__ == "__main__":
    logger.info("Starting application ...")
    sys.exit(asyncio.run(main()))
