"""
Rank classification.

Maps a repository's star count, or the user's standing among its human
contributors, to a rank tier.
"""

from typing import Dict, List

from config import logger
from analyzers.models import Rank
from miners.models import Contributor

# Highest qualifying tier wins, so thresholds are listed from the top
RANK_THRESHOLDS_STARGAZERS: Dict[Rank, int] = {
    Rank.S_PLUS: 10000,
    Rank.S: 1000,
    Rank.A_PLUS: 500,
    Rank.A: 100,
    Rank.B_PLUS: 50,
}

RANK_THRESHOLDS_CONTRIBUTIONS: Dict[Rank, float] = {
    Rank.S_PLUS: 90,
    Rank.S: 80,
    Rank.A_PLUS: 70,
    Rank.A: 60,
    Rank.B_PLUS: 50,
}

HUMAN_ACCOUNT_TYPE = "User"


def _rank_for(value: float, thresholds: Dict[Rank, float]) -> Rank:
    for rank, threshold in thresholds.items():
        if value >= threshold:
            return rank
    return Rank.B


def calculate_stars_rank(stargazers: int) -> Rank:
    """
    Rank a repository by its star count.

    Args:
        stargazers (int): Number of stargazers

    Returns:
        Rank: S+ from 10000, S from 1000, A+ from 500, A from 100, B+ from 50, else B
    """
    return _rank_for(stargazers, RANK_THRESHOLDS_STARGAZERS)


def calculate_contributions_rank(
    num_contributions: int, contributors: List[Contributor]
) -> Rank:
    """
    Rank the user's contributions against the repository's human contributors.

    The percentile is the share of human contributors with no more contributions
    than the user. A repository without human contributors ranks B.

    Args:
        num_contributions (int): The user's commit count in the repository
        contributors (List[Contributor]): Contributors of the repository

    Returns:
        Rank: S+ from the 90th percentile, S from 80, A+ from 70, A from 60,
            B+ from 50, else B
    """
    humans = [c for c in contributors if c.type == HUMAN_ACCOUNT_TYPE]
    if not humans:
        logger.debug(
            {
                "message": "No human contributors, using lowest contribution rank",
                "contributors": len(contributors),
            }
        )
        return Rank.B

    over = sum(1 for c in humans if c.contributions > num_contributions)
    percentile = (len(humans) - over) / len(humans) * 100
    return _rank_for(percentile, RANK_THRESHOLDS_CONTRIBUTIONS)
