"""
Abstract Base Class for Contribution Miners.

Defines the interface for contribution data mining implementations.
The aggregator only talks to this interface, so tests and alternative
sources can stand in for the GitHub GraphQL miner.
"""

from abc import ABC, abstractmethod

from miners.models import ContributionResponse, ContributionYears, TimeRange


class ContributionMiner(ABC):
    """
    Abstract base class for contribution miners.

    Defines the contract for mining a user's contribution data.
    Implementations should handle:
    - Authentication with the contribution service
    - Overflow of per-query result caps
    - Data transformation to common models
    """

    @abstractmethod
    async def fetch_contribution_years(self, username: str) -> ContributionYears:
        """
        Fetch the user identity and the calendar years with contribution activity.

        Args:
            username (str): Login of the user

        Returns:
            ContributionYears: User id, display name and active years
        """
        pass

    @abstractmethod
    async def fetch_contributions(
        self, username: str, time_range: TimeRange, depth: int = 0
    ) -> ContributionResponse:
        """
        Fetch commit and pull request contributions by repository for a range.

        Args:
            username (str): Login of the user
            time_range (TimeRange): Range to query
            depth (int): Current splitting depth

        Returns:
            ContributionResponse: Per-repository contribution records
        """
        pass
