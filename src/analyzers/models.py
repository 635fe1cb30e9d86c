"""
Stats Analysis Data Models.

Defines ranks, report column criteria and the decorated rows handed to the renderer.
Uses Pydantic for validation and serialization.
"""

from enum import Enum
from functools import total_ordering
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Rank(Enum):
    """
    Classification tiers, ordered ``B < B+ < A < A+ < S < S+``.

    Attributes:
        B: Lowest tier
        B_PLUS: B+
        A: A
        A_PLUS: A+
        S: S
        S_PLUS: Highest tier
    """

    B = "B"
    B_PLUS = "B+"
    A = "A"
    A_PLUS = "A+"
    S = "S"
    S_PLUS = "S+"

    @property
    def level(self) -> int:
        return list(Rank).index(self)

    def __lt__(self, other: "Rank") -> bool:
        if not isinstance(other, Rank):
            return NotImplemented
        return self.level < other.level


class OrderBy(Enum):
    """Row ordering of the report."""

    STARS = "stars"
    CONTRIBUTIONS = "contributions"


class RankColumn(BaseModel):
    """A rank column; rows whose rank is in ``hide`` are dropped."""

    model_config = ConfigDict(frozen=True)

    name: Literal["star_rank", "contribution_rank"]
    hide: List[Rank] = Field(default_factory=list)


class CountColumn(BaseModel):
    """A count column; rows with a count below ``minimum`` are dropped."""

    model_config = ConfigDict(frozen=True)

    name: Literal["commits", "pull_requests"]
    minimum: Optional[int] = None


ColumnCriterion = Annotated[Union[RankColumn, CountColumn], Field(discriminator="name")]


class RepositoryStatsRow(BaseModel):
    """One repository row of the stats card."""

    name: str
    name_with_owner: str
    url: str
    avatar_url: str
    avatar: Optional[str] = None
    num_stars: int
    num_contributed_commits: Optional[int] = None
    num_contributed_prs: Optional[int] = None
    star_rank: Optional[Rank] = None
    contribution_rank: Optional[Rank] = None
