"""
Contribution Mining Data Models.

Defines the data models returned by the GitHub GraphQL and REST endpoints and the
aggregated per-repository statistics built from them.
Uses Pydantic for validation; GraphQL camelCase field names are accepted as aliases.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

GITHUB_TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class GitHubModel(BaseModel):
    """Base model accepting both GraphQL aliases and Python field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TimeRange(BaseModel):
    """Inclusive UTC time interval at second precision."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @field_validator("start", "end")
    def normalize_timestamp(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc).replace(microsecond=0)

    @model_validator(mode="after")
    def check_order(self) -> "TimeRange":
        if self.start > self.end:
            raise ValueError(f"range start {self.start} is after end {self.end}")
        return self

    @classmethod
    def for_year(cls, year: int) -> "TimeRange":
        """Full calendar year, first to last second."""
        return cls(
            start=datetime(year, 1, 1, tzinfo=timezone.utc),
            end=datetime(year, 12, 31, 23, 59, 59, tzinfo=timezone.utc),
        )

    @property
    def github_from(self) -> str:
        return self.start.strftime(GITHUB_TIMESTAMP_FORMAT)

    @property
    def github_to(self) -> str:
        return self.end.strftime(GITHUB_TIMESTAMP_FORMAT)

    def __str__(self) -> str:
        return f"{self.github_from}..{self.github_to}"


class RepositoryOwner(GitHubModel):
    """Owner of a repository."""

    login: Optional[str] = None
    avatar_url: str = Field(alias="avatarUrl")


class Repository(GitHubModel):
    """Repository identity; ``name_with_owner`` is the aggregation key."""

    name: str
    name_with_owner: str = Field(alias="nameWithOwner")
    url: str
    stargazer_count: int = Field(default=0, alias="stargazerCount")
    owner: RepositoryOwner


class ContributionCount(GitHubModel):
    total_count: int = Field(alias="totalCount")


class ContributionsByRepository(GitHubModel):
    """A single (repository, contribution count) record from one query."""

    contributions: ContributionCount
    repository: Repository

    @property
    def count(self) -> int:
        return self.contributions.total_count


class ContributionResponse(GitHubModel):
    """Commit and pull request contributions grouped by repository."""

    commit_contributions: List[ContributionsByRepository] = Field(
        default_factory=list, alias="commitContributionsByRepository"
    )
    pull_request_contributions: List[ContributionsByRepository] = Field(
        default_factory=list, alias="pullRequestContributionsByRepository"
    )


class ContributionYears(BaseModel):
    """User identity plus the calendar years with any contribution activity."""

    id: str
    name: Optional[str] = None
    years: List[int]


class RepoWithStats(Repository):
    """
    Repository with the user's aggregated contribution counts.

    Counts are None when no record of that kind exists, which is distinct from zero.
    """

    num_contributed_commits: Optional[int] = None
    num_contributed_prs: Optional[int] = None


class UserContributions(BaseModel):
    """Aggregated contribution statistics of a user."""

    id: str
    name: Optional[str] = None
    repositories: List[RepoWithStats]


class Contributor(GitHubModel):
    """One contributor of a repository as returned by the REST contributors endpoint."""

    login: Optional[str] = None
    type: str = "User"
    contributions: int = 0
