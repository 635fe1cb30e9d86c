"""
Stats Processor Test Suite.

Covers the wildcard matcher, exclusion and minimum filters, rank computation
and hiding, sequential contributor fetching, ordering and limits.
"""

import asyncio
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from analyzers.models import CountColumn, OrderBy, Rank, RankColumn
from analyzers.stats_processor import StatsProcessor, match_wildcard
from miners.models import Contributor, RepositoryOwner, RepoWithStats


def make_repo(
    name: str,
    stars: int,
    commits: Optional[int] = None,
    prs: Optional[int] = None,
    owner: str = "owner",
) -> RepoWithStats:
    return RepoWithStats(
        name=name,
        name_with_owner=f"{owner}/{name}",
        url=f"https://github.com/{owner}/{name}",
        stargazer_count=stars,
        owner=RepositoryOwner(
            login=owner, avatar_url="https://avatars.githubusercontent.com/u/1?v=4"
        ),
        num_contributed_commits=commits,
        num_contributed_prs=prs,
    )


@pytest.fixture
def repositories():
    """Three repositories with stars [100, 50, 2] and commits [2, 30, 246]."""
    return [
        make_repo("alpha", stars=100, commits=2, prs=1),
        make_repo("beta", stars=50, commits=30),
        make_repo("gamma", stars=2, commits=246, prs=12),
    ]


@pytest.fixture
def processor():
    return StatsProcessor()


@pytest.mark.parametrize(
    "pattern, expected",
    [
        ("repo*name", True),
        ("*name", True),
        ("repo*", True),
        ("*posi*", True),
        ("repository-name", True),
        ("repo-name", False),
        ("repo*xyz", False),
        ("xyz*name", False),
        ("*xyz*", False),
        ("Repo*", False),
        ("repository.name", False),
        ("repository-nam?", False),
    ],
)
def test_match_wildcard(pattern, expected):
    assert match_wildcard("repository-name", pattern) is expected


def test_match_wildcard_on_owner_and_name():
    assert match_wildcard("owner/repo", "owner/*")
    assert match_wildcard("owner/repo", "*/repo")
    assert not match_wildcard("owner/repo", "other/*")


@pytest.mark.asyncio
async def test_order_by_stars(processor, repositories):
    rows = await processor.process(
        list(reversed(repositories)), "testuser", order_by=OrderBy.STARS
    )

    assert [row.num_stars for row in rows] == [100, 50, 2]
    assert [row.star_rank for row in rows] == [Rank.A, Rank.B_PLUS, Rank.B]


@pytest.mark.asyncio
async def test_order_by_contributions(processor, repositories):
    rows = await processor.process(
        repositories, "testuser", order_by=OrderBy.CONTRIBUTIONS
    )

    assert [row.num_contributed_commits for row in rows] == [246, 30, 2]


@pytest.mark.asyncio
async def test_missing_commit_count_sorts_as_zero(processor):
    rows = await processor.process(
        [make_repo("none", stars=1), make_repo("one", stars=1, commits=1)],
        "testuser",
        order_by=OrderBy.CONTRIBUTIONS,
    )

    assert [row.name for row in rows] == ["one", "none"]


@pytest.mark.asyncio
async def test_limit(processor, repositories):
    rows = await processor.process(repositories, "testuser", limit=2)

    assert [row.name for row in rows] == ["alpha", "beta"]


@pytest.mark.asyncio
@pytest.mark.parametrize("limit", [0, -1])
async def test_non_positive_limit_keeps_all(processor, repositories, limit):
    rows = await processor.process(repositories, "testuser", limit=limit)

    assert len(rows) == 3


@pytest.mark.asyncio
async def test_exclude_patterns(processor, repositories):
    rows = await processor.process(
        repositories, "testuser", exclude=["owner/al*", "*/gamma"]
    )

    assert [row.name for row in rows] == ["beta"]


@pytest.mark.asyncio
async def test_minimum_commits(processor, repositories):
    rows = await processor.process(
        repositories,
        "testuser",
        columns=[CountColumn(name="commits", minimum=30)],
    )

    assert [row.name for row in rows] == ["beta", "gamma"]
    assert all(row.star_rank is None for row in rows)


@pytest.mark.asyncio
async def test_absent_count_never_fails_minimum(processor, repositories):
    """beta has no pull request count, which differs from having zero."""
    rows = await processor.process(
        repositories + [make_repo("delta", stars=5, commits=1, prs=0)],
        "testuser",
        columns=[CountColumn(name="pull_requests", minimum=1)],
    )

    assert [row.name for row in rows] == ["alpha", "beta", "gamma"]
    assert rows[1].num_contributed_prs is None


@pytest.mark.asyncio
async def test_hidden_star_ranks(processor, repositories):
    rows = await processor.process(
        repositories,
        "testuser",
        columns=[RankColumn(name="star_rank", hide=[Rank.B, Rank.B_PLUS])],
    )

    assert [row.name for row in rows] == ["alpha"]


@pytest.mark.asyncio
async def test_ranks_only_for_requested_columns(repositories):
    fetcher = AsyncMock()
    processor = StatsProcessor(contributor_fetcher=fetcher)

    rows = await processor.process(
        repositories, "testuser", columns=[CountColumn(name="commits")]
    )

    fetcher.assert_not_awaited()
    assert all(row.star_rank is None and row.contribution_rank is None for row in rows)


@pytest.mark.asyncio
async def test_contribution_rank(repositories):
    contributors = {
        "owner/alpha": [
            Contributor(login="a", type="User", contributions=500),
            Contributor(login="b", type="User", contributions=1),
        ],
        "owner/beta": [Contributor(login="c", type="User", contributions=30)],
        "owner/gamma": [Contributor(login="bot", type="Bot", contributions=1000)],
    }
    fetcher = AsyncMock(
        side_effect=lambda username, name_with_owner, token: contributors[name_with_owner]
    )
    processor = StatsProcessor(contributor_fetcher=fetcher, token="test-token")

    rows = await processor.process(
        repositories,
        "testuser",
        columns=[RankColumn(name="star_rank"), RankColumn(name="contribution_rank")],
    )

    assert {row.name: row.contribution_rank for row in rows} == {
        "alpha": Rank.B_PLUS,
        "beta": Rank.S_PLUS,
        "gamma": Rank.B,
    }
    assert [call.args for call in fetcher.await_args_list] == [
        ("testuser", "owner/alpha", "test-token"),
        ("testuser", "owner/beta", "test-token"),
        ("testuser", "owner/gamma", "test-token"),
    ]


@pytest.mark.asyncio
async def test_hidden_contribution_ranks(repositories):
    fetcher = AsyncMock(
        return_value=[Contributor(login="top", type="User", contributions=100)]
    )
    processor = StatsProcessor(contributor_fetcher=fetcher)

    rows = await processor.process(
        repositories,
        "testuser",
        columns=[RankColumn(name="contribution_rank", hide=[Rank.B])],
    )

    assert [row.name for row in rows] == ["gamma"]
    assert rows[0].contribution_rank == Rank.S_PLUS


@pytest.mark.asyncio
async def test_contributors_fetched_sequentially_and_only_for_survivors(repositories):
    in_flight = 0
    peak = 0
    fetched = []

    async def fetcher(username, name_with_owner, token):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        fetched.append(name_with_owner)
        in_flight -= 1
        return []

    processor = StatsProcessor(contributor_fetcher=fetcher)

    await processor.process(
        repositories,
        "testuser",
        columns=[RankColumn(name="contribution_rank")],
        exclude=["*/beta"],
    )

    assert peak == 1
    assert fetched == ["owner/alpha", "owner/gamma"]


@pytest.mark.asyncio
async def test_contribution_rank_requires_fetcher(processor, repositories):
    with pytest.raises(ValueError):
        await processor.process(
            repositories, "testuser", columns=[RankColumn(name="contribution_rank")]
        )


@pytest.mark.asyncio
async def test_avatar_url_and_resolver(repositories):
    resolver = AsyncMock(side_effect=lambda url: f"data:image/png;base64,{len(url)}")
    processor = StatsProcessor(avatar_resolver=resolver)

    rows = await processor.process(repositories, "testuser", limit=1)

    assert rows[0].avatar_url == "https://avatars.githubusercontent.com/u/1?v=4&s=50"
    assert rows[0].avatar.startswith("data:image/png;base64,")
    resolver.assert_awaited_once_with(rows[0].avatar_url)


@pytest.mark.asyncio
async def test_empty_input(processor):
    assert await processor.process([], "testuser") == []
