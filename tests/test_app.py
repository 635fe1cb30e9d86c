"""
Application workflow tests.

Runs the whole pipeline against mocked GitHub endpoints with patched settings.
"""

import json

import httpx
import pytest
import respx
from httpx import Response

import app
from analyzers.models import Rank
from config import settings

GRAPHQL_URL = "https://api.github.com/graphql"
API_URL = "https://api.github.com"


def repo_node(name: str, stars: int) -> dict:
    return {
        "name": name,
        "nameWithOwner": f"owner/{name}",
        "url": f"https://github.com/owner/{name}",
        "stargazerCount": stars,
        "owner": {"login": "owner", "avatarUrl": "https://avatars.example.com/owner"},
    }


def graphql_handler(request: httpx.Request) -> Response:
    variables = json.loads(request.content)["variables"]
    if "from" not in variables:
        return Response(
            200,
            json={
                "data": {
                    "user": {
                        "id": "user-id-123",
                        "name": "Test User",
                        "contributionsCollection": {"contributionYears": [2023]},
                    }
                }
            },
        )
    return Response(
        200,
        json={
            "data": {
                "user": {
                    "contributionsCollection": {
                        "commitContributionsByRepository": [
                            {"contributions": {"totalCount": 40}, "repository": repo_node("popular", 2000)},
                            {"contributions": {"totalCount": 3}, "repository": repo_node("small", 10)},
                            {"contributions": {"totalCount": 9}, "repository": repo_node("skipped", 5)},
                        ],
                        "pullRequestContributionsByRepository": [
                            {"contributions": {"totalCount": 2}, "repository": repo_node("popular", 2000)},
                        ],
                    }
                }
            }
        },
    )


@pytest.fixture
def configured(monkeypatch):
    """Settings for a contribution-ranked report without pacing delays."""
    monkeypatch.setattr(settings, "username", "testuser")
    monkeypatch.setattr(settings, "columns", "star_rank,contribution_rank,commits")
    monkeypatch.setattr(settings, "hide", "")
    monkeypatch.setattr(settings, "exclude", "*/skipped")
    monkeypatch.setattr(settings, "order_by", "contributions")
    monkeypatch.setattr(settings, "limit", -1)
    monkeypatch.setattr(settings, "min_request_interval_ms", 0)
    monkeypatch.setattr(settings, "github_graphql_url", GRAPHQL_URL)
    monkeypatch.setattr(settings, "github_api_url", API_URL)
    return settings


@pytest.mark.asyncio
@respx.mock
async def test_build_stats(configured):
    respx.post(GRAPHQL_URL).mock(side_effect=graphql_handler)
    popular = respx.get(f"{API_URL}/repos/owner/popular/contributors").mock(
        return_value=Response(
            200,
            json=[
                {"login": "testuser", "type": "User", "contributions": 40},
                {"login": "maintainer", "type": "User", "contributions": 900},
            ],
        )
    )
    small = respx.get(f"{API_URL}/repos/owner/small/contributors").mock(
        return_value=Response(
            200, json=[{"login": "testuser", "type": "User", "contributions": 3}]
        )
    )
    skipped = respx.get(f"{API_URL}/repos/owner/skipped/contributors").mock(
        return_value=Response(200, json=[])
    )

    async with httpx.AsyncClient() as client:
        rows = await app.build_stats(client)

    assert [
        (row.name_with_owner, row.num_contributed_commits, row.num_contributed_prs)
        for row in rows
    ] == [("owner/popular", 40, 2), ("owner/small", 3, None)]
    assert [row.star_rank for row in rows] == [Rank.S, Rank.B]
    assert [row.contribution_rank for row in rows] == [Rank.B_PLUS, Rank.S_PLUS]
    assert popular.call_count == small.call_count == 1
    assert not skipped.called


@pytest.mark.asyncio
@respx.mock
async def test_build_stats_star_rank_only_skips_contributors(configured, monkeypatch):
    monkeypatch.setattr(settings, "columns", "star_rank")
    monkeypatch.setattr(settings, "order_by", "stars")
    respx.post(GRAPHQL_URL).mock(side_effect=graphql_handler)
    contributors = respx.get(url__startswith=f"{API_URL}/repos/").mock(
        return_value=Response(200, json=[])
    )

    async with httpx.AsyncClient() as client:
        rows = await app.build_stats(client)

    assert [row.name for row in rows] == ["popular", "small"]
    assert not contributors.called


@pytest.mark.asyncio
async def test_main_requires_username(monkeypatch):
    monkeypatch.setattr(settings, "username", "")

    assert await app.main() == 1


@pytest.mark.asyncio
@respx.mock
async def test_main_reports_failure(configured):
    respx.post(GRAPHQL_URL).mock(return_value=Response(502, text="Bad Gateway"))

    assert await app.main() == 1


@pytest.mark.asyncio
@respx.mock
async def test_main_prints_rows(configured, capsys):
    respx.post(GRAPHQL_URL).mock(side_effect=graphql_handler)
    respx.get(url__startswith=f"{API_URL}/repos/").mock(
        return_value=Response(200, json=[{"login": "testuser", "type": "User", "contributions": 1}])
    )

    assert await app.main() == 0

    output = json.loads(capsys.readouterr().out)
    assert output["username"] == "testuser"
    assert [row["name"] for row in output["rows"]] == ["popular", "small"]
    assert output["rows"][0]["star_rank"] == "S"
    assert output["rows"][0]["avatar_url"] == "https://avatars.example.com/owner?s=50"
