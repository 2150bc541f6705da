"""Tests for batched GraphQL snapshots."""

import json
import re

import pytest
from httpx import Response

from mygitstats.github_client import GitHubClient
from mygitstats.models import RepoEntry
from mygitstats.snapshots import BATCH_SIZE, build_snapshot_query, fetch_repo_snapshots


def make_repos(count: int) -> list[RepoEntry]:
    return [
        RepoEntry(id=1000 + i, full_name=f"acme/repo-{i}", is_private=False) for i in range(count)
    ]


def snapshot_node(stars: int) -> dict:
    return {
        "stargazerCount": stars,
        "forkCount": 2,
        "issues": {"totalCount": 3},
        "pullRequests": {"totalCount": 1},
        "watchers": {"totalCount": 5},
        "diskUsage": 640,
    }


def answer_every_alias(request) -> Response:
    """Respond with a node for every ``repo_N`` alias in the posted query."""
    query = json.loads(request.content)["query"]
    aliases = re.findall(r"(repo_\d+):", query)
    return Response(200, json={"data": {alias: snapshot_node(7) for alias in aliases}})


class TestBuildSnapshotQuery:
    """Tests for build_snapshot_query."""

    def test_aliases_follow_batch_order(self) -> None:
        query = build_snapshot_query(make_repos(2))

        assert 'repo_0: repository(owner: "acme", name: "repo-0")' in query
        assert 'repo_1: repository(owner: "acme", name: "repo-1")' in query
        assert "stargazerCount" in query
        assert "pullRequests(states: OPEN)" in query


class TestFetchRepoSnapshots:
    """Tests for fetch_repo_snapshots."""

    @pytest.mark.asyncio
    async def test_batches_of_thirty(self, mock_github_api) -> None:
        """Test 45 repositories take exactly two GraphQL calls."""
        route = mock_github_api.post("/graphql").mock(side_effect=answer_every_alias)
        repos = make_repos(45)

        async with GitHubClient(token="test_token") as client:
            snapshots = await fetch_repo_snapshots(client, repos)

        assert BATCH_SIZE == 30
        assert route.call_count == 2
        assert len(snapshots) == 45
        snapshot = snapshots[1000]
        assert snapshot.stars == 7
        assert snapshot.open_prs == 1
        assert snapshot.size == 640
        assert snapshot.to_json_dict()["openPRs"] == 1

    @pytest.mark.asyncio
    async def test_missing_alias_is_omitted(self, mock_github_api) -> None:
        """Test a repository without data is left out, not zero-filled."""
        mock_github_api.post("/graphql").mock(
            return_value=Response(
                200,
                json={
                    "data": {"repo_0": snapshot_node(4), "repo_1": None},
                    "errors": [{"message": "Could not resolve to a Repository"}],
                },
            )
        )

        async with GitHubClient(token="test_token") as client:
            snapshots = await fetch_repo_snapshots(client, make_repos(2))

        assert list(snapshots) == [1000]

    @pytest.mark.asyncio
    async def test_failed_batch_recorded_and_skipped(self, mock_github_api, no_sleep) -> None:
        """Test one failing batch does not stop the next one."""
        calls = 0

        def flaky(request) -> Response:
            nonlocal calls
            calls += 1
            if calls <= 3:
                return Response(502, text="Bad Gateway")
            return answer_every_alias(request)

        mock_github_api.post("/graphql").mock(side_effect=flaky)
        errors: list[str] = []

        async with GitHubClient(token="test_token") as client:
            snapshots = await fetch_repo_snapshots(client, make_repos(31), errors)

        assert list(snapshots) == [1030]
        assert len(errors) == 1
        assert errors[0].startswith("snapshots(batch 1):")
