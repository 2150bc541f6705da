"""Batched repository snapshots (stars, forks, issues, PRs, watchers, size) via GraphQL."""

import json
import math

from rich.console import Console

from mygitstats.github_client import GitHubAPIError, GitHubClient
from mygitstats.models import RepoEntry
from mygitstats.schema import Snapshot

console = Console()

BATCH_SIZE = 30


def build_snapshot_query(batch: list[RepoEntry]) -> str:
    """Build one aliased query covering every repository in ``batch``.

    Repository ``i`` of the batch is queried under the alias ``repo_i``.
    """
    fragments = []
    for idx, repo in enumerate(batch):
        fragments.append(
            f"repo_{idx}: repository(owner: {json.dumps(repo.owner)}, name: {json.dumps(repo.name)}) {{\n"
            "    stargazerCount\n"
            "    forkCount\n"
            "    issues(states: OPEN) { totalCount }\n"
            "    pullRequests(states: OPEN) { totalCount }\n"
            "    watchers { totalCount }\n"
            "    diskUsage\n"
            "  }"
        )
    return "query {\n  " + "\n  ".join(fragments) + "\n}"


async def _fetch_snapshot_batch(client: GitHubClient, batch: list[RepoEntry]) -> dict[int, Snapshot]:
    data = await client.graphql(build_snapshot_query(batch))

    results: dict[int, Snapshot] = {}
    for idx, repo in enumerate(batch):
        node = data.get(f"repo_{idx}")
        if not node:
            console.print(
                f"[yellow]\\[snapshots] No data returned for {repo.full_name} "
                "(may be inaccessible)[/yellow]"
            )
            continue
        results[repo.id] = Snapshot(
            stars=node["stargazerCount"],
            forks=node["forkCount"],
            open_issues=node["issues"]["totalCount"],
            open_prs=node["pullRequests"]["totalCount"],
            watchers=node["watchers"]["totalCount"],
            size=node.get("diskUsage") or 0,
        )
    return results


async def fetch_repo_snapshots(
    client: GitHubClient,
    repos: list[RepoEntry],
    errors: list[str] | None = None,
) -> dict[int, Snapshot]:
    """Fetch snapshots for ``repos`` in sequential batches of ``BATCH_SIZE``.

    A failing batch is reported and skipped; the remaining batches still run.

    Args:
        client: Opened client able to read every repository in ``repos``.
        repos: Repositories to snapshot.
        errors: Run error list; failed batches are appended.

    Returns:
        Snapshots keyed by repository id. Inaccessible repositories are absent.
    """
    results: dict[int, Snapshot] = {}
    total_batches = math.ceil(len(repos) / BATCH_SIZE)

    for start in range(0, len(repos), BATCH_SIZE):
        batch = repos[start : start + BATCH_SIZE]
        batch_num = start // BATCH_SIZE + 1
        console.print(
            f"\\[snapshots] Fetching batch {batch_num}/{total_batches} ({len(batch)} repos)"
        )
        try:
            results.update(await _fetch_snapshot_batch(client, batch))
        except (GitHubAPIError, KeyError, TypeError, ValueError) as e:
            console.print(f"[red]\\[snapshots] GraphQL batch {batch_num} failed: {e}[/red]")
            if errors is not None:
                errors.append(f"snapshots(batch {batch_num}): {e}")

    return results
