"""Per-repository traffic collection (views, clones, referrers, paths)."""

from collections.abc import Awaitable
from typing import TypeVar

from rich.console import Console

from mygitstats.github_client import GitHubAPIError, GitHubClient, RateLimitError
from mygitstats.models import FetchStatus, RepoEntry, TrafficResult

console = Console()

T = TypeVar("T")


def _log_traffic_warning(endpoint: str, full_name: str, error: Exception) -> None:
    if isinstance(error, RateLimitError):
        console.print(
            f"[yellow]\\[traffic] Rate limited on {endpoint} for {full_name}"
            " after retries, skipping[/yellow]"
        )
    elif isinstance(error, GitHubAPIError) and error.status_code == 403:
        console.print(
            f"[yellow]\\[traffic] 403 on {endpoint} for {full_name}"
            " - insufficient permissions, skipping[/yellow]"
        )
    else:
        console.print(f"[yellow]\\[traffic] Failed to fetch {endpoint} for {full_name}: {error}[/yellow]")


async def _attempt(
    endpoint: str, repo: RepoEntry, call: Awaitable[T], result: TrafficResult
) -> T | None:
    try:
        return await call
    except (GitHubAPIError, ValueError, KeyError, TypeError) as e:
        _log_traffic_warning(endpoint, repo.full_name, e)
        result.failed_calls.append(endpoint)
        return None


async def fetch_traffic(client: GitHubClient, repo: RepoEntry) -> TrafficResult:
    """Fetch traffic data for a single repository.

    Each of the four calls fails independently; a failed call leaves its list
    empty and is named in ``failed_calls``. Traffic endpoints need push
    access, so a 403 usually means the token can see but not administer the
    repository.

    Args:
        client: Opened client routed for this repository.
        repo: Repository to fetch.

    Returns:
        TrafficResult whose status is FAILED only if all four calls failed.
    """
    owner, name = repo.owner, repo.name
    result = TrafficResult()

    views = await _attempt("views", repo, client.get_views(owner, name), result)
    if views is not None:
        result.views = views.items

    clones = await _attempt("clones", repo, client.get_clones(owner, name), result)
    if clones is not None:
        result.clones = clones.items

    referrers = await _attempt("referrers", repo, client.get_top_referrers(owner, name), result)
    if referrers is not None:
        result.referrers = referrers

    paths = await _attempt("paths", repo, client.get_top_paths(owner, name), result)
    if paths is not None:
        result.paths = paths

    if result.status is FetchStatus.FAILED:
        console.print(f"[yellow]\\[traffic] All traffic calls failed for {repo.full_name}[/yellow]")

    return result
