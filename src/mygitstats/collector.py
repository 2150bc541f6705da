"""Data collection orchestration."""

from collections import defaultdict
from collections.abc import Callable
from contextlib import AsyncExitStack

from rich.console import Console

from mygitstats.auth import AppAuth, AuthProvider
from mygitstats.concurrency import map_with_concurrency
from mygitstats.config import CollectorConfig, Settings
from mygitstats.contributions import fetch_contributions
from mygitstats.dates import subtract_days, today_utc, utc_now_iso
from mygitstats.discovery import discover_repos, discover_repos_app
from mygitstats.github_client import GitHubClient
from mygitstats.models import FetchStatus, RepoEntry, TrafficResult
from mygitstats.normalize import write_daily_files, write_window_file
from mygitstats.schema import (
    ContributionDay,
    LastRunFile,
    RepoMetaFile,
    RoutingFile,
    Snapshot,
)
from mygitstats.snapshots import fetch_repo_snapshots
from mygitstats.storage import DataStore
from mygitstats.traffic import fetch_traffic

console = Console()


async def collect_traffic(
    repos: list[RepoEntry],
    client_for_repo: Callable[[RepoEntry], GitHubClient],
    concurrency: int,
    errors: list[str],
) -> dict[int, TrafficResult]:
    """Fetch traffic for every repository through the bounded worker pool.

    Args:
        repos: Repositories to fetch.
        client_for_repo: Callable returning the opened client for a repository.
        concurrency: Worker pool width.
        errors: Run error list; unexpected per-repository errors are appended.

    Returns:
        Results keyed by repo id, excluding repositories where every call failed.
    """
    console.print(
        f"[cyan]\\[traffic] Fetching traffic for {len(repos)} repos "
        f"(concurrency: {concurrency})[/cyan]"
    )

    async def fetch_one(repo: RepoEntry) -> TrafficResult | None:
        try:
            return await fetch_traffic(client_for_repo(repo), repo)
        except Exception as e:
            console.print(f"[red]\\[traffic] Error for {repo.full_name}: {e}[/red]")
            errors.append(f"traffic({repo.full_name}): {e}")
            return None

    results = await map_with_concurrency(repos, concurrency, fetch_one)

    traffic_by_repo = {
        repo.id: result
        for repo, result in zip(repos, results)
        if result is not None and result.status is not FetchStatus.FAILED
    }
    console.print(f"\\[traffic] Collected traffic for {len(traffic_by_repo)}/{len(repos)} repos")
    return traffic_by_repo


async def collect_snapshots(
    repos: list[RepoEntry],
    auth: AuthProvider,
    clients: dict[str | None, GitHubClient],
    errors: list[str],
) -> dict[int, Snapshot]:
    """Fetch snapshots, one sequential pass per owner in app mode."""
    groups: dict[str | None, list[RepoEntry]] = defaultdict(list)
    for repo in repos:
        key = repo.installation_owner if isinstance(auth, AppAuth) else None
        groups[key].append(repo)

    snapshots: dict[int, Snapshot] = {}
    for owner, owner_repos in groups.items():
        if owner is not None:
            console.print(f"\\[snapshots] Owner \"{owner}\": {len(owner_repos)} repos")
        try:
            snapshots.update(await fetch_repo_snapshots(clients[owner], owner_repos, errors))
        except Exception as e:
            console.print(f"[red]\\[snapshots] Fatal error: {e}[/red]")
            errors.append(f"snapshots: {e}")

    console.print(f"\\[snapshots] Got snapshots for {len(snapshots)}/{len(repos)} repos")
    return snapshots


def write_meta_files(
    store: DataStore,
    repos: list[RepoEntry],
    started_at: str,
    repos_collected: int,
    errors: list[str],
    auth: AuthProvider,
    collector_version: str,
) -> LastRunFile:
    """Write meta/repos.json, meta/last-run.json and, in app mode, meta/routing.json."""
    if isinstance(auth, AppAuth):
        routing = RoutingFile(
            generated_at=utc_now_iso(),
            repo_id_to_owner={
                str(repo.id): repo.installation_owner
                for repo in repos
                if repo.installation_owner is not None
            },
        )
        store.write_routing(routing)
        console.print(f"\\[meta] Wrote routing.json ({len(routing.repo_id_to_owner)} repos)")

    store.write_repo_meta(
        RepoMetaFile(collected_at=utc_now_iso(), repos=[repo.to_meta() for repo in repos])
    )
    console.print(f"\\[meta] Wrote repos.json ({len(repos)} repos)")

    last_run = LastRunFile(
        started_at=started_at,
        finished_at=utc_now_iso(),
        collector_version=collector_version,
        auth_mode=auth.mode,
        repos_discovered=len(repos),
        repos_collected=repos_collected,
        errors=list(errors),
    )
    store.write_last_run(last_run)
    console.print("\\[meta] Wrote last-run.json")
    return last_run


async def run_collection(
    settings: Settings,
    config: CollectorConfig,
    auth: AuthProvider,
    today: str | None = None,
) -> LastRunFile:
    """Run one complete collection into ``settings.data_dir``.

    Non-fatal failures (discovery, per-repository fetches, file writes) are
    collected into the returned record's ``errors`` instead of raised.

    Args:
        settings: Application settings.
        config: Collector configuration.
        auth: Resolved credentials.
        today: Override for the current UTC date (YYYY-MM-DD).

    Returns:
        The last-run record that was written.
    """
    started_at = utc_now_iso()
    errors: list[str] = []
    store = DataStore(settings.data_dir)
    today = today or today_utc()
    version = settings.collector_version

    console.print(f"\n[bold]=== MyGitStats Collector ===[/bold]\nStarted at {started_at}")
    console.print(f"\\[auth] Mode: {auth.mode} ({auth.token_type()})")

    async with AsyncExitStack() as stack:
        clients: dict[str | None, GitHubClient] = {}
        if isinstance(auth, AppAuth):
            for owner in auth.owners():
                clients[owner] = await stack.enter_async_context(auth.client_for(owner))
        else:
            clients[None] = await stack.enter_async_context(auth.create_client())

        # --- Discover repos ---
        repos: list[RepoEntry]
        try:
            if isinstance(auth, AppAuth):
                owner_clients = {owner: clients[owner] for owner in auth.owners()}
                repos = await discover_repos_app(auth, owner_clients, config, errors)
            else:
                repos = await discover_repos(clients[None], config)
        except Exception as e:
            console.print(f"[red]\\[discover] Fatal error: {e}[/red]")
            errors.append(f"discover: {e}")
            repos = []

        if not repos:
            console.print("[yellow]\\[main] No repos discovered - writing meta files and exiting[/yellow]")
            return write_meta_files(store, repos, started_at, 0, errors, auth, version)

        def client_for_repo(repo: RepoEntry) -> GitHubClient:
            return clients[repo.installation_owner if isinstance(auth, AppAuth) else None]

        # --- Traffic (concurrent) ---
        traffic_by_repo = await collect_traffic(
            repos, client_for_repo, config.max_concurrency, errors
        )

        # --- Snapshots (batched GraphQL) ---
        snapshots = await collect_snapshots(repos, auth, clients, errors)

        # --- Contributions (PAT only) ---
        contributions: list[ContributionDay] = []
        if isinstance(auth, AppAuth):
            console.print("[dim]\\[contrib] Skipped - contributions require PAT auth mode[/dim]")
        else:
            contributions = await fetch_contributions(
                clients[None], subtract_days(today, config.contribution_days), today
            )

    # --- Normalize and write daily/window files ---
    try:
        write_daily_files(
            store, traffic_by_repo, snapshots, contributions, repos, today, version, errors
        )
    except Exception as e:
        console.print(f"[red]\\[normalize] Error writing daily files: {e}[/red]")
        errors.append(f"writeDailyFiles: {e}")

    try:
        write_window_file(store, traffic_by_repo, repos, today, version)
    except Exception as e:
        console.print(f"[red]\\[normalize] Error writing window file: {e}[/red]")
        errors.append(f"writeWindowFile: {e}")

    repos_collected = len(set(traffic_by_repo) | set(snapshots))
    last_run = write_meta_files(store, repos, started_at, repos_collected, errors, auth, version)

    console.print("[bold]=== Collection complete ===[/bold]")
    if errors:
        console.print(f"[yellow]Finished with {len(errors)} error(s)[/yellow]")
    return last_run
