"""Repository discovery for single-token and multi-owner (GitHub App) runs."""

from dataclasses import dataclass

from rich.console import Console

from mygitstats.auth import AppAuth
from mygitstats.config import CollectorConfig
from mygitstats.github_client import GitHubAPIError, GitHubClient
from mygitstats.models import RepoEntry

console = Console()


@dataclass(frozen=True)
class Permissions:
    admin: bool = False
    push: bool = False

    @classmethod
    def from_api(cls, data: dict) -> "Permissions":
        perms = data.get("permissions") or {}
        return cls(admin=bool(perms.get("admin")), push=bool(perms.get("push")))


def should_replace_entry(existing: Permissions, incoming: Permissions) -> bool:
    """Whether a duplicate listing should replace the one already kept.

    Stronger access wins (admin over push over pull-only); equal strength
    keeps the first one seen.
    """
    return (incoming.admin and not existing.admin) or (
        not existing.admin and not existing.push and incoming.push
    )


def passes_filters(repo: RepoEntry, config: CollectorConfig) -> bool:
    """Apply the fork, archived, org allow, repo allow and block filters in order."""
    if repo.is_fork and not config.include_forks:
        return False

    if repo.is_archived and not config.include_archived:
        return False

    if config.org_allowlist and repo.owner not in config.org_allowlist:
        return False

    if config.repo_allowlist and repo.full_name not in config.repo_allowlist:
        return False

    if repo.full_name in config.repo_blocklist:
        return False

    return True


async def discover_repos(client: GitHubClient, config: CollectorConfig) -> list[RepoEntry]:
    """Discover repositories the authenticated user can push to.

    Args:
        client: Opened client for the single identity.
        config: Collector configuration with the filters.

    Returns:
        Repositories that have push permission and pass the filters.
    """
    console.print("[cyan]\\[discover] Fetching repositories...[/cyan]")
    raw_repos = await client.list_user_repos()
    console.print(f"\\[discover] Found {len(raw_repos)} total repos from API")

    repos = [
        RepoEntry.from_api(raw)
        for raw in raw_repos
        if Permissions.from_api(raw).push
    ]
    filtered = [repo for repo in repos if passes_filters(repo, config)]

    console.print(f"\\[discover] {len(filtered)} repos after filtering")
    return filtered


async def discover_repos_app(
    auth: AppAuth,
    clients: dict[str, GitHubClient],
    config: CollectorConfig,
    errors: list[str] | None = None,
) -> list[RepoEntry]:
    """Discover repositories across every owner's app installation.

    A repository granted to several installations is kept once, routed
    through the owner with the strongest permissions. Push permission is not
    required here: installation permissions only decide deduplication.

    Args:
        auth: Multi-owner credentials.
        clients: Opened client per owner.
        config: Collector configuration with the filters.
        errors: Run error list; per-owner listing failures are appended.

    Returns:
        Deduplicated, filtered repositories tagged with ``installation_owner``.
    """
    owners = auth.owners()
    console.print(f"[cyan]\\[discover] App mode: discovering repos for {len(owners)} owner(s)[/cyan]")

    seen: dict[int, tuple[RepoEntry, Permissions]] = {}

    for owner in owners:
        try:
            owner_repos = await clients[owner].list_installation_repos()
        except GitHubAPIError as e:
            console.print(f'[red]\\[discover] Failed to list repos for owner "{owner}": {e}[/red]')
            if errors is not None:
                errors.append(f"discover({owner}): {e}")
            continue

        console.print(f'\\[discover] Owner "{owner}": {len(owner_repos)} repos from installation')

        for raw in owner_repos:
            entry = RepoEntry.from_api(raw, installation_owner=owner)
            perms = Permissions.from_api(raw)

            existing = seen.get(entry.id)
            if existing is None:
                seen[entry.id] = (entry, perms)
                continue

            kept, kept_perms = existing
            if should_replace_entry(kept_perms, perms):
                console.print(
                    f"[dim]\\[discover] Duplicate repo {entry.full_name} (id={entry.id}): "
                    f'replacing owner "{kept.installation_owner}" with "{owner}" '
                    f"(stronger permissions)[/dim]"
                )
                seen[entry.id] = (entry, perms)
            else:
                console.print(
                    f"[dim]\\[discover] Duplicate repo {entry.full_name} (id={entry.id}): "
                    f'keeping owner "{kept.installation_owner}" over "{owner}"[/dim]'
                )

    all_repos = [entry for entry, _ in seen.values()]
    filtered = [repo for repo in all_repos if passes_filters(repo, config)]

    console.print(f"\\[discover] {len(filtered)} repos after filtering (from {len(all_repos)} total)")
    return filtered
