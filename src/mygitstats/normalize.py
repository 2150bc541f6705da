"""Fold freshly fetched metrics into the daily and window files.

Traffic counts merge monotonically: for a given (date, repo, metric) the stored
value is the maximum of everything ever observed for that date. GitHub reports
partial counts for the current day and a trailing 14-day window, so a later,
more complete read must win over an earlier, smaller one, and re-running a
collection must never lower a recorded count.
"""

from collections.abc import Iterable, Mapping

from rich.console import Console

from mygitstats.dates import utc_now_iso
from mygitstats.models import RepoEntry, TrafficPoint, TrafficResult
from mygitstats.schema import (
    ContributionDay,
    DailyFile,
    DailyRepoEntry,
    Snapshot,
    TrafficDay,
    WindowFile,
    WindowRepoEntry,
)
from mygitstats.storage import DataStore

console = Console()


def dates_to_write(traffic_by_repo: Mapping[int, TrafficResult], today: str) -> list[str]:
    """Today plus every date touched by any view or clone bucket, sorted."""
    dates = {today}
    for traffic in traffic_by_repo.values():
        dates |= traffic.dates()
    return sorted(dates)


def _points_on(points: Iterable[TrafficPoint], date_str: str) -> list[TrafficPoint]:
    return [p for p in points if p.date == date_str]


def merge_traffic_day(
    existing: TrafficDay | None,
    views: list[TrafficPoint],
    clones: list[TrafficPoint],
) -> TrafficDay | None:
    """Merge one date's observations into the stored traffic block.

    Args:
        existing: Stored block for this date, if any.
        views: View buckets for this date.
        clones: Clone buckets for this date.

    Returns:
        The merged block, or None when there is nothing to record (all
        counts zero and no block stored before).
    """
    base = existing or TrafficDay()
    merged = TrafficDay(
        views=max([base.views, *(p.count for p in views)]),
        views_unique=max([base.views_unique, *(p.uniques for p in views)]),
        clones=max([base.clones, *(p.count for p in clones)]),
        clones_unique=max([base.clones_unique, *(p.uniques for p in clones)]),
    )
    if existing is None and not merged.has_counts():
        return None
    return merged


def build_daily_file(
    date_str: str,
    existing: DailyFile | None,
    traffic_by_repo: Mapping[int, TrafficResult],
    snapshots: Mapping[int, Snapshot],
    contributions: list[ContributionDay],
    repo_by_id: Mapping[int, RepoEntry],
    today: str,
    collected_at: str,
    collector_version: str,
) -> DailyFile:
    """Produce the new content of one daily file.

    Entries for repositories not fetched in this run are carried over as-is.
    Snapshots and contributions only go into today's file.
    """
    entries: dict[int, DailyRepoEntry] = (
        {repo_id: entry.model_copy(deep=True) for repo_id, entry in existing.repos.items()}
        if existing
        else {}
    )

    def entry_for(meta: RepoEntry) -> DailyRepoEntry:
        entry = entries.get(meta.id)
        if entry is None:
            entry = DailyRepoEntry(full_name=meta.full_name, is_private=meta.is_private)
        entry.full_name = meta.full_name
        return entry

    for repo_id, traffic in traffic_by_repo.items():
        meta = repo_by_id.get(repo_id)
        if meta is None:
            continue

        views = _points_on(traffic.views, date_str)
        clones = _points_on(traffic.clones, date_str)
        if not views and not clones:
            continue

        current = entries.get(repo_id)
        merged = merge_traffic_day(current.traffic if current else None, views, clones)
        if merged is None:
            continue

        entry = entry_for(meta)
        entry.traffic = merged
        entries[repo_id] = entry

    if date_str == today:
        for repo_id, snapshot in snapshots.items():
            meta = repo_by_id.get(repo_id)
            if meta is None:
                continue
            entry = entry_for(meta)
            entry.snapshot = snapshot
            entries[repo_id] = entry

    contribution_days = existing.contributions if existing else None
    if date_str == today and contributions:
        contribution_days = list(contributions)

    return DailyFile(
        date=date_str,
        collected_at=collected_at,
        collector_version=collector_version,
        repos=dict(sorted(entries.items())),
        contributions=contribution_days,
    )


def write_daily_files(
    store: DataStore,
    traffic_by_repo: Mapping[int, TrafficResult],
    snapshots: Mapping[int, Snapshot],
    contributions: list[ContributionDay],
    repos: list[RepoEntry],
    today: str,
    collector_version: str,
    errors: list[str],
    collected_at: str | None = None,
) -> list[str]:
    """Read-modify-write the daily file of every date this run touches.

    Today's file goes first. A date whose file cannot be read or written is
    recorded in ``errors`` and left untouched; the remaining dates still go out.

    Args:
        store: Data directory.
        traffic_by_repo: Successful traffic results keyed by repo id.
        snapshots: Snapshots keyed by repo id.
        contributions: Contribution calendar (empty outside PAT mode).
        repos: Repositories discovered in this run.
        today: Current UTC date.
        collector_version: Version tag recorded in each file.
        errors: Run error list; per-date failures are appended.
        collected_at: Timestamp recorded in each file (defaults to now).

    Returns:
        The dates whose files were written.
    """
    collected_at = collected_at or utc_now_iso()
    repo_by_id = {repo.id: repo for repo in repos}
    dates = dates_to_write(traffic_by_repo, today)
    written: list[str] = []

    for date_str in [today, *(d for d in dates if d != today)]:
        try:
            daily = build_daily_file(
                date_str,
                store.read_daily(date_str),
                traffic_by_repo,
                snapshots,
                contributions,
                repo_by_id,
                today,
                collected_at,
                collector_version,
            )
            store.write_daily(daily)
        except (ValueError, OSError) as e:
            console.print(f"[red]\\[normalize] Failed to write daily file for {date_str}: {e}[/red]")
            errors.append(f"writeDailyFiles({date_str}): {e}")
            continue
        written.append(date_str)

    console.print(f"[green]\\[normalize] Wrote {len(written)} daily file(s)[/green]")
    return written


def build_window_file(
    traffic_by_repo: Mapping[int, TrafficResult],
    repo_by_id: Mapping[int, RepoEntry],
    today: str,
    collected_at: str,
    collector_version: str,
) -> WindowFile | None:
    """Window file content, or None when no repository has referrers or paths."""
    window_repos: dict[int, WindowRepoEntry] = {}

    for repo_id, traffic in sorted(traffic_by_repo.items()):
        meta = repo_by_id.get(repo_id)
        if meta is None or not traffic.has_window_data():
            continue
        window_repos[repo_id] = WindowRepoEntry(
            full_name=meta.full_name,
            referrers=traffic.referrers,
            paths=traffic.paths,
        )

    if not window_repos:
        return None

    return WindowFile(
        date=today,
        collected_at=collected_at,
        collector_version=collector_version,
        repos=window_repos,
    )


def write_window_file(
    store: DataStore,
    traffic_by_repo: Mapping[int, TrafficResult],
    repos: list[RepoEntry],
    today: str,
    collector_version: str,
    collected_at: str | None = None,
) -> bool:
    """Overwrite today's window file with the referrer/path aggregate.

    Returns:
        Whether a file was written.
    """
    window = build_window_file(
        traffic_by_repo,
        {repo.id: repo for repo in repos},
        today,
        collected_at or utc_now_iso(),
        collector_version,
    )
    if window is None:
        console.print("[dim]\\[normalize] No referrer/path data to write for window file[/dim]")
        return False

    store.write_window(window)
    console.print(f"[green]\\[normalize] Wrote window file for {today}[/green]")
    return True
