"""Build the dashboard dataset from the collected data directory.

Reads daily/, windows/ and meta/ and writes the published files::

    index.json                   repo summaries, totals, date range
    repos/<owner>/<repo>.json    full day series and week-over-week deltas
    contributions.json           contribution calendar
    referrers.json               latest referrer/path window
    meta/repos.json, meta/last-run.json

Private repositories are only published when listed in ``publish_private_repos``.
"""

import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import polars as pl
from rich.console import Console

from mygitstats.dates import utc_now_iso
from mygitstats.schema import DailyFile, RepoMetaEntry, WindowFile
from mygitstats.storage import DataStore, read_json, write_json

console = Console()

ALLOWED_META_FILES = frozenset({"repos.json", "last-run.json"})
KNOWN_INTERNAL_META_FILES = frozenset({"routing.json"})

DAY_SCHEMA = {
    "date": pl.Utf8,
    "repo_id": pl.Int64,
    "full_name": pl.Utf8,
    "views": pl.Int64,
    "views_unique": pl.Int64,
    "clones": pl.Int64,
    "clones_unique": pl.Int64,
    "stars": pl.Int64,
    "forks": pl.Int64,
}


def is_allowed_meta_file(name: str) -> bool:
    """Whether a meta file may be published (exact name match)."""
    return name in ALLOWED_META_FILES


def is_known_meta_file(name: str) -> bool:
    return name in ALLOWED_META_FILES or name in KNOWN_INTERNAL_META_FILES


def compute_delta(current: int, previous: int) -> dict:
    """Week-over-week change.

    A rise from zero counts as +100%; zero to zero is no change.
    """
    if previous == 0:
        change = 1.0 if current > 0 else 0.0
    else:
        change = (current - previous) / previous
    return {"current": current, "previous": previous, "change": change}


@dataclass
class DatasetSummary:
    """What a dataset build produced."""

    repos: int = 0
    days: int = 0
    private_published: list[str] = field(default_factory=list)


class PrivacyFilter:
    """Decides which repositories may appear in the published dataset.

    Repositories without a metadata record are included; public ones always
    are; private ones only when their full name is allow-listed.
    """

    def __init__(self, meta: list[RepoMetaEntry], publish_private_repos: list[str]):
        self.meta_by_id = {entry.id: entry for entry in meta}
        self.publish_private = set(publish_private_repos)

    def __call__(self, repo_id: int, full_name: str) -> bool:
        meta = self.meta_by_id.get(repo_id)
        if meta is None or not meta.is_private:
            return True
        return full_name in self.publish_private

    def is_published_private(self, repo_id: int, full_name: str) -> bool:
        meta = self.meta_by_id.get(repo_id)
        return meta is not None and meta.is_private and full_name in self.publish_private


def load_daily_files(store: DataStore) -> list[DailyFile]:
    """Parse every daily file, skipping invalid ones, sorted by date."""
    days = []
    for path in store.daily_files():
        try:
            days.append(DailyFile.model_validate(read_json(path)))
        except ValueError as e:
            console.print(f"[yellow]\\[build] skipping invalid daily file {path}: {e}[/yellow]")
    return sorted(days, key=lambda d: d.date)


def daily_frame(days: list[DailyFile], include: Callable[[int, str], bool]) -> pl.DataFrame:
    """Flatten daily files into one row per (date, repo).

    Stars and forks are carried forward from the most recent earlier snapshot
    of the same repository, and are 0 before the first one.
    """
    rows = []
    for day in days:
        for repo_id, entry in day.repos.items():
            if not include(repo_id, entry.full_name):
                continue
            traffic = entry.traffic
            snapshot = entry.snapshot
            rows.append(
                {
                    "date": day.date,
                    "repo_id": repo_id,
                    "full_name": entry.full_name,
                    "views": traffic.views if traffic else 0,
                    "views_unique": traffic.views_unique if traffic else 0,
                    "clones": traffic.clones if traffic else 0,
                    "clones_unique": traffic.clones_unique if traffic else 0,
                    "stars": snapshot.stars if snapshot else None,
                    "forks": snapshot.forks if snapshot else None,
                }
            )

    df = pl.DataFrame(rows, schema=DAY_SCHEMA)
    return df.sort(["repo_id", "date"]).with_columns(
        pl.col("stars").forward_fill().over("repo_id").fill_null(0),
        pl.col("forks").forward_fill().over("repo_id").fill_null(0),
    )


def _window_totals(df: pl.DataFrame, dates: list[str]) -> dict[int, dict]:
    """Per-repo view/clone sums and latest stars over the given dates."""
    if not dates:
        return {}
    totals = (
        df.filter(pl.col("date").is_in(dates))
        .sort("date")
        .group_by("repo_id")
        .agg(
            pl.col("views").sum(),
            pl.col("clones").sum(),
            pl.col("stars").last(),
        )
    )
    return {row["repo_id"]: row for row in totals.iter_rows(named=True)}


def _day_entries(repo_df: pl.DataFrame) -> list[dict]:
    return [
        {
            "date": row["date"],
            "views": row["views"],
            "viewsUnique": row["views_unique"],
            "clones": row["clones"],
            "clonesUnique": row["clones_unique"],
            "stars": row["stars"],
            "forks": row["forks"],
        }
        for row in repo_df.sort("date").iter_rows(named=True)
    ]


def build_referrers(window: WindowFile, include: Callable[[int, str], bool]) -> dict:
    repos = {}
    for repo_id, entry in window.repos.items():
        if not include(repo_id, entry.full_name):
            continue
        repos[entry.full_name] = {
            "referrers": [r.to_json_dict() for r in entry.referrers],
            "paths": [p.to_json_dict() for p in entry.paths],
        }
    return {"date": window.date, "repos": repos}


def _latest_referrers(store: DataStore, include: Callable[[int, str], bool]) -> dict:
    window_files = store.window_files()
    if not window_files:
        return {"date": "", "repos": {}}
    latest = window_files[-1]
    try:
        window = WindowFile.model_validate(read_json(latest))
    except ValueError as e:
        console.print(f"[yellow]\\[build] skipping invalid window file {latest}: {e}[/yellow]")
        return {"date": "", "repos": {}}
    return build_referrers(window, include)


def publish_meta_files(store: DataStore, output_dir: Path) -> list[str]:
    """Copy the publishable meta files. routing.json and unknown files stay private."""
    published = []
    if not store.meta_dir.exists():
        return published

    for path in sorted(store.meta_dir.iterdir()):
        if not path.is_file():
            continue
        if is_allowed_meta_file(path.name):
            target = output_dir / "meta" / path.name
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(path, target)
            published.append(path.name)
        elif not is_known_meta_file(path.name):
            console.print(f"[yellow]\\[build] not publishing unknown meta file {path.name}[/yellow]")
    return published


def write_empty_dataset(output_dir: Path) -> None:
    write_json(
        output_dir / "index.json",
        {
            "generatedAt": utc_now_iso(),
            "dateRange": {"start": "", "end": ""},
            "totals": {"repos": 0, "stars": 0, "forks": 0, "views": 0, "clones": 0},
            "repos": [],
        },
    )
    write_json(output_dir / "contributions.json", {"days": []})
    write_json(output_dir / "referrers.json", {"date": "", "repos": {}})


def build_dataset(
    data_dir: Path,
    output_dir: Path,
    publish_private_repos: list[str] | None = None,
) -> DatasetSummary:
    """Transform the data directory into the dashboard dataset.

    Args:
        data_dir: Collector data directory.
        output_dir: Where to write the published files.
        publish_private_repos: Full names of private repos allowed to be published.

    Returns:
        Counts of what was written.
    """
    console.print("[cyan]\\[build] starting data transform...[/cyan]")
    store = DataStore(data_dir)

    meta: list[RepoMetaEntry] = []
    try:
        repo_meta = store.read_repo_meta()
    except ValueError as e:
        console.print(f"[yellow]\\[build] ignoring invalid meta/repos.json: {e}[/yellow]")
        repo_meta = None
    if repo_meta is None:
        console.print("[yellow]\\[build] no repo metadata available[/yellow]")
    else:
        meta = repo_meta.repos
    meta_by_id = {entry.id: entry for entry in meta}

    include = PrivacyFilter(meta, publish_private_repos or [])
    publish_meta_files(store, output_dir)

    days = load_daily_files(store)
    if not days:
        console.print("\\[build] no daily files found, writing empty dataset")
        write_empty_dataset(output_dir)
        return DatasetSummary()

    console.print(f"\\[build] found {len(days)} daily file(s)")

    # Later files win for the same contribution date.
    contribution_map: dict[str, int] = {}
    for day in days:
        for contribution in day.contributions or []:
            contribution_map[contribution.date] = contribution.count

    df = daily_frame(days, include)

    private_published = sorted(
        {
            name
            for repo_id, name in df.select("repo_id", "full_name").unique().iter_rows()
            if include.is_published_private(repo_id, name)
        }
    )
    if private_published:
        console.print(
            f"[bold yellow]\\[build] WARNING: Publishing {len(private_published)} private repo(s): "
            f"{', '.join(private_published)}[/bold yellow]"
        )

    all_dates = [day.date for day in days]
    current_week = _window_totals(df, all_dates[-7:])
    previous_week = _window_totals(df, all_dates[-14:-7])

    summaries = []
    for (repo_id,), repo_df in df.group_by("repo_id", maintain_order=True):
        day_entries = _day_entries(repo_df)
        full_name = repo_df.sort("date")["full_name"][-1]
        current = current_week.get(repo_id, {})
        previous = previous_week.get(repo_id, {})
        current_views = current.get("views") or 0
        current_clones = current.get("clones") or 0
        current_stars = current.get("stars") or 0
        previous_stars = previous.get("stars") or 0

        repo_series = {
            "id": repo_id,
            "fullName": full_name,
            "days": day_entries,
            "weekOverWeek": {
                "views": compute_delta(current_views, previous.get("views") or 0),
                "clones": compute_delta(current_clones, previous.get("clones") or 0),
                "stars": compute_delta(current_stars, previous_stars),
            },
        }
        owner, name = full_name.split("/", 1)
        write_json(output_dir / "repos" / owner / f"{name}.json", repo_series)

        latest = day_entries[-1]
        repo_meta_entry = meta_by_id.get(repo_id)
        summaries.append(
            {
                "id": repo_id,
                "fullName": full_name,
                "language": repo_meta_entry.language if repo_meta_entry else None,
                "description": repo_meta_entry.description if repo_meta_entry else None,
                "stars": latest["stars"],
                "forks": latest["forks"],
                "viewsThisWeek": current_views,
                "clonesThisWeek": current_clones,
                "starsGainedThisWeek": current_stars - previous_stars,
            }
        )

    summaries.sort(key=lambda s: s["stars"], reverse=True)

    write_json(
        output_dir / "index.json",
        {
            "generatedAt": utc_now_iso(),
            "dateRange": {"start": all_dates[0], "end": all_dates[-1]},
            "totals": {
                "repos": len(summaries),
                "stars": sum(s["stars"] for s in summaries),
                "forks": sum(s["forks"] for s in summaries),
                "views": sum(s["viewsThisWeek"] for s in summaries),
                "clones": sum(s["clonesThisWeek"] for s in summaries),
            },
            "repos": summaries,
        },
    )

    write_json(
        output_dir / "contributions.json",
        {"days": [{"date": d, "count": c} for d, c in sorted(contribution_map.items())]},
    )
    write_json(output_dir / "referrers.json", _latest_referrers(store, include))

    console.print(
        f"[green]\\[build] wrote dataset to {output_dir} "
        f"({len(summaries)} repos, {len(days)} days)[/green]"
    )
    return DatasetSummary(repos=len(summaries), days=len(days), private_published=private_published)
