"""Tests for merging fetched metrics into daily and window files."""

from itertools import permutations
from pathlib import Path

import pytest
from conftest import traffic_result

from mygitstats.models import RepoEntry, TrafficResult
from mygitstats.normalize import (
    dates_to_write,
    merge_traffic_day,
    write_daily_files,
    write_window_file,
)
from mygitstats.schema import ContributionDay, Referrer, Snapshot, TrafficDay
from mygitstats.storage import DataStore

TODAY = "2024-01-03"


def snapshot(stars: int) -> Snapshot:
    return Snapshot(stars=stars, forks=1, open_issues=0, open_prs=0, watchers=1, size=10)


def run(
    store: DataStore,
    traffic: dict[int, TrafficResult],
    repos: list[RepoEntry],
    snapshots: dict[int, Snapshot] | None = None,
    contributions: list[ContributionDay] | None = None,
    today: str = TODAY,
    errors: list[str] | None = None,
) -> list[str]:
    return write_daily_files(
        store,
        traffic,
        snapshots or {},
        contributions or [],
        repos,
        today,
        "test",
        errors if errors is not None else [],
    )


class TestMergeTrafficDay:
    """Tests for merge_traffic_day."""

    def test_zero_without_existing_is_skipped(self) -> None:
        day = traffic_result(views={TODAY: (0, 0)})

        assert merge_traffic_day(None, day.views, day.clones) is None

    def test_zero_never_lowers_existing(self) -> None:
        existing = TrafficDay(views=5, views_unique=2)
        day = traffic_result(views={TODAY: (0, 0)})

        assert merge_traffic_day(existing, day.views, day.clones) == existing

    @pytest.mark.parametrize("order", list(permutations([3, 9, 6])))
    def test_result_is_max_regardless_of_order(self, order: tuple[int, ...]) -> None:
        stored: TrafficDay | None = None
        for count in order:
            day = traffic_result(views={TODAY: (count, count // 3)})
            stored = merge_traffic_day(stored, day.views, day.clones) or stored

        assert stored == TrafficDay(views=9, views_unique=3)


class TestWriteDailyFiles:
    """Tests for write_daily_files."""

    def test_dates_include_today_and_traffic_dates(self) -> None:
        traffic = {101: traffic_result(views={"2024-01-01": (1, 1)}, clones={"2024-01-02": (1, 1)})}

        assert dates_to_write(traffic, TODAY) == ["2024-01-01", "2024-01-02", TODAY]

    def test_later_larger_count_wins_and_smaller_is_ignored(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        """Test acme/widgets views for a date go 10 -> 15 and never back down."""
        store = DataStore(temp_data_dir)

        run(store, {101: traffic_result(views={"2024-01-01": (10, 4)})}, [widgets_repo])
        run(store, {101: traffic_result(views={"2024-01-01": (15, 6)})}, [widgets_repo])
        run(store, {101: traffic_result(views={"2024-01-01": (12, 5)})}, [widgets_repo])

        entry = store.read_daily("2024-01-01").repos[101]
        assert entry.full_name == "acme/widgets"
        assert entry.traffic.views == 15
        assert entry.traffic.views_unique == 6

    def test_rerun_is_idempotent(self, temp_data_dir: Path, widgets_repo: RepoEntry) -> None:
        store = DataStore(temp_data_dir)
        traffic = {101: traffic_result(views={"2024-01-02": (7, 3)}, clones={"2024-01-02": (2, 1)})}

        run(store, traffic, [widgets_repo], snapshots={101: snapshot(40)})
        first = store.read_daily("2024-01-02").repos
        run(store, traffic, [widgets_repo], snapshots={101: snapshot(40)})

        assert store.read_daily("2024-01-02").repos == first

    def test_snapshot_only_in_today(self, temp_data_dir: Path, widgets_repo: RepoEntry) -> None:
        store = DataStore(temp_data_dir)

        run(
            store,
            {101: traffic_result(views={"2024-01-01": (3, 1)})},
            [widgets_repo],
            snapshots={101: snapshot(12)},
        )

        assert store.read_daily("2024-01-01").repos[101].snapshot is None
        today = store.read_daily(TODAY).repos[101]
        assert today.snapshot.stars == 12
        assert today.traffic is None

    def test_snapshot_overwritten_not_maxed(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)

        run(store, {}, [widgets_repo], snapshots={101: snapshot(12)})
        run(store, {}, [widgets_repo], snapshots={101: snapshot(11)})

        assert store.read_daily(TODAY).repos[101].snapshot.stars == 11

    def test_contributions_only_in_today_and_only_when_present(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)
        contributions = [ContributionDay(date="2024-01-02", count=4)]

        run(
            store,
            {101: traffic_result(views={"2024-01-02": (1, 1)})},
            [widgets_repo],
            contributions=contributions,
        )
        run(store, {}, [widgets_repo])

        assert store.read_daily("2024-01-02").contributions is None
        assert store.read_daily(TODAY).contributions == contributions

    def test_other_repos_carried_over(
        self, temp_data_dir: Path, widgets_repo: RepoEntry, gadgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)

        run(store, {202: traffic_result(views={"2024-01-02": (8, 2)})}, [gadgets_repo])
        run(store, {101: traffic_result(views={"2024-01-02": (1, 1)})}, [widgets_repo])

        repos = store.read_daily("2024-01-02").repos
        assert list(repos) == [101, 202]
        assert repos[202].traffic.views == 8
        assert repos[202].is_private is True

    def test_rename_updates_full_name(self, temp_data_dir: Path, widgets_repo: RepoEntry) -> None:
        store = DataStore(temp_data_dir)
        renamed = RepoEntry(id=101, full_name="acme/sprockets", is_private=False)

        run(store, {101: traffic_result(views={"2024-01-02": (1, 1)})}, [widgets_repo])
        run(store, {101: traffic_result(views={"2024-01-02": (2, 1)})}, [renamed])

        assert store.read_daily("2024-01-02").repos[101].full_name == "acme/sprockets"

    def test_all_zero_repo_not_added(self, temp_data_dir: Path, widgets_repo: RepoEntry) -> None:
        store = DataStore(temp_data_dir)

        run(store, {101: traffic_result(views={"2024-01-02": (0, 0)})}, [widgets_repo])

        assert store.read_daily("2024-01-02").repos == {}

    def test_unreadable_existing_file_recorded_and_kept(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)
        path = store.daily_path(TODAY)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        errors: list[str] = []

        written = run(store, {}, [widgets_repo], errors=errors)

        assert written == []
        assert path.read_text() == "{not json"
        assert len(errors) == 1
        assert errors[0].startswith(f"writeDailyFiles({TODAY}):")

    def test_corrupt_past_file_does_not_block_other_dates(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        """Test today's snapshot and newer traffic still land past a corrupt file."""
        store = DataStore(temp_data_dir)
        corrupt = store.daily_path("2024-01-01")
        corrupt.parent.mkdir(parents=True)
        corrupt.write_text("{not json")
        traffic = {
            101: traffic_result(views={"2024-01-01": (3, 1), "2024-01-02": (5, 2)}),
        }
        errors: list[str] = []

        written = run(store, traffic, [widgets_repo], snapshots={101: snapshot(9)}, errors=errors)

        assert written == [TODAY, "2024-01-02"]
        assert len(errors) == 1
        assert errors[0].startswith("writeDailyFiles(2024-01-01):")
        assert corrupt.read_text() == "{not json"
        assert store.read_daily(TODAY).repos[101].snapshot.stars == 9
        assert store.read_daily("2024-01-02").repos[101].traffic.views == 5


class TestWriteWindowFile:
    """Tests for write_window_file."""

    def test_no_window_data_writes_nothing(
        self, temp_data_dir: Path, widgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)

        written = write_window_file(
            store, {101: traffic_result(views={TODAY: (1, 1)})}, [widgets_repo], TODAY, "test"
        )

        assert written is False
        assert store.window_files() == []

    def test_only_repos_with_referrers_or_paths(
        self, temp_data_dir: Path, widgets_repo: RepoEntry, gadgets_repo: RepoEntry
    ) -> None:
        store = DataStore(temp_data_dir)
        with_referrers = TrafficResult(
            referrers=[Referrer(referrer="news.ycombinator.com", count=30, uniques=20)]
        )

        written = write_window_file(
            store,
            {101: with_referrers, 202: traffic_result(views={TODAY: (1, 1)})},
            [widgets_repo, gadgets_repo],
            TODAY,
            "test",
        )

        window = store.read_window(TODAY)
        assert written is True
        assert list(window.repos) == [101]
        assert window.repos[101].referrers[0].count == 30
        assert window.repos[101].paths == []
