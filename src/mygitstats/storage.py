"""File-based storage of collected data as date-partitioned JSON."""

import json
from pathlib import Path
from typing import TypeVar

from pydantic import BaseModel

from mygitstats.dates import date_path_parts
from mygitstats.schema import (
    DailyFile,
    FileModel,
    LastRunFile,
    RepoMetaFile,
    RoutingFile,
    WindowFile,
)

M = TypeVar("M", bound=BaseModel)

REPOS_FILE = "repos.json"
LAST_RUN_FILE = "last-run.json"
ROUTING_FILE = "routing.json"


def read_json(path: Path) -> object | None:
    """Read and parse a JSON file. Returns None if the file does not exist."""
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    return json.loads(text)


def write_json(path: Path, data: object) -> None:
    """Write a JSON file, creating parent directories as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def find_json_files(directory: Path) -> list[Path]:
    """All .json files under ``directory``, sorted (chronological for dated trees)."""
    if not directory.exists():
        return []
    return sorted(directory.rglob("*.json"))


class DataStore:
    """The collector's data directory.

    Layout::

        daily/YYYY/MM/DD.json     one per calendar date, merged across runs
        windows/YYYY/MM/DD.json   one per run-day, overwritten
        meta/repos.json           current repository list
        meta/last-run.json        diagnostics of the latest run
        meta/routing.json         repo id -> owner (multi-owner runs, internal)

    Attributes:
        data_dir: Root of the data directory.
    """

    def __init__(self, data_dir: Path):
        """Initialize storage rooted at ``data_dir``.

        Args:
            data_dir: Directory holding the daily/, windows/ and meta/ trees.
        """
        self.data_dir = data_dir

    @property
    def daily_dir(self) -> Path:
        return self.data_dir / "daily"

    @property
    def windows_dir(self) -> Path:
        return self.data_dir / "windows"

    @property
    def meta_dir(self) -> Path:
        return self.data_dir / "meta"

    def daily_path(self, date_str: str) -> Path:
        year, month, day = date_path_parts(date_str)
        return self.daily_dir / year / month / f"{day}.json"

    def window_path(self, date_str: str) -> Path:
        year, month, day = date_path_parts(date_str)
        return self.windows_dir / year / month / f"{day}.json"

    def meta_path(self, name: str) -> Path:
        return self.meta_dir / name

    def _read_model(self, path: Path, model: type[M]) -> M | None:
        data = read_json(path)
        if data is None:
            return None
        return model.model_validate(data)

    def _write_model(self, path: Path, model: FileModel, exclude_none: bool = True) -> Path:
        write_json(path, model.to_json_dict(exclude_none=exclude_none))
        return path

    def read_daily(self, date_str: str) -> DailyFile | None:
        """Load the daily file for a date.

        Returns:
            The parsed file, or None if none has been written yet.

        Raises:
            ValueError: If the file exists but is not valid JSON or fails validation.
        """
        return self._read_model(self.daily_path(date_str), DailyFile)

    def write_daily(self, daily: DailyFile) -> Path:
        return self._write_model(self.daily_path(daily.date), daily)

    def read_window(self, date_str: str) -> WindowFile | None:
        return self._read_model(self.window_path(date_str), WindowFile)

    def write_window(self, window: WindowFile) -> Path:
        return self._write_model(self.window_path(window.date), window)

    def read_repo_meta(self) -> RepoMetaFile | None:
        return self._read_model(self.meta_path(REPOS_FILE), RepoMetaFile)

    def write_repo_meta(self, meta: RepoMetaFile) -> Path:
        # language/description are written as null rather than dropped
        return self._write_model(self.meta_path(REPOS_FILE), meta, exclude_none=False)

    def read_last_run(self) -> LastRunFile | None:
        return self._read_model(self.meta_path(LAST_RUN_FILE), LastRunFile)

    def write_last_run(self, last_run: LastRunFile) -> Path:
        return self._write_model(self.meta_path(LAST_RUN_FILE), last_run)

    def read_routing(self) -> RoutingFile | None:
        return self._read_model(self.meta_path(ROUTING_FILE), RoutingFile)

    def write_routing(self, routing: RoutingFile) -> Path:
        return self._write_model(self.meta_path(ROUTING_FILE), routing)

    def daily_files(self) -> list[Path]:
        return find_json_files(self.daily_dir)

    def window_files(self) -> list[Path]:
        return find_json_files(self.windows_dir)
