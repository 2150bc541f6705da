"""Validate the data directory against the file schemas."""

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel

from mygitstats.schema import DailyFile, LastRunFile, RepoMetaFile, RoutingFile, WindowFile
from mygitstats.storage import LAST_RUN_FILE, REPOS_FILE, ROUTING_FILE, DataStore, read_json


@dataclass
class VerifyReport:
    """Outcome of a verification pass.

    Attributes:
        checked: Number of files examined.
        ok: Paths that validated.
        failures: (path, reason) for every invalid file.
    """

    checked: int = 0
    ok: list[Path] = field(default_factory=list)
    failures: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures


def _validate(path: Path, model: type[BaseModel], report: VerifyReport) -> None:
    report.checked += 1
    try:
        model.model_validate(read_json(path))
    except ValueError as e:
        report.failures.append((path, str(e)))
    else:
        report.ok.append(path)


def verify_data(data_dir: Path) -> VerifyReport:
    """Validate every daily, window and meta file under ``data_dir``."""
    store = DataStore(data_dir)
    report = VerifyReport()

    for path in store.daily_files():
        _validate(path, DailyFile, report)

    for path in store.window_files():
        _validate(path, WindowFile, report)

    for name, model in (
        (REPOS_FILE, RepoMetaFile),
        (LAST_RUN_FILE, LastRunFile),
        (ROUTING_FILE, RoutingFile),
    ):
        path = store.meta_path(name)
        if path.exists():
            _validate(path, model, report)

    return report
