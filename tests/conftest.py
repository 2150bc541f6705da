"""Shared test fixtures."""

import asyncio
from pathlib import Path

import pytest
import respx

from mygitstats.config import Settings
from mygitstats.models import RepoEntry, TrafficPoint, TrafficResult


def repo_payload(
    repo_id: int,
    full_name: str,
    private: bool = False,
    fork: bool = False,
    archived: bool = False,
    admin: bool = False,
    push: bool = True,
) -> dict:
    """A GitHub REST repository object with the fields discovery reads."""
    return {
        "id": repo_id,
        "full_name": full_name,
        "private": private,
        "fork": fork,
        "archived": archived,
        "default_branch": "main",
        "language": "Python",
        "description": f"{full_name} description",
        "permissions": {"admin": admin, "push": push, "pull": True},
    }


@pytest.fixture
def temp_data_dir(tmp_path: Path) -> Path:
    """Temporary directory for collected data files."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    return data_dir


@pytest.fixture
def mock_github_api():
    """Mock GitHub API responses."""
    with respx.mock(base_url="https://api.github.com") as respx_mock:
        yield respx_mock


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace asyncio.sleep with an instant fake and record requested waits."""
    waits: list[float] = []

    async def fake_sleep(delay: float, *args, **kwargs) -> None:
        waits.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return waits


@pytest.fixture
def widgets_repo() -> RepoEntry:
    return RepoEntry(id=101, full_name="acme/widgets", is_private=False, language="Python")


@pytest.fixture
def gadgets_repo() -> RepoEntry:
    return RepoEntry(id=202, full_name="acme/gadgets", is_private=True)


@pytest.fixture
def pat_settings(temp_data_dir: Path, tmp_path: Path) -> Settings:
    """Settings for a single-token run writing into the temp data directory."""
    return Settings(
        github_token="ghp_test",
        app_tokens="",
        data_dir=temp_data_dir,
        config_file=tmp_path / "missing.config.json",
        collector_version="test-sha",
    )


def traffic_result(
    views: dict[str, tuple[int, int]] | None = None,
    clones: dict[str, tuple[int, int]] | None = None,
) -> TrafficResult:
    """Build a TrafficResult from {date: (count, uniques)} maps."""
    return TrafficResult(
        views=[
            TrafficPoint(timestamp=f"{d}T00:00:00Z", count=c, uniques=u)
            for d, (c, u) in (views or {}).items()
        ],
        clones=[
            TrafficPoint(timestamp=f"{d}T00:00:00Z", count=c, uniques=u)
            for d, (c, u) in (clones or {}).items()
        ],
    )
