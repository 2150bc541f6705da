"""Schemas for the JSON files persisted under the data directory.

Every file carries ``schemaVersion: 1`` and uses camelCase keys.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = 1


class FileModel(BaseModel):
    """Base for persisted models: camelCase on disk, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self, exclude_none: bool = True) -> dict:
        """Dump to a JSON-ready dict using on-disk key names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=exclude_none)


class TrafficDay(FileModel):
    """One day of views/clones for one repository."""

    views: int = Field(default=0, ge=0)
    views_unique: int = Field(default=0, ge=0)
    clones: int = Field(default=0, ge=0)
    clones_unique: int = Field(default=0, ge=0)

    def has_counts(self) -> bool:
        return any((self.views, self.views_unique, self.clones, self.clones_unique))


class Snapshot(FileModel):
    """Point-in-time repository counters."""

    stars: int = Field(ge=0)
    forks: int = Field(ge=0)
    open_issues: int = Field(ge=0)
    open_prs: int = Field(ge=0, alias="openPRs")
    watchers: int = Field(ge=0)
    size: int = Field(ge=0)


class ContributionDay(FileModel):
    date: str
    count: int = Field(ge=0)


class Referrer(FileModel):
    referrer: str
    count: int = Field(ge=0)
    uniques: int = Field(ge=0)


class PopularPath(FileModel):
    path: str
    title: str
    count: int = Field(ge=0)
    uniques: int = Field(ge=0)


class DailyRepoEntry(FileModel):
    full_name: str
    is_private: bool = False
    traffic: TrafficDay | None = None
    snapshot: Snapshot | None = None


class DailyFile(FileModel):
    """All repositories' metrics for one calendar date (daily/YYYY/MM/DD.json)."""

    schema_version: Literal[1] = SCHEMA_VERSION
    date: str
    collected_at: str
    collector_version: str
    repos: dict[int, DailyRepoEntry] = Field(default_factory=dict)
    contributions: list[ContributionDay] | None = None


class WindowRepoEntry(FileModel):
    full_name: str
    referrers: list[Referrer] = Field(default_factory=list)
    paths: list[PopularPath] = Field(default_factory=list)


class WindowFile(FileModel):
    """GitHub's 14-day referrer/path aggregate as seen on one run-day."""

    schema_version: Literal[1] = SCHEMA_VERSION
    date: str
    collected_at: str
    collector_version: str
    repos: dict[int, WindowRepoEntry] = Field(default_factory=dict)


class RepoMetaEntry(FileModel):
    id: int
    full_name: str
    is_private: bool
    is_fork: bool
    is_archived: bool
    default_branch: str
    language: str | None = None
    description: str | None = None


class RepoMetaFile(FileModel):
    schema_version: Literal[1] = SCHEMA_VERSION
    collected_at: str
    repos: list[RepoMetaEntry] = Field(default_factory=list)


class LastRunFile(FileModel):
    """Diagnostic record of the most recent collection run."""

    schema_version: Literal[1] = SCHEMA_VERSION
    started_at: str
    finished_at: str
    collector_version: str
    auth_mode: Literal["pat", "app"]
    repos_discovered: int = Field(ge=0)
    repos_collected: int = Field(ge=0)
    errors: list[str] = Field(default_factory=list)


class RoutingFile(FileModel):
    """Internal repo id to owner mapping for multi-identity runs. Never published."""

    schema_version: Literal[1] = SCHEMA_VERSION
    generated_at: str
    repo_id_to_owner: dict[str, str] = Field(default_factory=dict)
