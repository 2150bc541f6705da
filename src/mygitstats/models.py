"""Data models for values fetched during a collection run."""

from dataclasses import dataclass, field
from enum import StrEnum

from mygitstats.dates import to_date_string
from mygitstats.schema import PopularPath, Referrer, RepoMetaEntry


@dataclass
class RepoEntry:
    """A repository visible to the collector in the current run.

    Attributes:
        id: Stable numeric GitHub id, the durable key across renames.
        full_name: "owner/name".
        is_private: Whether the repository is private.
        is_fork: Whether the repository is a fork.
        is_archived: Whether the repository is archived.
        default_branch: Default branch name.
        language: Primary language, if GitHub reports one.
        description: Repository description, if any.
        installation_owner: In multi-identity mode, the owner whose
            credentials must be used for calls against this repository.
    """

    id: int
    full_name: str
    is_private: bool
    is_fork: bool = False
    is_archived: bool = False
    default_branch: str = "main"
    language: str | None = None
    description: str | None = None
    installation_owner: str | None = None

    @property
    def owner(self) -> str:
        """Account or organization part of ``full_name``."""
        return self.full_name.split("/", 1)[0]

    @property
    def name(self) -> str:
        """Repository part of ``full_name``."""
        return self.full_name.split("/", 1)[1]

    @classmethod
    def from_api(cls, data: dict, installation_owner: str | None = None) -> "RepoEntry":
        """Build from a GitHub REST repository payload.

        Args:
            data: Repository object from the REST API.
            installation_owner: Owner to route later calls through.

        Returns:
            The corresponding RepoEntry.
        """
        return cls(
            id=data["id"],
            full_name=data["full_name"],
            is_private=bool(data.get("private", False)),
            is_fork=bool(data.get("fork") or False),
            is_archived=bool(data.get("archived") or False),
            default_branch=data.get("default_branch") or "main",
            language=data.get("language"),
            description=data.get("description"),
            installation_owner=installation_owner,
        )

    def to_meta(self) -> RepoMetaEntry:
        """Convert to the repos.json record. The routing owner is not included."""
        return RepoMetaEntry(
            id=self.id,
            full_name=self.full_name,
            is_private=self.is_private,
            is_fork=self.is_fork,
            is_archived=self.is_archived,
            default_branch=self.default_branch,
            language=self.language,
            description=self.description,
        )


@dataclass
class TrafficPoint:
    """One daily bucket from the views or clones endpoint."""

    timestamp: str
    count: int
    uniques: int

    @property
    def date(self) -> str:
        return to_date_string(self.timestamp)


@dataclass
class TrafficData:
    """Traffic data from GitHub API for the trailing 14-day window.

    Attributes:
        count: Total count over the period.
        uniques: Unique visitors/cloners over the period.
        items: Daily breakdown of traffic.
    """

    count: int
    uniques: int
    items: list[TrafficPoint]


class FetchStatus(StrEnum):
    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


TRAFFIC_CALLS = ("views", "clones", "referrers", "paths")


@dataclass
class TrafficResult:
    """Outcome of the four traffic calls for one repository.

    Lists belonging to a failed call are left empty and the call name is
    recorded in ``failed_calls``.
    """

    views: list[TrafficPoint] = field(default_factory=list)
    clones: list[TrafficPoint] = field(default_factory=list)
    referrers: list[Referrer] = field(default_factory=list)
    paths: list[PopularPath] = field(default_factory=list)
    failed_calls: list[str] = field(default_factory=list)

    @property
    def status(self) -> FetchStatus:
        if not self.failed_calls:
            return FetchStatus.OK
        if len(set(self.failed_calls)) >= len(TRAFFIC_CALLS):
            return FetchStatus.FAILED
        return FetchStatus.PARTIAL

    def has_window_data(self) -> bool:
        return bool(self.referrers or self.paths)

    def dates(self) -> set[str]:
        """Every calendar date mentioned by a view or clone bucket."""
        return {p.date for p in self.views} | {p.date for p in self.clones}
