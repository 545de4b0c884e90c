"""Domain models for the testtiming pipeline.

All models in this module use only Python standard library types,
ensuring zero external dependencies in the core domain.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Generic, TypeVar

T = TypeVar("T")

BUILD_URL_TEMPLATE = "https://ci.chromium.org/b/{build_id}"


def build_url(build_id: int) -> str:
    """Return the permalink of a build, for diagnostics."""
    return BUILD_URL_TEMPLATE.format(build_id=build_id)


def short_hash(commit_hash: str) -> str:
    """Return the first 8 characters of a commit hash."""
    return commit_hash[:8]


class BuildStatus(Enum):
    """Buildbucket build and step statuses."""

    STATUS_UNSPECIFIED = "STATUS_UNSPECIFIED"
    SCHEDULED = "SCHEDULED"
    STARTED = "STARTED"
    ENDED_MASK = "ENDED_MASK"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    INFRA_FAILURE = "INFRA_FAILURE"
    CANCELED = "CANCELED"

    @classmethod
    def parse(cls, value: str | None) -> "BuildStatus":
        """Parse a wire status name, mapping unknown values to unspecified."""
        try:
            return cls(value)
        except ValueError:
            return cls.STATUS_UNSPECIFIED


class TestStatus(Enum):
    """ResultDB test result statuses."""

    __test__ = False

    STATUS_UNSPECIFIED = "STATUS_UNSPECIFIED"
    PASS = "PASS"
    FAIL = "FAIL"
    CRASH = "CRASH"
    ABORT = "ABORT"
    SKIP = "SKIP"

    @classmethod
    def parse(cls, value: str | None) -> "TestStatus":
        """Parse a wire status name, mapping unknown values to unspecified."""
        try:
            return cls(value)
        except ValueError:
            return cls.STATUS_UNSPECIFIED


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a token-paginated listing."""

    items: tuple[T, ...]
    next_page_token: str = ""


@dataclass(frozen=True)
class Commit:
    """A commit on the source log, newest first in any fetched list."""

    hash: str
    time: datetime


@dataclass(frozen=True)
class BuilderConfigProperties:
    """Decoded builder configuration.

    The zero value (all defaults) stands for an absent or malformed config.
    """

    repo: str = ""
    go_branch: str = ""
    goarch: str = ""
    goos: str = ""
    known_issue: int = 0


@dataclass(frozen=True)
class BuilderEntry:
    """A builder as listed by Buildbucket, config still undecoded."""

    name: str
    properties: str  # JSON text of config.properties


@dataclass(frozen=True)
class Builder:
    """A named CI configuration for a repo/branch/platform combination."""

    name: str
    config: BuilderConfigProperties


@dataclass(frozen=True)
class LogLink:
    """A named log attached to a build or step."""

    name: str
    view_url: str
    url: str = ""


@dataclass(frozen=True)
class Step:
    """A single step of a build."""

    name: str
    status: BuildStatus
    logs: tuple[LogLink, ...] = ()


@dataclass(frozen=True)
class Build:
    """A raw build record, restricted to the fields of the search mask.

    `properties` is the build's output properties as a JSON object.
    """

    id: int
    builder_name: str
    status: BuildStatus
    properties: dict[str, Any] | MappingProxyType[str, Any]  # converted to proxy in __post_init__
    output_logs: tuple[LogLink, ...] = ()
    steps: tuple[Step, ...] = ()
    resultdb_hostname: str = ""
    invocation: str = ""
    end_time: datetime | None = None

    def __post_init__(self) -> None:
        """Convert properties dict to read-only proxy."""
        if isinstance(self.properties, dict):
            object.__setattr__(
                self, "properties", MappingProxyType(self.properties)
            )


@dataclass
class Failure:
    """A single failed test within a build."""

    test_id: str
    status: TestStatus
    log_url: str = ""
    log_text: str = ""


@dataclass
class BuildResult:
    """The canonical result of one builder at one commit.

    Owned by the reconciler's map until merged into a Dashboard.
    `commit_time` is stamped from the commit log during assembly,
    never taken from build metadata.
    """

    id: int
    status: BuildStatus
    commit_hash: str
    build_end_time: datetime | None
    builder_name: str
    config: BuilderConfigProperties  # shared with the Builder
    invocation_id: str
    commit_time: datetime | None = None
    companion_commit_hash: str = ""  # go commit, for subrepo builds
    log_url: str = ""  # textual log of the whole run
    log_text: str = ""
    step_log_url: str = ""  # log of the last failed step, if any
    step_log_text: str = ""
    failures: list[Failure] = field(default_factory=list)


@dataclass(frozen=True)
class Project:
    """A repository and the Go branch it is tested against."""

    repo: str
    go_branch: str

    @property
    def log_branch(self) -> str:
        """Branch whose commit log is listed.

        Subrepos are tested at their master branch against each Go branch,
        so only the main repo follows go_branch.
        """
        if self.repo == "go":
            return self.go_branch
        return "master"


@dataclass
class Dashboard:
    """The builder x commit matrix of canonical results for a time window.

    results[i][j] is the result of builders[i] at commits[j], or None.
    """

    project: Project
    builders: list[Builder] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    results: list[list[BuildResult | None]] = field(default_factory=list)

    def cells(self) -> list[tuple[Builder, BuildResult]]:
        """Return non-empty cells in builder-major, then commit order."""
        return [
            (builder, result)
            for builder, row in zip(self.builders, self.results)
            for result in row
            if result is not None
        ]


@dataclass(frozen=True)
class TestResult:
    """A single ResultDB test result."""

    __test__ = False

    test_id: str
    status: TestStatus
    duration_seconds: float


@dataclass(frozen=True)
class TestTiming:
    """One exported timing sample.

    Exactly one of pass_seconds and fail_seconds is set, so consumers can
    tell outcome classes apart without parsing the status.
    """

    __test__ = False

    commit_hash: str
    commit_time: datetime
    builder_name: str
    status: TestStatus
    pass_seconds: float | None = None
    fail_seconds: float | None = None

    def __post_init__(self) -> None:
        """Validate that exactly one duration is set."""
        if (self.pass_seconds is None) == (self.fail_seconds is None):
            raise ValueError("exactly one of pass_seconds and fail_seconds must be set")

