"""Port interfaces for the testtiming pipeline.

These abstract base classes define the boundaries between core
domain logic and external adapters. Implementations live in the
adapters/ package.

Every port is driven (the core calls out to it):
- SourceLogPort: commit log of a repository (Gitiles)
- BuildbucketPort: builder listing and build search (Buildbucket)
- TestResultsPort: per-invocation test results (ResultDB)

Listing methods return a single Page; driving a listing to completion
is the core's job (see pagination.py).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from .models import Build, BuilderEntry, Commit, Page, TestResult


@dataclass(frozen=True)
class BuildPredicate:
    """Selects the builds of one builder created at or after a time."""

    project: str
    bucket: str
    builder: str
    create_time_start: datetime


class SourceLogPort(ABC):
    """Port for reading the commit log of a repository."""

    @abstractmethod
    async def log(
        self,
        project: str,
        committish: str,
        page_size: int,
        page_token: str = "",
    ) -> Page[Commit]:
        """Retrieve one page of the commit log, newest first.

        Args:
            project: Repository name (e.g. "go", "tools").
            committish: Ref to walk, e.g. "refs/heads/master".
            page_size: Maximum number of commits in the page.
            page_token: Continuation token from the previous page, or "".

        Returns:
            Page of commits with the token of the next page ("" if last).

        Raises:
            RemoteServiceError: If the service is unreachable or errors.
        """


class BuildbucketPort(ABC):
    """Port for listing builders and searching builds."""

    @abstractmethod
    async def list_builders(
        self,
        project: str,
        bucket: str,
        page_size: int,
        page_token: str = "",
    ) -> Page[BuilderEntry]:
        """Retrieve one page of the builders of a project bucket.

        Raises:
            RemoteServiceError: If the service is unreachable or errors.
        """

    @abstractmethod
    async def search_builds(
        self,
        predicate: BuildPredicate,
        fields: tuple[str, ...],
        page_size: int,
        page_token: str = "",
    ) -> Page[Build]:
        """Retrieve one page of builds matching a predicate.

        Args:
            predicate: Builder and creation time window.
            fields: Field mask paths; only these fields are transferred.
            page_size: Maximum number of builds in the page.
            page_token: Continuation token from the previous page, or "".

        Raises:
            RemoteServiceError: If the service is unreachable or errors.
        """


class TestResultsPort(ABC):
    """Port for querying test results of result-store invocations."""

    __test__ = False

    @abstractmethod
    async def query_test_results(
        self, invocations: list[str], test_id_regexp: str
    ) -> list[TestResult]:
        """Retrieve test results whose test ID fully matches a pattern.

        Args:
            invocations: Invocation names, e.g. "invocations/build-123".
            test_id_regexp: Regular expression the whole test ID must match.

        Returns:
            Matching results, in service order.

        Raises:
            RemoteServiceError: If the service is unreachable or errors.
        """
