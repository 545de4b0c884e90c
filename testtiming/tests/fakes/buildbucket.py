"""Fake BuildbucketPort implementation for testing."""

import asyncio

from testtiming.core.models import Build, BuilderEntry, Page
from testtiming.core.ports import BuildbucketPort, BuildPredicate


class FakeBuildbucketPort(BuildbucketPort):
    """In-memory Buildbucket for testing.

    Builders are served from token-keyed pages. Builds are registered per
    builder name and served as token-keyed pages too. Tests can make a
    builder's search fail, or block until cancelled, and can inspect how
    many searches were in flight at once.
    """

    def __init__(self) -> None:
        """Initialize with no builders or builds."""
        self.builder_pages: dict[str, Page[BuilderEntry]] = {}
        self.build_pages: dict[str, dict[str, Page[Build]]] = {}
        self.list_builders_tokens: list[str] = []
        self.searches: list[tuple[BuildPredicate, tuple[str, ...], str]] = []
        self.errors: dict[str, Exception] = {}
        self.blocking: set[str] = set()
        self.cancelled: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.search_delay = 0.0

    def add_builder_page(
        self, token: str, entries: list[BuilderEntry], next_token: str = ""
    ) -> None:
        """Register the builder page returned for token."""
        self.builder_pages[token] = Page(items=tuple(entries), next_page_token=next_token)

    def add_builders(self, entries: list[BuilderEntry]) -> None:
        """Register entries as a single builder page."""
        self.add_builder_page("", entries)

    def add_build_page(
        self, builder: str, token: str, builds: list[Build], next_token: str = ""
    ) -> None:
        """Register the build page of builder returned for token."""
        self.build_pages.setdefault(builder, {})[token] = Page(
            items=tuple(builds), next_page_token=next_token
        )

    def add_builds(self, builder: str, builds: list[Build]) -> None:
        """Register builds of builder as a single page."""
        self.add_build_page(builder, "", builds)

    def fail_builder(self, builder: str, error: Exception) -> None:
        """Make build searches of builder raise error."""
        self.errors[builder] = error

    def block_builder(self, builder: str) -> None:
        """Make build searches of builder wait until cancelled."""
        self.blocking.add(builder)

    async def list_builders(
        self,
        project: str,
        bucket: str,
        page_size: int,
        page_token: str = "",
    ) -> Page[BuilderEntry]:
        """Return the builder page registered for page_token."""
        self.list_builders_tokens.append(page_token)
        return self.builder_pages.get(page_token, Page(items=()))

    async def search_builds(
        self,
        predicate: BuildPredicate,
        fields: tuple[str, ...],
        page_size: int,
        page_token: str = "",
    ) -> Page[Build]:
        """Return the build page of the predicate's builder for page_token."""
        builder = predicate.builder
        self.searches.append((predicate, fields, page_token))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if builder in self.blocking:
                try:
                    await asyncio.Event().wait()
                except asyncio.CancelledError:
                    self.cancelled.append(builder)
                    raise
            if self.search_delay:
                await asyncio.sleep(self.search_delay)
            if builder in self.errors:
                raise self.errors[builder]
            return self.build_pages.get(builder, {}).get(page_token, Page(items=()))
        finally:
            self.in_flight -= 1
