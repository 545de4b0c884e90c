"""Listing clients for commits, builders, and builds.

Each client drives one paginated remote listing to completion and
applies the listing's own filtering rules before handing the items to
the dashboard assembler.
"""

import json
import logging
from datetime import datetime
from typing import Any

from .models import Build, Builder, BuilderConfigProperties, BuilderEntry, Commit, Page
from .pagination import collect_items, paginate
from .ports import BuildbucketPort, BuildPredicate, SourceLogPort

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 1000

# Partial-field search: full build payloads are too large to list at scale.
BUILD_FIELD_MASK = ("id", "builder", "output", "status", "steps", "infra", "end_time")


def _str_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _int_field(data: dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value if isinstance(value, int) else 0


def decode_builder_config(properties: str | None) -> BuilderConfigProperties:
    """Decode a builder's config JSON, or return the zero config.

    Fields are decoded one by one: a missing, null, or wrongly typed
    field keeps its zero value without affecting the others. Only JSON
    that is undecodable or not an object yields the zero config. Either
    way the builder is still listed.
    """
    if not properties:
        return BuilderConfigProperties()
    try:
        data = json.loads(properties)
    except json.JSONDecodeError as e:
        logger.debug(f"Undecodable builder config, using zero value: {e}")
        return BuilderConfigProperties()
    if not isinstance(data, dict):
        logger.debug("Builder config is not a JSON object, using zero value")
        return BuilderConfigProperties()

    target = data.get("target")
    if not isinstance(target, dict):
        target = {}
    return BuilderConfigProperties(
        repo=_str_field(data, "project"),
        go_branch=_str_field(data, "go_branch"),
        goarch=_str_field(target, "goarch"),
        goos=_str_field(target, "goos"),
        known_issue=_int_field(data, "known_issue"),
    )


class SourceLogClient:
    """Lists the commits of a branch back to a time threshold."""

    def __init__(
        self,
        source_log: SourceLogPort,
        page_size: int = DEFAULT_PAGE_SIZE,
        trace_steps: bool = False,
    ):
        self.source_log = source_log
        self.page_size = page_size
        self.trace_steps = trace_steps

    async def list_commits(
        self, repo: str, branch: str, since: datetime
    ) -> list[Commit]:
        """Return the commits of branch at or after since, newest first.

        The listing stops at the first commit strictly older than since.
        This relies on the log being in descending commit time order
        within and across pages.
        """
        if self.trace_steps:
            logger.info(f"ListCommits {repo} {branch}")

        async def fetch_page(page_token: str) -> Page[Commit]:
            return await self.source_log.log(
                project=repo,
                committish=f"refs/heads/{branch}",
                page_size=self.page_size,
                page_token=page_token,
            )

        def reached_since(page: Page[Commit]) -> bool:
            return any(commit.time < since for commit in page.items)

        commits: list[Commit] = []
        async for page in paginate(fetch_page, stop=reached_since):
            for commit in page.items:
                if commit.time < since:
                    break
                commits.append(commit)
        return commits


class BuilderRegistry:
    """Lists the builders of a project bucket, filtered by repo and branch."""

    def __init__(
        self,
        buildbucket: BuildbucketPort,
        project: str = "golang",
        bucket: str = "ci",
        page_size: int = DEFAULT_PAGE_SIZE,
        trace_steps: bool = False,
    ):
        self.buildbucket = buildbucket
        self.project = project
        self.bucket = bucket
        self.page_size = page_size
        self.trace_steps = trace_steps

    async def list_builders(
        self, repo: str, branch: str, name_filter: str = ""
    ) -> list[Builder]:
        """Return the builders testing repo at branch, sorted by name.

        If repo and branch are both empty, every builder is returned.
        A non-empty name_filter keeps only the builder with that name.
        """
        if self.trace_steps:
            logger.info(f"ListBuilders {repo} {branch}")
        everything = not repo and not branch

        async def fetch_page(page_token: str) -> Page[BuilderEntry]:
            return await self.buildbucket.list_builders(
                project=self.project,
                bucket=self.bucket,
                page_size=self.page_size,
                page_token=page_token,
            )

        builders: list[Builder] = []
        for entry in await collect_items(paginate(fetch_page)):
            config = decode_builder_config(entry.properties)
            if not everything and (config.repo != repo or config.go_branch != branch):
                continue
            if name_filter and entry.name != name_filter:
                continue
            builders.append(Builder(name=entry.name, config=config))

        builders.sort(key=lambda b: b.name)
        return builders


class BuildFetcher:
    """Fetches the builds of one builder created in a time window."""

    def __init__(
        self,
        buildbucket: BuildbucketPort,
        project: str = "golang",
        bucket: str = "ci",
        page_size: int = DEFAULT_PAGE_SIZE,
        trace_steps: bool = False,
    ):
        self.buildbucket = buildbucket
        self.project = project
        self.bucket = bucket
        self.page_size = page_size
        self.trace_steps = trace_steps

    async def get_builds(self, builder_name: str, since: datetime) -> list[Build]:
        """Return every build of builder_name created at or after since."""
        if self.trace_steps:
            logger.info(f"GetBuilds {builder_name}")
        predicate = BuildPredicate(
            project=self.project,
            bucket=self.bucket,
            builder=builder_name,
            create_time_start=since,
        )

        async def fetch_page(page_token: str) -> Page[Build]:
            return await self.buildbucket.search_builds(
                predicate=predicate,
                fields=BUILD_FIELD_MASK,
                page_size=self.page_size,
                page_token=page_token,
            )

        return await collect_items(paginate(fetch_page))
