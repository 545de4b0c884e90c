"""Buildbucket adapter.

Implements BuildbucketPort over pRPC (buildbucket.v2.Builders and
buildbucket.v2.Builds). Normalizes Buildbucket JSON messages into core
domain models; build output properties are kept as raw JSON for the
reconciler to interpret.
"""

import logging
from typing import Any

import httpx

from testtiming.core.errors import ResponseFormatError
from testtiming.core.models import Build, BuilderEntry, BuildStatus, LogLink, Page, Step
from testtiming.core.ports import BuildbucketPort, BuildPredicate

from .prpc import PRPCClient, camel_case, format_timestamp, parse_timestamp

logger = logging.getLogger(__name__)

BUILDERS_SERVICE = "buildbucket.v2.Builders"
BUILDS_SERVICE = "buildbucket.v2.Builds"


def _log_links(logs: list[dict[str, Any]] | None) -> tuple[LogLink, ...]:
    return tuple(
        LogLink(
            name=log.get("name", ""),
            view_url=log.get("viewUrl", ""),
            url=log.get("url", ""),
        )
        for log in logs or []
    )


class BuildbucketClient(BuildbucketPort):
    """Buildbucket-backed builder listing and build search."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Buildbucket adapter.

        Args:
            host: Buildbucket hostname (e.g., cr-buildbucket.appspot.com).
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used by tests).
        """
        self.prpc = PRPCClient(host, timeout=timeout, client=client)

    async def __aenter__(self) -> "BuildbucketClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying pRPC client."""
        await self.prpc.close()

    async def list_builders(
        self,
        project: str,
        bucket: str,
        page_size: int,
        page_token: str = "",
    ) -> Page[BuilderEntry]:
        """Return one page of the builders of project/bucket."""
        request: dict[str, Any] = {
            "project": project,
            "bucket": bucket,
            "pageSize": page_size,
        }
        if page_token:
            request["pageToken"] = page_token
        data = await self.prpc.call(BUILDERS_SERVICE, "ListBuilders", request)

        entries = tuple(
            BuilderEntry(
                name=(item.get("id") or {}).get("builder", ""),
                properties=(item.get("config") or {}).get("properties", ""),
            )
            for item in data.get("builders", [])
        )
        return Page(items=entries, next_page_token=data.get("nextPageToken", ""))

    async def search_builds(
        self,
        predicate: BuildPredicate,
        fields: tuple[str, ...],
        page_size: int,
        page_token: str = "",
    ) -> Page[Build]:
        """Return one page of builds, transferring only the masked fields."""
        request: dict[str, Any] = {
            "predicate": {
                "builder": {
                    "project": predicate.project,
                    "bucket": predicate.bucket,
                    "builder": predicate.builder,
                },
                "createTime": {
                    "startTime": format_timestamp(predicate.create_time_start),
                },
            },
            "mask": {"fields": ",".join(camel_case(f) for f in fields)},
            "pageSize": page_size,
        }
        if page_token:
            request["pageToken"] = page_token
        data = await self.prpc.call(BUILDS_SERVICE, "SearchBuilds", request)

        builds = tuple(self._parse_build(item) for item in data.get("builds", []))
        return Page(items=builds, next_page_token=data.get("nextPageToken", ""))

    @staticmethod
    def _parse_build(item: dict[str, Any]) -> Build:
        """Convert a Buildbucket Build message to a Build.

        int64 fields such as the build ID arrive as JSON strings.
        """
        try:
            build_id = int(item["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise ResponseFormatError(f"build without a valid id: {e}") from e

        output = item.get("output") or {}
        resultdb = (item.get("infra") or {}).get("resultdb") or {}
        steps = tuple(
            Step(
                name=step.get("name", ""),
                status=BuildStatus.parse(step.get("status")),
                logs=_log_links(step.get("logs")),
            )
            for step in item.get("steps") or []
        )
        return Build(
            id=build_id,
            builder_name=(item.get("builder") or {}).get("builder", ""),
            status=BuildStatus.parse(item.get("status")),
            properties=dict(output.get("properties") or {}),
            output_logs=_log_links(output.get("logs")),
            steps=steps,
            resultdb_hostname=resultdb.get("hostname", ""),
            invocation=resultdb.get("invocation", ""),
            end_time=parse_timestamp(item.get("endTime")),
        )
