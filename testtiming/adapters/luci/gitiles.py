"""Gitiles source log adapter.

Implements SourceLogPort with the Gitiles REST log endpoint:

    GET /<project>/+log/<committish>?format=JSON&n=<size>&s=<token>

The reply lists commits newest first, with a "next" cursor when more
commits remain.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import httpx

from testtiming.core.errors import RemoteServiceError, ResponseFormatError
from testtiming.core.models import Commit, Page
from testtiming.core.ports import SourceLogPort

from .prpc import decode_json

logger = logging.getLogger(__name__)

# Gitiles renders times like "Tue Mar 05 15:04:05 2024 +0000".
_TIME_FORMATS = ("%a %b %d %H:%M:%S %Y %z", "%a %b %d %H:%M:%S %Y")


def parse_gitiles_time(value: str) -> datetime:
    """Parse a Gitiles commit time; times without an offset are UTC."""
    for fmt in _TIME_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    raise ResponseFormatError(f"invalid Gitiles time: {value!r}")


class GitilesSourceLog(SourceLogPort):
    """Gitiles-backed commit log via the REST API."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize Gitiles adapter.

        Args:
            host: Gitiles hostname (e.g., go.googlesource.com).
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used by tests).
        """
        self.host = host
        self.client = client or httpx.AsyncClient(
            base_url=f"https://{host}",
            timeout=timeout,
        )

    async def __aenter__(self) -> "GitilesSourceLog":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the httpx client and clean up resources."""
        await self.client.aclose()

    async def log(
        self,
        project: str,
        committish: str,
        page_size: int,
        page_token: str = "",
    ) -> Page[Commit]:
        """Return one page of the commit log of committish, newest first."""
        params: dict[str, Any] = {"format": "JSON", "n": page_size}
        if page_token:
            params["s"] = page_token
        name = f"{self.host}/{project}/+log/{committish}"
        try:
            response = await self.client.get(
                f"/{project}/+log/{committish}", params=params
            )
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch log from Gitiles: {e}")
            raise RemoteServiceError(name, str(e)) from e
        if response.status_code != 200:
            logger.error(
                f"Gitiles log {name} returned HTTP {response.status_code}"
            )
            raise RemoteServiceError(
                name,
                f"HTTP {response.status_code}: {response.text.strip()}",
                status_code=response.status_code,
            )

        data = decode_json(name, response.text)
        commits = tuple(self._parse_commit(entry) for entry in data.get("log", []))
        return Page(items=commits, next_page_token=data.get("next", "") or "")

    @staticmethod
    def _parse_commit(entry: dict[str, Any]) -> Commit:
        try:
            commit_id = entry["commit"]
            committed = entry["committer"]["time"]
        except (KeyError, TypeError) as e:
            raise ResponseFormatError(f"malformed Gitiles log entry: {e}") from e
        return Commit(hash=commit_id, time=parse_gitiles_time(committed))
