"""ResultDB adapter.

Implements TestResultsPort over pRPC (luci.resultdb.v1.ResultDB).
"""

from typing import Any

import httpx

from testtiming.core.models import TestResult, TestStatus
from testtiming.core.ports import TestResultsPort

from .prpc import PRPCClient, parse_duration

RESULTDB_SERVICE = "luci.resultdb.v1.ResultDB"


class ResultDBClient(TestResultsPort):
    """ResultDB-backed test result queries."""

    def __init__(
        self,
        host: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize ResultDB adapter.

        Args:
            host: ResultDB hostname (e.g., results.api.cr.dev).
            timeout: Request timeout in seconds.
            client: Optional preconfigured httpx client (used by tests).
        """
        self.prpc = PRPCClient(host, timeout=timeout, client=client)

    async def __aenter__(self) -> "ResultDBClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the underlying pRPC client."""
        await self.prpc.close()

    async def query_test_results(
        self, invocations: list[str], test_id_regexp: str
    ) -> list[TestResult]:
        """Return the results of the invocations whose test ID matches."""
        data = await self.prpc.call(
            RESULTDB_SERVICE,
            "QueryTestResults",
            {
                "invocations": invocations,
                "predicate": {"testIdRegexp": test_id_regexp},
            },
        )
        return [
            TestResult(
                test_id=item.get("testId", ""),
                status=TestStatus.parse(item.get("status")),
                duration_seconds=parse_duration(item.get("duration")),
            )
            for item in data.get("testResults", [])
        ]
