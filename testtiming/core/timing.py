"""Extraction of per-test timing samples from an assembled dashboard."""

import logging
from collections.abc import AsyncIterator

from .models import Dashboard, TestStatus, TestTiming, short_hash
from .ports import TestResultsPort

logger = logging.getLogger(__name__)

_REGEXP_SPECIAL = set(r"\.+*?()|[]{}^$")


def quote_meta(text: str) -> str:
    """Escape text into an RE2 pattern matching it literally.

    Only RE2 metacharacters are escaped; re.escape also escapes spaces,
    which RE2 rejects.
    """
    return "".join("\\" + c if c in _REGEXP_SPECIAL else c for c in text)


class TestTimingExtractor:
    """Queries ResultDB for one test across every dashboard cell.

    Queries are issued one at a time, in builder-major then commit order,
    and samples are yielded in that same order: downstream plotting
    correlates lines by position.
    """

    __test__ = False

    def __init__(self, results: TestResultsPort, trace_steps: bool = False):
        self.results = results
        self.trace_steps = trace_steps

    async def extract(
        self, dashboard: Dashboard, test_id: str
    ) -> AsyncIterator[TestTiming]:
        """Yield the timing samples of test_id across the dashboard.

        Skipped results are dropped. Passing durations are reported as
        pass_seconds, every other outcome as fail_seconds.
        """
        test_id_regexp = quote_meta(test_id)
        for builder, result in dashboard.cells():
            if self.trace_steps:
                logger.info(
                    f"QueryTestResults {builder.name} "
                    f"{short_hash(result.commit_hash)} {result.commit_time}"
                )
            test_results = await self.results.query_test_results(
                invocations=[result.invocation_id],
                test_id_regexp=test_id_regexp,
            )
            for test_result in test_results:
                if test_result.status == TestStatus.SKIP:
                    continue
                assert result.commit_time is not None
                if test_result.status == TestStatus.PASS:
                    yield TestTiming(
                        commit_hash=result.commit_hash,
                        commit_time=result.commit_time,
                        builder_name=builder.name,
                        status=test_result.status,
                        pass_seconds=test_result.duration_seconds,
                    )
                else:
                    yield TestTiming(
                        commit_hash=result.commit_hash,
                        commit_time=result.commit_time,
                        builder_name=builder.name,
                        status=test_result.status,
                        fail_seconds=test_result.duration_seconds,
                    )
