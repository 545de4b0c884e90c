"""Assembly of the builder x commit dashboard.

The commit log and the builder list are fetched once. Builds are then
fetched and reconciled per builder, concurrently but with a bounded
number in flight. Each builder task writes only its own slot, so the
final merge needs no locking.
"""

import asyncio
import logging
from datetime import datetime

from .models import Builder, BuildResult, Dashboard
from .reconciler import ResultReconciler
from .sources import BuilderRegistry, BuildFetcher, SourceLogClient

logger = logging.getLogger(__name__)


class DashboardAssembler:
    """Fills in a Dashboard from the commit log, builders, and builds."""

    def __init__(
        self,
        source_log: SourceLogClient,
        registry: BuilderRegistry,
        fetcher: BuildFetcher,
        expected_resultdb_host: str,
        max_parallelism: int = 1,
        trace_steps: bool = False,
    ):
        """Initialize the assembler.

        Args:
            source_log: Client listing the commits of the dashboard branch.
            registry: Client listing the builders of the dashboard.
            fetcher: Client fetching the builds of one builder.
            expected_resultdb_host: ResultDB hostname every build must report.
            max_parallelism: Maximum number of builders fetched at once.
            trace_steps: Log each step name as it is executed.

        Raises:
            ValueError: If max_parallelism is less than 1.
        """
        if max_parallelism < 1:
            raise ValueError(
                f"max_parallelism is {max_parallelism}, want 1 or higher"
            )
        self.source_log = source_log
        self.registry = registry
        self.fetcher = fetcher
        self.expected_resultdb_host = expected_resultdb_host
        self.max_parallelism = max_parallelism
        self.trace_steps = trace_steps

    async def read_board(
        self, dashboard: Dashboard, builder_filter: str, since: datetime
    ) -> None:
        """Fill in dashboard with everything built since a time.

        On error, dashboard.results is left empty and the first error
        observed among the builder tasks is raised; the remaining tasks
        are cancelled.

        Args:
            dashboard: Dashboard whose project selects repo and branch.
            builder_filter: Name of the only builder to read, or "" for all.
            since: Start of the time window.
        """
        project = dashboard.project
        if self.trace_steps:
            logger.info(f"ReadBoard {project.repo} {project.go_branch}")

        dashboard.commits = await self.source_log.list_commits(
            project.repo, project.log_branch, since
        )
        dashboard.builders = await self.registry.list_builders(
            project.repo, project.go_branch, builder_filter
        )
        dashboard.results = []

        reconciler = ResultReconciler(project, self.expected_resultdb_host)
        slots = await self._read_builders(dashboard.builders, reconciler, since)

        results: list[list[BuildResult | None]] = []
        for by_commit in slots:
            row: list[BuildResult | None] = [None] * len(dashboard.commits)
            for j, commit in enumerate(dashboard.commits):
                result = by_commit.get(commit.hash)
                if result is None:
                    continue
                result.commit_time = commit.time
                row[j] = result
            results.append(row)
        dashboard.results = results

        logger.debug(
            f"Dashboard {project.repo} {project.go_branch}: "
            f"{len(dashboard.builders)} builders x {len(dashboard.commits)} commits"
        )

    async def _read_builders(
        self,
        builders: list[Builder],
        reconciler: ResultReconciler,
        since: datetime,
    ) -> list[dict[str, BuildResult]]:
        """Fetch and reconcile every builder, one owned slot per builder."""
        slots: list[dict[str, BuildResult]] = [{} for _ in builders]
        if not builders:
            return slots
        semaphore = asyncio.Semaphore(self.max_parallelism)

        async def read_builder(i: int, builder: Builder) -> None:
            async with semaphore:
                builds = await self.fetcher.get_builds(builder.name, since)
                slots[i] = reconciler.reconcile(builder, builds)

        # Failed tasks in the order their errors were observed.
        failed: list[asyncio.Task[None]] = []

        def observe(task: asyncio.Task[None]) -> None:
            if not task.cancelled() and task.exception() is not None:
                failed.append(task)

        tasks = [
            asyncio.create_task(read_builder(i, builder), name=f"builder:{builder.name}")
            for i, builder in enumerate(builders)
        ]
        for task in tasks:
            task.add_done_callback(observe)
        try:
            _, pending = await asyncio.wait(
                tasks, return_when=asyncio.FIRST_EXCEPTION
            )
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        if failed:
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            error = failed[0].exception()
            logger.error(f"Reading {failed[0].get_name()} failed: {error}")
            raise error
        return slots
