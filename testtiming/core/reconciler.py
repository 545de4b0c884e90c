"""Reduction of one builder's builds to a result per commit.

A builder can produce several builds for the same commit (manual
retries, or different Go commits under one subrepo commit). The
reconciler keeps the one that ended last and resolves the log links
used to triage failures.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .errors import InvariantViolationError
from .models import (
    Build,
    Builder,
    BuildResult,
    BuildStatus,
    Project,
    build_url,
    short_hash,
)

logger = logging.getLogger(__name__)

COMPANION_REPO = "go"
COMBINED_OUTPUT_LINK = "(combined output)"
STEP_LOG_NAMES = ("stderr", "output")


def _struct(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


class ResultReconciler:
    """Collapses the builds of one builder into one result per commit."""

    def __init__(self, project: Project, expected_resultdb_host: str):
        """Initialize the reconciler.

        Args:
            project: Repo and Go branch the dashboard is built for.
            expected_resultdb_host: ResultDB hostname every build must
                report; anything else means the API changed under us.
        """
        self.project = project
        self.expected_resultdb_host = expected_resultdb_host

    def reconcile(
        self, builder: Builder, builds: Iterable[Build]
    ) -> dict[str, BuildResult]:
        """Return the canonical result of builder for each commit hash.

        Raises:
            InvariantViolationError: If a build reports an unexpected
                ResultDB host or a different builder than requested.
        """
        results: dict[str, BuildResult] = {}
        for build in builds:
            commit, companion = self.source_commits(build)
            if not commit:
                # Unfinished builds and infra failures may have no sources.
                if build.status == BuildStatus.SUCCESS:
                    logger.warning(f"empty commit: {build_url(build.id)}")
                continue

            self._check_invariants(builder, build)

            previous = results.get(commit)
            if previous is not None and not self._ended_later(build, previous):
                logger.debug(
                    f"skip duplicate build: {builder.name} {short_hash(commit)} "
                    f"{build.id} {previous.id}"
                )
                continue

            result = BuildResult(
                id=build.id,
                status=build.status,
                commit_hash=commit,
                companion_commit_hash=companion,
                build_end_time=build.end_time,
                builder_name=builder.name,
                config=builder.config,
                invocation_id=build.invocation,
            )
            if result.status == BuildStatus.FAILURE:
                result.log_url = self.failure_log_url(build)
                result.step_log_url = self.failed_step_log_url(build)
            results[commit] = result
        return results

    def source_commits(self, build: Build) -> tuple[str, str]:
        """Return the (subject, companion) commit hashes of a build.

        Either may be empty. Sources naming another repo are ignored.
        """
        commit = ""
        companion = ""
        for source in _list(build.properties.get("sources")):
            fields = _struct(source)
            gitiles_commit = fields.get("gitilesCommit")
            if gitiles_commit is None:
                gitiles_commit = fields.get("gitiles_commit")
            gitiles_commit = _struct(gitiles_commit)
            commit_id = str(gitiles_commit.get("id", ""))
            repo = gitiles_commit.get("project", "")
            if repo == self.project.repo:
                commit = commit_id
            elif repo == COMPANION_REPO:
                companion = commit_id
            else:
                logger.warning(
                    f"repo mismatch: {repo} {self.project.repo} {build_url(build.id)}"
                )
        return commit, companion

    def _check_invariants(self, builder: Builder, build: Build) -> None:
        if build.resultdb_hostname != self.expected_resultdb_host:
            raise InvariantViolationError(
                f"ResultDB host mismatch: {build.resultdb_hostname} "
                f"{self.expected_resultdb_host}",
                build_url(build.id),
            )
        if build.builder_name != builder.name:
            raise InvariantViolationError(
                f"builder mismatch: {build.builder_name} {builder.name}",
                build_url(build.id),
            )

    @staticmethod
    def _ended_later(build: Build, previous: BuildResult) -> bool:
        # Ties keep the stored result; unknown end times sort first.
        if build.end_time is None:
            return False
        if previous.build_end_time is None:
            return True
        return build.end_time > previous.build_end_time

    @staticmethod
    def failure_log_url(build: Build) -> str:
        """Return the log of a failed run.

        Prefers the "(combined output)" link of the failure metadata. When
        there is none, probably a build failure, falls back to the build's
        own stderr.
        """
        failure = _struct(build.properties.get("failure"))
        for link in _list(failure.get("links")):
            fields = _struct(link)
            if COMBINED_OUTPUT_LINK in str(fields.get("name", "")):
                url = str(fields.get("url", ""))
                if url:
                    return url
                break
        for log in build.output_logs:
            if log.name == "stderr":
                return log.view_url
        return ""

    @staticmethod
    def failed_step_log_url(build: Build) -> str:
        """Return the stderr or output log of the last failed step."""
        for step in reversed(build.steps):
            if step.status != BuildStatus.FAILURE:
                continue
            for log in step.logs:
                if log.name in STEP_LOG_NAMES:
                    return log.view_url
        return ""
