"""Integration tests for the composition root.

These tests verify configuration loading, argument parsing, CSV
rendering, and that run() wires the pipeline end to end over fakes.
"""

import io
import os
from collections.abc import AsyncIterator
from datetime import UTC, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from testtiming.adapters.cli.csv_output import (
    format_commit_time,
    format_seconds,
    format_timing,
    write_timings,
)
from testtiming.config import Settings, load_settings
from testtiming.core.errors import InvariantViolationError
from testtiming.core.models import Commit, TestResult, TestStatus, TestTiming
from testtiming.main import main, parse_args, run
from testtiming.tests.fakes import (
    FakeBuildbucketPort,
    FakeSourceLogPort,
    FakeTestResultsPort,
)
from testtiming.tests.fakes.factories import make_build, make_builder_entry


class TestConfigurationLoading:
    """Test configuration loading and validation."""

    def test_load_settings_with_defaults(self) -> None:
        """Load settings with default values."""
        settings = load_settings()
        assert settings.gitiles_host == "go.googlesource.com"
        assert settings.buildbucket_host == "cr-buildbucket.appspot.com"
        assert settings.resultdb_host == "results.api.cr.dev"
        assert settings.luci_project == "golang"
        assert settings.luci_bucket == "ci"
        assert settings.page_size == 1000
        assert settings.max_parallelism == 1
        assert settings.lookback_days == 60
        assert settings.trace_steps is True

    def test_load_settings_from_env(self) -> None:
        """Load settings from environment variables."""
        with patch.dict(
            os.environ,
            {
                "MAX_PARALLELISM": "8",
                "LOOKBACK_DAYS": "7",
                "TRACE_STEPS": "false",
                "LOG_LEVEL": "DEBUG",
            },
        ):
            settings = load_settings()
            assert settings.max_parallelism == 8
            assert settings.lookback_days == 7
            assert settings.trace_steps is False
            assert settings.log_level == "DEBUG"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("MAX_PARALLELISM", "0"),
            ("PAGE_SIZE", "-1"),
            ("LOOKBACK_DAYS", "0"),
            ("HTTP_TIMEOUT_SECONDS", "0"),
        ],
    )
    def test_load_settings_rejects_non_positive(self, name: str, value: str) -> None:
        """Counts and durations must be positive."""
        with patch.dict(os.environ, {name: value}):
            with pytest.raises(Exception):  # ValidationError
                load_settings()


class TestParseArgs:
    """Test command-line parsing."""

    def test_defaults(self) -> None:
        """Repo and branch default to go at master."""
        args = parse_args(["--test", "cmd/go.TestScript"])
        assert args.repo == "go"
        assert args.branch == "master"
        assert args.builder == ""
        assert args.since_days is None

    def test_missing_test_exits_with_usage(self, capsys: pytest.CaptureFixture[str]) -> None:
        """No test name prints usage and exits with status 2."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--builder", "gotip-linux-amd64"])

        assert exc_info.value.code == 2
        err = capsys.readouterr().err
        assert "usage:" in err
        assert "test name unset" in err

    def test_non_positive_since_days(self) -> None:
        """A lookback window must be positive."""
        with pytest.raises(SystemExit) as exc_info:
            parse_args(["--test", "t", "--since-days", "0"])
        assert exc_info.value.code == 2


class TestCSVOutput:
    """Test CSV line rendering."""

    @pytest.fixture
    def when(self) -> datetime:
        """A fixed commit time."""
        return datetime(2024, 3, 5, 15, 4, 5, tzinfo=UTC)

    def test_pass_line_without_builder(self, when: datetime) -> None:
        """A single-builder pass line has four value groups."""
        timing = TestTiming("0123456789abcdef", when, "b1", TestStatus.PASS, pass_seconds=1.5)

        line = format_timing(timing, include_builder=False)

        assert line == "01234567,2024-03-05 15:04:05 +0000 UTC,PASS,1.5,"

    def test_fail_line_with_builder(self, when: datetime) -> None:
        """A multi-builder failure line carries the builder column."""
        timing = TestTiming("0123456789abcdef", when, "b1", TestStatus.FAIL, fail_seconds=30.0)

        line = format_timing(timing, include_builder=True)

        assert line == "01234567,2024-03-05 15:04:05 +0000 UTC,b1,FAIL,,30"

    @pytest.mark.parametrize(
        "seconds,text",
        [
            (30.0, "30"),
            (0.0, "0"),
            (1.5, "1.5"),
            (12.345, "12.345"),
            (1e-05, "1e-05"),
            (1e16, "10000000000000000"),
        ],
    )
    def test_format_seconds_uses_fewest_digits(self, seconds: float, text: str) -> None:
        """Whole seconds print without a fraction."""
        assert format_seconds(seconds) == text

    def test_commit_time_rendered_in_utc(self) -> None:
        """Offsets are normalized to UTC."""
        shifted = datetime(2024, 3, 5, 19, 4, 5, tzinfo=timezone(timedelta(hours=2)))
        assert format_commit_time(shifted) == "2024-03-05 17:04:05 +0000 UTC"

    @pytest.mark.asyncio
    async def test_write_timings_streams_lines(self, when: datetime) -> None:
        """Every sample becomes one newline-terminated line."""

        async def timings() -> AsyncIterator[TestTiming]:
            yield TestTiming("aaaaaaaaaa", when, "b1", TestStatus.PASS, pass_seconds=2.0)
            yield TestTiming("bbbbbbbbbb", when, "b1", TestStatus.CRASH, fail_seconds=4.25)

        out = io.StringIO()
        count = await write_timings(timings(), out, include_builder=False)

        assert count == 2
        assert out.getvalue().splitlines() == [
            "aaaaaaaa,2024-03-05 15:04:05 +0000 UTC,PASS,2,",
            "bbbbbbbb,2024-03-05 15:04:05 +0000 UTC,CRASH,,4.25",
        ]


@pytest.mark.asyncio
class TestRun:
    """Test the wired pipeline over fake adapters."""

    @pytest.fixture
    def commits(self) -> list[Commit]:
        """Two recent commits, newest first."""
        now = datetime.now(UTC).replace(microsecond=0)
        return [
            Commit("2222222222", now - timedelta(hours=1)),
            Commit("1111111111", now - timedelta(hours=2)),
        ]

    @pytest.fixture
    def adapters(
        self, commits: list[Commit]
    ) -> tuple[FakeSourceLogPort, FakeBuildbucketPort, FakeTestResultsPort]:
        """Fakes for Gitiles, Buildbucket, and ResultDB."""
        source_log = FakeSourceLogPort()
        source_log.add_page("", commits)
        buildbucket = FakeBuildbucketPort()
        buildbucket.add_builders([make_builder_entry("b1"), make_builder_entry("b2")])
        buildbucket.add_builds("b1", [make_build(11, "b1", "1111111111")])
        buildbucket.add_builds("b2", [make_build(22, "b2", "2222222222")])
        results = FakeTestResultsPort()
        results.add_results("invocations/build-11", [TestResult("t", TestStatus.PASS, 1.5)])
        results.add_results("invocations/build-22", [TestResult("t", TestStatus.FAIL, 3.0)])
        for fake in (source_log, buildbucket, results):
            fake.close = AsyncMock()  # type: ignore[attr-defined]
        return source_log, buildbucket, results

    async def test_run_writes_csv(
        self,
        adapters: tuple[FakeSourceLogPort, FakeBuildbucketPort, FakeTestResultsPort],
        commits: list[Commit],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """Timings of all builders are printed with a builder column."""
        source_log, buildbucket, results = adapters
        args = parse_args(["--test", "t"])

        with (
            patch("testtiming.main.GitilesSourceLog", return_value=source_log),
            patch("testtiming.main.BuildbucketClient", return_value=buildbucket),
            patch("testtiming.main.ResultDBClient", return_value=results),
        ):
            lines = await run(args, Settings(trace_steps=False))

        assert lines == 2
        assert capsys.readouterr().out.splitlines() == [
            f"11111111,{format_commit_time(commits[1].time)},b1,PASS,1.5,",
            f"22222222,{format_commit_time(commits[0].time)},b2,FAIL,,3",
        ]
        for fake in adapters:
            fake.close.assert_awaited_once()  # type: ignore[attr-defined]

    async def test_single_builder_omits_column(
        self,
        adapters: tuple[FakeSourceLogPort, FakeBuildbucketPort, FakeTestResultsPort],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        """--builder narrows output to one builder without the column."""
        source_log, buildbucket, results = adapters
        args = parse_args(["--test", "t", "--builder", "b2"])

        with (
            patch("testtiming.main.GitilesSourceLog", return_value=source_log),
            patch("testtiming.main.BuildbucketClient", return_value=buildbucket),
            patch("testtiming.main.ResultDBClient", return_value=results),
        ):
            await run(args, Settings(trace_steps=False))

        out = capsys.readouterr().out.splitlines()
        assert len(out) == 1
        assert out[0].split(",")[2:] == ["FAIL", "", "3"]

    async def test_clients_closed_on_error(
        self,
        adapters: tuple[FakeSourceLogPort, FakeBuildbucketPort, FakeTestResultsPort],
    ) -> None:
        """Adapters are closed even when the pipeline fails."""
        source_log, buildbucket, results = adapters
        buildbucket.add_builds("b1", [make_build(12, "b1", "2222222222", resultdb_hostname="x")])

        with (
            patch("testtiming.main.GitilesSourceLog", return_value=source_log),
            patch("testtiming.main.BuildbucketClient", return_value=buildbucket),
            patch("testtiming.main.ResultDBClient", return_value=results),
        ):
            with pytest.raises(InvariantViolationError):
                await run(parse_args(["--test", "t"]), Settings(trace_steps=False))

        for fake in adapters:
            fake.close.assert_awaited_once()  # type: ignore[attr-defined]


class TestMain:
    """Test exit codes of the entry point."""

    def test_invariant_violation_exits_1(self) -> None:
        """Unexpected upstream changes are fatal."""
        failing = AsyncMock(side_effect=InvariantViolationError("builder mismatch: x y"))
        with patch("testtiming.main.run", failing):
            with pytest.raises(SystemExit) as exc_info:
                main(["--test", "t"])
        assert exc_info.value.code == 1

    def test_remote_error_exits_1(self) -> None:
        """Any other runtime failure exits 1."""
        failing = AsyncMock(side_effect=RuntimeError("boom"))
        with patch("testtiming.main.run", failing):
            with pytest.raises(SystemExit) as exc_info:
                main(["--test", "t"])
        assert exc_info.value.code == 1

