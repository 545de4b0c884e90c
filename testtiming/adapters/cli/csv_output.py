"""CSV rendering of timing samples.

Columns:

    commit hash, commit time, [builder,] status, pass duration, fail duration

The builder column is omitted when a single builder is in scope. Pass and
fail durations go to separate columns so they are easy to plot in
different colors.
"""

from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import TextIO

from testtiming.core.models import TestTiming, short_hash


def format_commit_time(value: datetime) -> str:
    """Render a commit time in UTC, e.g. 2024-03-05 15:04:05 +0000 UTC."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S +0000 UTC")


def format_seconds(value: float) -> str:
    """Render a duration in seconds with the fewest digits, e.g. 30 or 1.5.

    Whole numbers below 1e21 print without a fraction or exponent;
    everything else uses the shortest round-tripping representation.
    """
    value = float(value)
    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    return repr(value)


def format_timing(timing: TestTiming, include_builder: bool) -> str:
    """Render one timing sample as a CSV line, without the newline."""
    fields = [short_hash(timing.commit_hash), format_commit_time(timing.commit_time)]
    if include_builder:
        fields.append(timing.builder_name)
    fields.append(timing.status.value)
    if timing.pass_seconds is not None:
        fields.extend([format_seconds(timing.pass_seconds), ""])
    else:
        assert timing.fail_seconds is not None
        fields.extend(["", format_seconds(timing.fail_seconds)])
    return ",".join(fields)


async def write_timings(
    timings: AsyncIterator[TestTiming], out: TextIO, include_builder: bool
) -> int:
    """Write timing samples as CSV lines as they arrive.

    Returns:
        Number of lines written.
    """
    count = 0
    async for timing in timings:
        out.write(format_timing(timing, include_builder) + "\n")
        count += 1
    return count
