"""Fake implementations of core ports for testing.

These in-memory implementations allow core pipeline logic to be tested
without network access:

- FakeSourceLogPort: Token-chained commit log pages
- FakeBuildbucketPort: Builder pages and per-builder build pages
- FakeTestResultsPort: Canned test results per invocation
"""

from .buildbucket import FakeBuildbucketPort
from .results import FakeTestResultsPort
from .source_log import FakeSourceLogPort

__all__ = [
    "FakeBuildbucketPort",
    "FakeSourceLogPort",
    "FakeTestResultsPort",
]
