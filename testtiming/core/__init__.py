"""Core domain logic for the testtiming pipeline.

This package contains zero external dependencies and represents
the pure pipeline logic. Remote services are reached only through
the ports in ports.py; the adapters package implements them.
"""

from .models import (
    Build,
    Builder,
    BuilderConfigProperties,
    BuildResult,
    BuildStatus,
    Commit,
    Dashboard,
    Failure,
    Page,
    Project,
    TestResult,
    TestStatus,
    TestTiming,
)

__all__ = [
    "Build",
    "Builder",
    "BuilderConfigProperties",
    "BuildResult",
    "BuildStatus",
    "Commit",
    "Dashboard",
    "Failure",
    "Page",
    "Project",
    "TestResult",
    "TestStatus",
    "TestTiming",
]
