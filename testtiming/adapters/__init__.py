"""External adapters for the testtiming pipeline.

This package contains all external dependencies (LUCI services over
HTTP, CSV output) and provides implementations of the core port
interfaces.

Adapter Organization:

- luci/: Gitiles, Buildbucket, and ResultDB clients
- cli/: CSV rendering of timing samples for the command line
"""
