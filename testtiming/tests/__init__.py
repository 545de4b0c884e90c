"""Test suite for testtiming.

Organized into three categories:

1. core/: Unit tests for core pipeline logic
   - Minimal dependencies, fast execution
   - Uses in-memory fakes for ports

2. adapters/: Tests for the LUCI and CSV adapters
   - Run against httpx.MockTransport, no network access
   - Validate wire encoding and decoding

3. fakes/: Port implementations for testing
   - In-memory implementations of SourceLogPort, BuildbucketPort, TestResultsPort
"""
