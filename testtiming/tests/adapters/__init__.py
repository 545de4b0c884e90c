"""Tests for adapter implementations.

These tests exercise adapters against mocked HTTP transports to validate
correct translation between core domain models and LUCI wire formats.
"""
