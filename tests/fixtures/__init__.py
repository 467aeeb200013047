"""
Test fixtures for deterministic testing.

This module provides:
- factories: record/summary builders pinned to a fixed reference time
- FakeClock: manually advanced monotonic clock for cache TTL tests
"""

from .factories import NOW, FakeClock, make_record, make_summary

__all__ = ["NOW", "FakeClock", "make_record", "make_summary"]
