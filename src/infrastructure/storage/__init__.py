"""
Storage infrastructure.

This module provides in-memory persistence and progress adapters.
"""

from .memory_store import InMemoryBacktestStore, InMemoryProgressSink

__all__ = ["InMemoryBacktestStore", "InMemoryProgressSink"]
