"""Persistent and session-scoped key-value stores."""

from .base import KeyValueStore, MemoryStore
from .sql import SqlStore, make_engine

__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SqlStore",
    "make_engine",
]
