"""auragraph storage layer."""

from auragraph.storage.base import EdgeStore
from auragraph.storage.sqlite_store import SQLiteEdgeStore

__all__ = ["EdgeStore", "SQLiteEdgeStore"]
