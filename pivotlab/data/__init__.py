"""Data layer: SQLite store and batched writer."""

from pivotlab.data.store import SQLiteBarStore
from pivotlab.data.writer import BatchWriter

__all__ = ["SQLiteBarStore", "BatchWriter"]
