"""
Batch Writer
============
Write queue between the sequential passes and the store.

Pending writes are coalesced by (table, key), the last write winning, and
flushed once `batch_size` keys are pending. A flush splits the batch into
chunks written concurrently by a bounded thread pool (joblib, threading
backend) and returns only when every chunk is committed, so batches are
strictly ordered.
"""

from typing import Any, Dict, List, Tuple

from joblib import Parallel, delayed
from loguru import logger

from pivotlab.data.store import TABLE_KEYS, SQLiteBarStore


class BatchWriter:
    """
    Coalescing, batched writer.

    Usage:
        with BatchWriter(store, batch_size=500, pool_size=50) as writer:
            for row in rows:
                writer.update(row)
        # remaining writes flushed on exit
    """

    def __init__(self, store: SQLiteBarStore, batch_size: int = 500, pool_size: int = 50):
        if batch_size <= 0 or pool_size <= 0:
            raise ValueError("batch_size and pool_size must be greater than zero")
        self.store = store
        self.batch_size = batch_size
        self.pool_size = pool_size
        # (table, key) -> (operation, row)
        self._pending: Dict[Tuple[str, Tuple], Tuple[str, Dict[str, Any]]] = {}
        self.written = 0
        self.flushes = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def update(self, row: Dict[str, Any], table: str = "bars") -> None:
        """Queue a partial column write; columns of pending writes to the same key are merged."""
        key = (table, tuple(row[name] for name in TABLE_KEYS[table]))
        current = self._pending.get(key)
        if current is not None and current[0] == "update":
            current[1].update(row)
        else:
            self._pending[key] = ("update", dict(row))
        self._maybe_flush()

    def insert(self, table: str, row: Dict[str, Any]) -> None:
        """Queue a full row insert; replaces any pending write to the same key."""
        key = (table, tuple(row[name] for name in TABLE_KEYS[table]))
        self._pending[key] = ("insert", dict(row))
        self._maybe_flush()

    def _maybe_flush(self) -> None:
        if len(self._pending) >= self.batch_size:
            self.flush()

    def flush(self) -> int:
        """Write all pending rows and wait for completion."""
        if not self._pending:
            return 0

        groups: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
        for (table, _), (operation, row) in self._pending.items():
            groups.setdefault((operation, table), []).append(row)
        self._pending = {}

        tasks = []
        for (operation, table), rows in groups.items():
            chunk_size = max(1, -(-len(rows) // self.pool_size))
            for start in range(0, len(rows), chunk_size):
                tasks.append((operation, table, rows[start:start + chunk_size]))

        n_jobs = min(self.pool_size, len(tasks))
        counts = Parallel(n_jobs=n_jobs, backend="threading")(
            delayed(self._write_chunk)(operation, table, rows)
            for operation, table, rows in tasks
        )

        total = sum(counts)
        self.written += total
        self.flushes += 1
        logger.debug(f"Flushed {total} rows in {len(tasks)} chunks")
        return total

    def _write_chunk(self, operation: str, table: str, rows: List[Dict[str, Any]]) -> int:
        if operation == "insert":
            return self.store.insert(table, rows)
        return self.store.update(rows, table=table)

    def __enter__(self) -> "BatchWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        # Pending writes of a failed pass are dropped, earlier batches stay committed
        if exc_type is None:
            self.flush()
