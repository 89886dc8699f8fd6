"""
SQLite Bar Store
================
Key-ordered, random-access storage of one statistics instance.

Tables:
- bars: one row per time unit, OHLC plus the columns every pass writes
- candles: multi-resolution aggregates, key (time, size, norder)
- patterns: one fixed-width training row per bar time
- ranges: mean / std / min / max per feature name
- meta: average set in use and stage watermarks

Dynamic columns (averages, slopes, spreads, candle features) are derived
from the AverageSet and added to existing tables on open.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from pivotlab.core.averages import AverageSet
from pivotlab.core.candles import CANDLE_FEATURES
from pivotlab.core.exceptions import MissingBarError


BAR_COLUMNS: List[Tuple[str, str]] = [
    ("time", "INTEGER PRIMARY KEY"),
    ("open", "REAL"),
    ("high", "REAL"),
    ("low", "REAL"),
    ("close", "REAL"),
    ("pivot", "INTEGER DEFAULT 0"),
    ("ref_value", "REAL"),
    ("label", "INTEGER DEFAULT 0"),
    ("label_set", "INTEGER DEFAULT 0"),
    ("label_edit", "INTEGER DEFAULT 0"),
]

CANDLE_KEY = ("time", "size", "norder")
CANDLE_COLUMNS: List[Tuple[str, str]] = [
    ("time", "INTEGER NOT NULL"),
    ("size", "INTEGER NOT NULL"),
    ("norder", "INTEGER NOT NULL"),
    ("candle_time", "INTEGER"),
    ("open", "REAL"),
    ("high", "REAL"),
    ("low", "REAL"),
    ("close", "REAL"),
] + [(f"{feature}_{suffix}", "REAL") for feature in CANDLE_FEATURES for suffix in ("raw", "nrm")]

OHLC = ["open", "high", "low", "close"]

TABLE_KEYS = {
    "bars": ("time",),
    "candles": CANDLE_KEY,
    "patterns": ("time",),
    "ranges": ("name",),
}


def _to_sql(value: Any) -> Any:
    """Convert numpy scalars and bools to plain sqlite-compatible values."""
    if isinstance(value, (bool, np.bool_)):
        return int(value)
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


class SQLiteBarStore:
    """
    SQLite storage of bars and derived tables for one statistics instance.

    Usage:
        store = SQLiteBarStore("eurusd.db", averages)
        store.import_bars(frame)
        bars = store.load_bars()
        store.update([{"time": t, "pivot": 1}])
    """

    def __init__(self, db_path: str, averages: AverageSet, busy_timeout: float = 30.0):
        """
        Initialize the store.

        Args:
            db_path: Path to the SQLite database file
            averages: Average set defining the dynamic columns
            busy_timeout: Seconds a writer waits on a locked database
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.averages = averages
        self.busy_timeout = busy_timeout
        self._columns: Dict[str, List[str]] = {}

        self._ensure_schema()

    @contextmanager
    def connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _read_frame(self, query: str, params: Sequence = ()) -> pd.DataFrame:
        with self.connection() as conn:
            conn.row_factory = None
            return pd.read_sql_query(query, conn, params=list(params))

    # =========================================================================
    # Schema
    # =========================================================================

    def bar_columns(self) -> List[Tuple[str, str]]:
        columns = list(BAR_COLUMNS)
        columns += [(name, "REAL") for name in self.averages.average_names()]
        for suffix in ("raw", "nrm"):
            columns += [(name, "REAL") for name in self.averages.slope_names(suffix)]
            columns += [(name, "REAL") for name in self.averages.spread_names(suffix)]
        return columns

    def pattern_columns(self) -> List[Tuple[str, str]]:
        columns = [("time", "INTEGER PRIMARY KEY"), ("label", "INTEGER"), ("label_edit", "INTEGER")]
        columns += [(name, "REAL") for name in self.averages.pattern_input_names()]
        return columns

    def _ensure_schema(self) -> None:
        """Create tables if they don't exist and add missing dynamic columns."""
        with self.connection() as conn:
            conn.execute("PRAGMA journal_mode=WAL")

            self._create_table(conn, "bars", self.bar_columns())
            self._create_table(
                conn, "candles", CANDLE_COLUMNS,
                primary_key=", ".join(CANDLE_KEY)
            )
            self._create_table(conn, "patterns", self.pattern_columns())

            conn.execute("""
                CREATE TABLE IF NOT EXISTS ranges (
                    name TEXT PRIMARY KEY,
                    mean REAL NOT NULL,
                    std REAL NOT NULL,
                    minimum REAL NOT NULL,
                    maximum REAL NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS meta (
                    key TEXT PRIMARY KEY,
                    value TEXT
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_candles_time ON candles(time)")

        self._columns.clear()

    def _create_table(
        self,
        conn: sqlite3.Connection,
        table: str,
        columns: Sequence[Tuple[str, str]],
        primary_key: Optional[str] = None
    ) -> None:
        definition = ", ".join(f"{name} {sql_type}" for name, sql_type in columns)
        if primary_key:
            definition += f", PRIMARY KEY ({primary_key})"
        conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({definition})")

        existing = {row["name"] for row in conn.execute(f"PRAGMA table_info({table})")}
        for name, sql_type in columns:
            if name not in existing:
                # ALTER cannot add a PRIMARY KEY column, dynamic columns are plain values
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {name} {sql_type}")
                logger.debug(f"Added column {table}.{name}")

    def table_columns(self, table: str) -> List[str]:
        if table not in self._columns:
            with self.connection() as conn:
                self._columns[table] = [row["name"] for row in conn.execute(f"PRAGMA table_info({table})")]
        return self._columns[table]

    def _check_columns(self, table: str, names: Iterable[str]) -> None:
        known = set(self.table_columns(table))
        unknown = [name for name in names if name not in known]
        if unknown:
            raise ValueError(f"Unknown columns for table {table}: {unknown}")

    # =========================================================================
    # Bar Operations
    # =========================================================================

    def size(self) -> int:
        """Number of bars."""
        with self.connection() as conn:
            return conn.execute("SELECT COUNT(*) FROM bars").fetchone()[0]

    def get(self, index: int) -> Dict[str, Any]:
        """Bar at position `index` in time order."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM bars ORDER BY time LIMIT 1 OFFSET ?", (index,)
            ).fetchone()
        if row is None:
            raise IndexError(f"Bar index {index} out of range")
        return dict(row)

    def get_bar_by_time(self, time: int) -> Dict[str, Any]:
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM bars WHERE time = ?", (int(time),)).fetchone()
        if row is None:
            raise MissingBarError(time)
        return dict(row)

    def update(self, rows: Sequence[Dict[str, Any]], table: str = "bars") -> int:
        """
        Partial column writes keyed by the table key.

        Rows may carry different column subsets; each subset is written
        with one statement.

        Returns:
            Number of rows written
        """
        if not rows:
            return 0
        key = TABLE_KEYS[table]

        groups: Dict[Tuple[str, ...], List[Dict[str, Any]]] = {}
        for row in rows:
            columns = tuple(name for name in row if name not in key)
            groups.setdefault(columns, []).append(row)
        for columns in groups:
            self._check_columns(table, columns)

        with self.connection() as conn:
            for columns, group in groups.items():
                if not columns:
                    continue
                assignments = ", ".join(f"{name} = ?" for name in columns)
                condition = " AND ".join(f"{name} = ?" for name in key)
                conn.executemany(
                    f"UPDATE {table} SET {assignments} WHERE {condition}",
                    [
                        [_to_sql(row[name]) for name in columns] + [_to_sql(row[name]) for name in key]
                        for row in group
                    ]
                )
        return len(rows)

    def reset(self, values: Dict[str, Any], where: Optional[str] = None, params: Sequence = ()) -> None:
        """Bulk assignment of constant values to bar columns."""
        self._check_columns("bars", values)
        assignments = ", ".join(f"{name} = ?" for name in values)
        query = f"UPDATE bars SET {assignments}"
        if where:
            query += f" WHERE {where}"
        with self.connection() as conn:
            conn.execute(query, [_to_sql(v) for v in values.values()] + list(params))

    def copy_columns(self, assignments: Dict[str, str]) -> None:
        """Bulk copy between bar columns, {target: source}."""
        self._check_columns("bars", list(assignments) + list(assignments.values()))
        copies = ", ".join(f"{target} = {source}" for target, source in assignments.items())
        with self.connection() as conn:
            conn.execute(f"UPDATE bars SET {copies}")

    def load_bars(self, columns: Optional[Sequence[str]] = None, after_time: Optional[int] = None) -> pd.DataFrame:
        """Read bars in time order into a DataFrame."""
        if columns:
            self._check_columns("bars", columns)
            selected = ", ".join(dict.fromkeys(["time", *columns]))
        else:
            selected = "*"
        query = f"SELECT {selected} FROM bars"
        params: List[Any] = []
        if after_time is not None:
            query += " WHERE time > ?"
            params.append(int(after_time))
        query += " ORDER BY time"

        return self._read_frame(query, params)

    def import_bars(self, frame: pd.DataFrame) -> int:
        """
        Insert or update OHLC bars.

        Args:
            frame: DataFrame with time (epoch ms) and open/high/low/close columns

        Returns:
            Number of rows imported
        """
        missing = [c for c in ["time"] + OHLC if c not in frame.columns]
        if missing:
            raise ValueError(f"Missing bar columns: {missing}")

        data = frame[["time"] + OHLC].sort_values("time")
        records = [tuple(_to_sql(v) for v in row) for row in data.itertuples(index=False, name=None)]

        with self.connection() as conn:
            conn.executemany("""
                INSERT INTO bars (time, open, high, low, close) VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(time) DO UPDATE SET
                    open = excluded.open,
                    high = excluded.high,
                    low = excluded.low,
                    close = excluded.close
            """, records)

        logger.info(f"Imported {len(records)} bars into {self.db_path.name}")
        return len(records)

    def labeled_time_bounds(self) -> Optional[Tuple[int, int]]:
        """First and last time of bars with label_set."""
        with self.connection() as conn:
            row = conn.execute(
                "SELECT MIN(time) AS first, MAX(time) AS last FROM bars WHERE label_set = 1"
            ).fetchone()
        if row is None or row["first"] is None:
            return None
        return row["first"], row["last"]

    # =========================================================================
    # Candle and Pattern Operations
    # =========================================================================

    def insert(self, table: str, rows: Sequence[Dict[str, Any]]) -> int:
        """Insert rows, replacing rows with the same key."""
        if not rows:
            return 0
        columns = list(rows[0].keys())
        self._check_columns(table, columns)
        placeholders = ", ".join("?" for _ in columns)
        with self.connection() as conn:
            conn.executemany(
                f"INSERT OR REPLACE INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
                [[_to_sql(row[name]) for name in columns] for row in rows]
            )
        return len(rows)

    def insert_candles(self, rows: Sequence[Dict[str, Any]]) -> int:
        return self.insert("candles", rows)

    def insert_patterns(self, rows: Sequence[Dict[str, Any]]) -> int:
        return self.insert("patterns", rows)

    def count(self, table: str) -> int:
        with self.connection() as conn:
            return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]

    @staticmethod
    def _candle_query(after_time: Optional[int], until_time: Optional[int]) -> Tuple[str, List[Any]]:
        query = "SELECT * FROM candles"
        conditions, params = [], []
        if after_time is not None:
            conditions.append("time > ?")
            params.append(int(after_time))
        if until_time is not None:
            conditions.append("time <= ?")
            params.append(int(until_time))
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        return query + " ORDER BY time, size, norder", params

    def load_candles(self, after_time: Optional[int] = None, until_time: Optional[int] = None) -> pd.DataFrame:
        """Candles ordered by (time, size, norder), optionally within (after_time, until_time]."""
        query, params = self._candle_query(after_time, until_time)
        return self._read_frame(query, params)

    def iter_candles(self, after_time: Optional[int] = None, until_time: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """Stream candles in the same order without loading them all."""
        query, params = self._candle_query(after_time, until_time)
        with self.connection() as conn:
            for row in conn.execute(query, params):
                yield dict(row)

    def load_patterns(self, first_time: Optional[int] = None, last_time: Optional[int] = None) -> pd.DataFrame:
        """Patterns ordered by time, optionally within [first_time, last_time]."""
        query = "SELECT * FROM patterns"
        conditions, params = [], []
        if first_time is not None:
            conditions.append("time >= ?")
            params.append(int(first_time))
        if last_time is not None:
            conditions.append("time <= ?")
            params.append(int(last_time))
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY time"

        return self._read_frame(query, params)

    def rebuild_derived(self) -> None:
        """Drop candle and pattern rows and recreate their tables for the current average set."""
        with self.connection() as conn:
            conn.execute("DROP TABLE IF EXISTS candles")
            conn.execute("DROP TABLE IF EXISTS patterns")
        self._ensure_schema()
        logger.info("Candle and pattern tables rebuilt")

    # =========================================================================
    # Ranges
    # =========================================================================

    def save_ranges(self, rows: Sequence[Dict[str, Any]]) -> None:
        """Replace all stored ranges."""
        with self.connection() as conn:
            conn.execute("DELETE FROM ranges")
            conn.executemany(
                "INSERT INTO ranges (name, mean, std, minimum, maximum) VALUES (?, ?, ?, ?, ?)",
                [
                    (row["name"], _to_sql(row["mean"]), _to_sql(row["std"]),
                     _to_sql(row["minimum"]), _to_sql(row["maximum"]))
                    for row in rows
                ]
            )

    def load_ranges(self) -> List[Dict[str, Any]]:
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM ranges ORDER BY name").fetchall()
            return [dict(row) for row in rows]

    # =========================================================================
    # Meta
    # =========================================================================

    def get_meta(self, key: str, default: Optional[str] = None) -> Optional[str]:
        with self.connection() as conn:
            row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else default

    def set_meta(self, key: str, value: Optional[str]) -> None:
        with self.connection() as conn:
            conn.execute(
                "INSERT INTO meta (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value)
            )

    def get_watermark(self, stage: str) -> Optional[int]:
        """Last bar time committed by a stage, None when nothing was committed."""
        value = self.get_meta(f"watermark.{stage}")
        return int(value) if value is not None else None

    def set_watermark(self, stage: str, time: Optional[int]) -> None:
        self.set_meta(f"watermark.{stage}", None if time is None else str(int(time)))

    def clear_watermarks(self) -> None:
        with self.connection() as conn:
            conn.execute("DELETE FROM meta WHERE key LIKE 'watermark.%'")

    def stored_averages(self) -> Optional[AverageSet]:
        """Average set used by the last run, None for a new instance."""
        value = self.get_meta("averages")
        return AverageSet.from_json(value) if value else None

    def save_averages(self) -> None:
        self.set_meta("averages", self.averages.to_json())

    def summary(self) -> Dict[str, Any]:
        """Row counts and watermarks, for logging and the CLI."""
        with self.connection() as conn:
            counts = {
                table: conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
                for table in ("bars", "candles", "patterns", "ranges")
            }
            watermarks = {
                row["key"].split(".", 1)[1]: row["value"]
                for row in conn.execute("SELECT key, value FROM meta WHERE key LIKE 'watermark.%'")
            }
        return {"counts": counts, "watermarks": watermarks, "averages": json.loads(self.averages.to_json())}
