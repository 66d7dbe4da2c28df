"""
SQLite-backed ordered key-value store.

Keys and values are byte strings. Keys are kept in a single table whose
primary key is a BLOB, so SQLite compares them with memcmp and range
scans come back in lexicographic byte order, which is what prefix
sub-stores and paginated listings rely on.

Design Principles:
    - Ordered: iteration is by byte-wise key order, forward or reverse
    - Atomic: transaction() groups writes; failures roll everything back
    - Self-contained: a single .db file (or ":memory:") holds all state
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Generator, Iterator

from taxexempt.errors import StorageConnectionError, StorageReadError, StorageWriteError

logger = logging.getLogger(__name__)

# Schema version for migrations
SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

-- Ordered key-value records
CREATE TABLE IF NOT EXISTS kv (
    key BLOB PRIMARY KEY,
    value BLOB NOT NULL
) WITHOUT ROWID;
"""


def now_iso() -> str:
    """Get current UTC time in ISO format."""
    return datetime.now(UTC).isoformat()


class KVStore:
    """
    Ordered key-value store on top of SQLite.

    Usage:
        store = KVStore("taxexempt.db")
        store.set(b"key", b"value")
        for key, value in store.iterator(b"a", b"z"):
            ...
        store.close()

    Or use as context manager:
        with KVStore(":memory:") as store:
            with store.transaction():
                store.set(b"a", b"1")
                store.delete(b"b")
    """

    def __init__(self, db_path: str | Path) -> None:
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file, or ":memory:".
                     Will be created if it doesn't exist.
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        self._conn: sqlite3.Connection | None = None
        self._tx_depth = 0
        self._connect()
        self._init_schema()

    def _connect(self) -> None:
        """Establish database connection."""
        try:
            self._conn = sqlite3.connect(
                str(self.db_path),
                check_same_thread=False,
            )
        except sqlite3.Error as e:
            raise StorageConnectionError(
                db_path=str(self.db_path),
                operation="connect",
                message=f"Failed to connect to database: {e}",
            ) from e

    def _init_schema(self) -> None:
        """Initialize database schema if needed."""
        try:
            cursor = self._conn.executescript(CREATE_TABLES_SQL)
            cursor.close()

            cursor = self._conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            row = cursor.fetchone()
            if row is None:
                self._conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, now_iso()),
                )
            self._conn.commit()
        except sqlite3.Error as e:
            raise StorageWriteError(
                operation="init_schema",
                underlying_error=str(e),
            ) from e

    @contextmanager
    def transaction(self) -> Generator[None, None, None]:
        """
        Context manager for atomic writes.

        Writes made inside the block are committed together when the
        outermost block exits cleanly and rolled back if any exception
        escapes it. Nested blocks join the enclosing transaction.
        """
        self._tx_depth += 1
        try:
            yield
            if self._tx_depth == 1:
                self._conn.commit()
        except BaseException:
            # includes KeyboardInterrupt and SystemExit
            if self._tx_depth == 1:
                self._conn.rollback()
                logger.debug("Rolled back transaction")
            raise
        finally:
            self._tx_depth -= 1

    @property
    def in_transaction(self) -> bool:
        """Whether a transaction() block is currently open."""
        return self._tx_depth > 0

    def _maybe_commit(self) -> None:
        if not self.in_transaction:
            self._conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "KVStore":
        """Enter context manager."""
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager."""
        self.close()

    # =========================================================================
    # Point Operations
    # =========================================================================

    def get(self, key: bytes) -> bytes | None:
        """Return the value stored under ``key``, or None."""
        try:
            cursor = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,))
            row = cursor.fetchone()
            return None if row is None else bytes(row[0])
        except sqlite3.Error as e:
            raise StorageReadError(operation="get", underlying_error=str(e)) from e

    def has(self, key: bytes) -> bool:
        """Return True if ``key`` is present."""
        return self.get(key) is not None

    def set(self, key: bytes, value: bytes) -> None:
        """Insert or replace ``key``."""
        try:
            self._conn.execute(
                "INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)",
                (key, value),
            )
            self._maybe_commit()
        except sqlite3.Error as e:
            raise StorageWriteError(operation="set", underlying_error=str(e)) from e

    def delete(self, key: bytes) -> None:
        """Delete ``key`` if present."""
        try:
            self._conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            self._maybe_commit()
        except sqlite3.Error as e:
            raise StorageWriteError(operation="delete", underlying_error=str(e)) from e

    # =========================================================================
    # Range Iteration
    # =========================================================================

    def iterator(
        self,
        start: bytes | None = None,
        end: bytes | None = None,
        reverse: bool = False,
    ) -> Iterator[tuple[bytes, bytes]]:
        """
        Iterate over ``start <= key < end`` in key order.

        Args:
            start: Inclusive lower bound (None = unbounded)
            end: Exclusive upper bound (None = unbounded)
            reverse: Yield in descending key order

        The range is read eagerly, so callers may mutate the store while
        consuming the iterator.
        """
        clauses = []
        params: list[Any] = []
        if start is not None:
            clauses.append("key >= ?")
            params.append(start)
        if end is not None:
            clauses.append("key < ?")
            params.append(end)

        sql = "SELECT key, value FROM kv"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY key DESC" if reverse else " ORDER BY key ASC"

        try:
            rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageReadError(operation="iterate", underlying_error=str(e)) from e

        for key, value in rows:
            yield bytes(key), bytes(value)
