"""L2 persistent store backed by SQLite."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from tagcache.cache.stats import CacheEntry
from tagcache.errors.exceptions import BackingStoreUnavailable
from tagcache.types import Clock

logger = logging.getLogger(__name__)

_DEFAULT_DB_PATH = Path.home() / ".tagcache" / "cache.db"


def _is_locked(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and "locked" in str(exc).lower()


class DiskStore:
    """SQLite-backed secondary store with lazy expiry and tag lookup.

    Every ``sqlite3.Error`` leaves this class as ``BackingStoreUnavailable``.
    Bytes are stored as BLOBs; all other values must be JSON-serializable.
    """

    def __init__(self, db_path: Path | None = None, clock: Clock = time.time) -> None:
        self._db_path = db_path or _DEFAULT_DB_PATH
        self._clock = clock
        self._lock = threading.Lock()
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._create_tables()
        except (OSError, sqlite3.Error) as e:
            raise BackingStoreUnavailable(
                f"Cannot open cache database {self._db_path}: {e}",
                operation="open",
                original=e,
            ) from e

    @property
    def path(self) -> Path:
        return self._db_path

    def get(self, key: str) -> CacheEntry | None:
        with self._guard("get", key):
            row = self._execute("SELECT * FROM cache WHERE key = ?", (key,)).fetchone()
            if row is None:
                return None
            if self._clock() >= row["expires_at"]:
                self._delete_key(key)
                self._conn.commit()
                return None
            tags = [
                r["tag"]
                for r in self._execute("SELECT tag FROM cache_tags WHERE key = ?", (key,))
            ]
            return self._row_to_entry(row, tags)

    def set(self, entry: CacheEntry) -> None:
        """Insert or replace ``entry``.

        Raises ValueError if the value cannot be encoded for storage.
        """
        value_json, value_blob = _encode_value(entry.value)
        with self._guard("set", entry.key):
            self._delete_key(entry.key)
            self._execute(
                """INSERT INTO cache
                   (key, created_at, expires_at, value_json, value_blob, size_bytes)
                   VALUES (?, ?, ?, ?, ?, ?)""",
                (
                    entry.key, entry.created_at, entry.expires_at,
                    value_json, value_blob, entry.size_bytes,
                ),
            )
            self._conn.executemany(
                "INSERT INTO cache_tags (key, tag) VALUES (?, ?)",
                [(entry.key, tag) for tag in sorted(entry.tags)],
            )
            self._conn.commit()

    def delete(self, key: str) -> None:
        with self._guard("delete", key):
            self._delete_key(key)
            self._conn.commit()

    def keys_for_tag(self, tag: str) -> list[str]:
        with self._guard("keys_for_tag"):
            rows = self._execute(
                "SELECT key FROM cache_tags WHERE tag = ? ORDER BY key", (tag,)
            ).fetchall()
            return [r["key"] for r in rows]

    def clear(self) -> None:
        with self._guard("clear"):
            self._execute("DELETE FROM cache_tags")
            self._execute("DELETE FROM cache")
            self._conn.commit()

    def purge_expired(self) -> int:
        with self._guard("purge_expired"):
            now = self._clock()
            self._execute(
                "DELETE FROM cache_tags WHERE key IN "
                "(SELECT key FROM cache WHERE expires_at <= ?)",
                (now,),
            )
            cursor = self._execute("DELETE FROM cache WHERE expires_at <= ?", (now,))
            self._conn.commit()
            return cursor.rowcount

    @property
    def entry_count(self) -> int:
        with self._guard("entry_count"):
            return self._execute("SELECT COUNT(*) FROM cache").fetchone()[0]

    @property
    def tag_count(self) -> int:
        with self._guard("tag_count"):
            return self._execute("SELECT COUNT(DISTINCT tag) FROM cache_tags").fetchone()[0]

    @property
    def size_mb(self) -> float:
        with self._guard("size_mb"):
            row = self._execute("SELECT COALESCE(SUM(size_bytes), 0) FROM cache").fetchone()
            return row[0] / (1024 * 1024)

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    @contextmanager
    def _guard(self, operation: str, key: str | None = None) -> Iterator[None]:
        with self._lock:
            try:
                yield
            except sqlite3.Error as e:
                logger.debug("SQLite %s failed for key %r: %s", operation, key, e)
                raise BackingStoreUnavailable(
                    f"Cache database {operation} failed: {e}",
                    operation=operation,
                    key=key,
                    original=e,
                ) from e

    @retry(
        retry=retry_if_exception(_is_locked),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
        stop=stop_after_attempt(5),
        reraise=True,
    )
    def _execute(self, sql: str, params: tuple[Any, ...] = ()) -> sqlite3.Cursor:
        return self._conn.execute(sql, params)

    def _delete_key(self, key: str) -> None:
        self._execute("DELETE FROM cache_tags WHERE key = ?", (key,))
        self._execute("DELETE FROM cache WHERE key = ?", (key,))

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS cache (
                key TEXT PRIMARY KEY,
                created_at REAL,
                expires_at REAL,
                value_json TEXT,
                value_blob BLOB,
                size_bytes INTEGER
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS cache_tags (
                key TEXT NOT NULL,
                tag TEXT NOT NULL,
                PRIMARY KEY (key, tag)
            )
        """)
        self._conn.execute("CREATE INDEX IF NOT EXISTS idx_cache_tags_tag ON cache_tags (tag)")
        self._conn.commit()

    @staticmethod
    def _row_to_entry(row: sqlite3.Row, tags: list[str]) -> CacheEntry:
        if row["value_blob"] is not None:
            value: Any = bytes(row["value_blob"])
        else:
            value = json.loads(row["value_json"]) if row["value_json"] is not None else None
        return CacheEntry(
            key=row["key"],
            value=value,
            created_at=row["created_at"],
            expires_at=row["expires_at"],
            tags=tags,
        )


def _encode_value(value: Any) -> tuple[str | None, bytes | None]:
    if isinstance(value, (bytes, bytearray)):
        return None, bytes(value)
    try:
        return json.dumps(value), None
    except (TypeError, ValueError) as e:
        raise ValueError(f"Value of type {type(value).__name__} is not storable: {e}") from e
