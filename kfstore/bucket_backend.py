"""Embedded-engine storage backend: nested buckets in one SQLite database.

The whole key hierarchy lives in a single database file under the store
root. Every key is split on the separator: all segments but the last walk a
chain of nested buckets starting at the top-level bucket (``"data"``), and
the last segment names an entry in the innermost bucket.

- Schema: ``buckets(id, parent, name)`` and ``entries(bucket, name, value)``.
  Deleting a bucket cascades to its sub-buckets and entries.
- A name is either a bucket or an entry within one parent, never both.
- Each operation runs inside exactly one transaction. Writes use
  ``BEGIN IMMEDIATE`` so there is one writer at a time while readers keep
  going (WAL journal).

Threading:
- One connection per backend, opened with ``check_same_thread=False``. An
  `RLock` serializes transactions on it so a `Store` can be shared between
  threads.
"""
from __future__ import annotations
import logging
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from .base import KeyLike, StorageBackend
from .errors import (
    ConflictError,
    InitializationError,
    NotFoundError,
    StoreError,
    TypeMismatchError,
)
from .file_backend import init_root
from .keys import DB_FILENAME, SEPARATOR, Container, as_container, parse_key

logger = logging.getLogger(__name__)

TOP_BUCKET = "data"

DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",
    "synchronous": "NORMAL",
    "foreign_keys": "ON",
}

SCHEMA = """
CREATE TABLE IF NOT EXISTS buckets (
    id INTEGER PRIMARY KEY,
    parent INTEGER REFERENCES buckets(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    UNIQUE (parent, name)
);
CREATE TABLE IF NOT EXISTS entries (
    bucket INTEGER NOT NULL REFERENCES buckets(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    value BLOB NOT NULL,
    PRIMARY KEY (bucket, name)
);
"""


def _open_connection(path: Path, pragmas: Optional[dict] = None, busy_timeout: float = 5.0) -> sqlite3.Connection:
    p = dict(DEFAULT_PRAGMAS)
    if pragmas:
        p.update(pragmas)
    conn = sqlite3.connect(
        str(path),
        timeout=busy_timeout,
        isolation_level=None,      # autocommit; transactions are explicit
        check_same_thread=False,   # guarded by the backend's RLock
    )
    try:
        for name, value in p.items():
            conn.execute(f"PRAGMA {name}={value}")
        conn.executescript(SCHEMA)
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def _joined(segments: Sequence[str]) -> str:
    return SEPARATOR.join(segments)


class BucketStorageBackend(StorageBackend):
    recursive_default = False
    missing_ok_default = False

    def __init__(
        self,
        base_dir: str | Path,
        *,
        bucket: str = TOP_BUCKET,
        pragmas: Optional[dict] = None,
    ) -> None:
        self._base_dir = init_root(base_dir)
        self.db_path = self._base_dir / DB_FILENAME
        self.bucket = bucket
        self._lock = threading.RLock()
        self._conn: Optional[sqlite3.Connection] = None
        try:
            self._conn = _open_connection(self.db_path, pragmas)
            with self._transaction(write=True) as cur:
                self._root_id = self._ensure_bucket(cur, None, bucket)
        except sqlite3.Error as e:
            self.close()
            raise InitializationError(f"cannot open database {self.db_path}: {e}") from e
        logger.debug("BucketStorageBackend opened %s (bucket %r)", self.db_path, bucket)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    @contextmanager
    def _transaction(self, write: bool = False) -> Iterator[sqlite3.Cursor]:
        with self._lock:
            if self._conn is None:
                raise StoreError("database is closed")
            conn = self._conn
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            cur = conn.cursor()
            try:
                yield cur
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
            else:
                try:
                    conn.execute("COMMIT")
                except sqlite3.Error:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
            finally:
                cur.close()

    # --- bucket helpers (run inside a transaction) ---

    @staticmethod
    def _child_bucket(cur: sqlite3.Cursor, parent: Optional[int], name: str) -> Optional[int]:
        row = cur.execute(
            "SELECT id FROM buckets WHERE parent IS ? AND name = ?", (parent, name)
        ).fetchone()
        return row[0] if row is not None else None

    @staticmethod
    def _has_entry(cur: sqlite3.Cursor, bucket: int, name: str) -> bool:
        row = cur.execute(
            "SELECT 1 FROM entries WHERE bucket = ? AND name = ? LIMIT 1", (bucket, name)
        ).fetchone()
        return row is not None

    def _ensure_bucket(self, cur: sqlite3.Cursor, parent: Optional[int], name: str) -> int:
        bid = self._child_bucket(cur, parent, name)
        if bid is not None:
            return bid
        if parent is not None and self._has_entry(cur, parent, name):
            raise TypeMismatchError(f"{name!r} is an entry, not a bucket")
        cur.execute("INSERT INTO buckets(parent, name) VALUES (?, ?)", (parent, name))
        return cur.lastrowid

    def _walk(self, cur: sqlite3.Cursor, segments: Sequence[str], create: bool) -> int:
        """Follow the bucket chain named by `segments` and return the last bucket id."""
        bid = self._root_id
        for i, seg in enumerate(segments):
            if create:
                bid = self._ensure_bucket(cur, bid, seg)
                continue
            nxt = self._child_bucket(cur, bid, seg)
            if nxt is None:
                if self._has_entry(cur, bid, seg):
                    raise TypeMismatchError(f"{_joined(segments[:i + 1])!r} is an entry, not a bucket")
                raise NotFoundError(f"bucket does not exist: {_joined(segments[:i + 1])}")
            bid = nxt
        return bid

    # --- StorageBackend ---

    def save(self, key: KeyLike, value: Optional[bytes] = None) -> None:
        k = parse_key(key)
        if isinstance(k, Container):
            if value:
                raise ConflictError(f"cannot store a value at container location {str(k)!r}")
            with self._transaction(write=True) as cur:
                self._walk(cur, k.segments, create=True)
            logger.debug("Created bucket chain %s", k)
            return

        data = b"" if value is None else bytes(value)
        with self._transaction(write=True) as cur:
            bid = self._walk(cur, k.parent.segments, create=True)
            if self._child_bucket(cur, bid, k.name) is not None:
                raise TypeMismatchError(f"{str(k)!r} is a bucket, not an entry")
            cur.execute(
                "INSERT INTO entries(bucket, name, value) VALUES (?, ?, ?) "
                "ON CONFLICT(bucket, name) DO UPDATE SET value = excluded.value",
                (bid, k.name, data),
            )
        logger.debug("Put %s (%d bytes)", k, len(data))

    def load(self, key: KeyLike) -> bytes:
        k = parse_key(key)
        if isinstance(k, Container):
            raise TypeMismatchError(f"{str(k)!r} names a bucket, not an entry")
        with self._transaction() as cur:
            bid = self._walk(cur, k.parent.segments, create=False)
            row = cur.execute(
                "SELECT value FROM entries WHERE bucket = ? AND name = ?", (bid, k.name)
            ).fetchone()
            if row is None:
                if self._child_bucket(cur, bid, k.name) is not None:
                    raise TypeMismatchError(f"{str(k)!r} is a bucket, not an entry")
                raise NotFoundError(f"key not found: {k}")
        return bytes(row[0])

    def list_keys(self, key: KeyLike = "", recursive: Optional[bool] = None) -> List[str]:
        k = as_container(key)
        if recursive is None:
            recursive = self.recursive_default
        with self._transaction() as cur:
            bid = self._walk(cur, k.segments, create=False)
            if not recursive:
                rows = cur.execute(
                    "SELECT name FROM buckets WHERE parent = ? "
                    "UNION SELECT name FROM entries WHERE bucket = ? ORDER BY name",
                    (bid, bid),
                ).fetchall()
            else:
                rows = cur.execute(
                    "WITH RECURSIVE sub(id) AS ("
                    " SELECT ? UNION ALL SELECT b.id FROM buckets b JOIN sub ON b.parent = sub.id"
                    ") SELECT e.name FROM entries e JOIN sub ON e.bucket = sub.id ORDER BY e.name",
                    (bid,),
                ).fetchall()
        return [r[0] for r in rows]

    def delete(self, key: KeyLike, missing_ok: Optional[bool] = None) -> None:
        k = parse_key(key)
        if k.is_root:
            raise ConflictError("refusing to delete the store root")
        if missing_ok is None:
            missing_ok = self.missing_ok_default
        with self._transaction(write=True) as cur:
            try:
                parent = self._walk(cur, k.parent.segments, create=False)
            except NotFoundError:
                if missing_ok:
                    return
                raise

            if isinstance(k, Container):
                bid = self._child_bucket(cur, parent, k.name)
                if bid is None:
                    if self._has_entry(cur, parent, k.name):
                        raise TypeMismatchError(f"{str(k)!r} is an entry, not a bucket")
                    if missing_ok:
                        return
                    raise NotFoundError(f"bucket does not exist: {k}")
                cur.execute("DELETE FROM buckets WHERE id = ?", (bid,))
            else:
                cur.execute("DELETE FROM entries WHERE bucket = ? AND name = ?", (parent, k.name))
                if cur.rowcount == 0:
                    if self._child_bucket(cur, parent, k.name) is not None:
                        raise TypeMismatchError(f"{str(k)!r} is a bucket, not an entry")
                    if missing_ok:
                        return
                    raise NotFoundError(f"key not found: {k}")
        logger.debug("Deleted %s", k)

    def exists(self, key: KeyLike) -> bool:
        k = parse_key(key)
        if k.is_root:
            return True
        with self._transaction() as cur:
            try:
                parent = self._walk(cur, k.parent.segments, create=False)
            except (NotFoundError, TypeMismatchError):
                return False
            if isinstance(k, Container):
                return self._child_bucket(cur, parent, k.name) is not None
            return self._has_entry(cur, parent, k.name)

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.debug("Closed %s", self.db_path)
