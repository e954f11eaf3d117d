"""sqlite storage for received artifacts."""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import List, Optional

logger = logging.getLogger("WavStore")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS wavfiles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    digest TEXT,
    size INTEGER NOT NULL,
    wavfile BLOB NOT NULL,
    received_at REAL NOT NULL
)
"""


@dataclass(frozen=True)
class StoredFile:
    id: int
    name: str
    digest: Optional[str]
    size: int
    received_at: float


class WavStore:
    """One sqlite connection shared by the request handlers, serialized by a lock."""

    def __init__(self, db_path: str = ":memory:"):
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        with self._conn:
            self._conn.execute(_SCHEMA)

    def add(self, name: str, content: bytes, digest: Optional[str] = None) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute(
                "INSERT INTO wavfiles (name, digest, size, wavfile, received_at) VALUES (?, ?, ?, ?, ?)",
                (name, digest, len(content), sqlite3.Binary(content), time.time()),
            )
            row_id = cur.lastrowid
        logger.info(f"Stored {name} ({len(content)} bytes) as record {row_id}")
        return row_id

    def clear(self) -> int:
        with self._lock, self._conn:
            cur = self._conn.execute("DELETE FROM wavfiles")
            removed = cur.rowcount
        logger.info(f"Cleared {removed} record(s)")
        return removed

    def count(self) -> int:
        with self._lock:
            (n,) = self._conn.execute("SELECT COUNT(*) FROM wavfiles").fetchone()
        return n

    def list(self) -> List[StoredFile]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, name, digest, size, received_at FROM wavfiles ORDER BY id"
            ).fetchall()
        return [StoredFile(*row) for row in rows]

    def content(self, record_id: int) -> Optional[bytes]:
        with self._lock:
            row = self._conn.execute("SELECT wavfile FROM wavfiles WHERE id = ?", (record_id,)).fetchone()
        return bytes(row[0]) if row else None

    def close(self) -> None:
        with self._lock:
            self._conn.close()
