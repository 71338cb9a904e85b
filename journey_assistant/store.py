"""Durable key-value storage for the learning snapshot."""

from __future__ import annotations

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Dict, Optional, Protocol

from .errors import PersistenceFailure
from .utils import utc_now


class KeyValueStore(Protocol):
    """Persistence port: one text value per namespace key, overwritten in full."""

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...


class MemoryKeyValueStore:
    """Process-local store, mainly for tests and throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def put(self, key: str, value: str) -> None:
        self._values[key] = value


class SQLiteKeyValueStore:
    """Single-table SQLite store with last-writer-wins semantics."""

    def __init__(self, db_path: str | Path = ":memory:") -> None:
        self.db_path = str(db_path) if str(db_path) == ":memory:" else str(Path(db_path).expanduser())
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            self._ensure_schema()
        except (sqlite3.Error, OSError) as exc:
            raise PersistenceFailure(f"Cannot open store at {self.db_path}: {exc}") from exc

    def _ensure_schema(self) -> None:
        with closing(self.conn.cursor()) as cur:
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            self.conn.commit()

    def get(self, key: str) -> Optional[str]:
        try:
            with closing(self.conn.cursor()) as cur:
                cur.execute("SELECT value FROM kv_store WHERE key = ?", (key,))
                row = cur.fetchone()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to read {key!r}: {exc}") from exc
        return row[0] if row else None

    def put(self, key: str, value: str) -> None:
        try:
            with closing(self.conn.cursor()) as cur:
                cur.execute(
                    """
                    INSERT INTO kv_store (key, value, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value=excluded.value,
                        updated_at=excluded.updated_at
                    """,
                    (key, value, utc_now().isoformat()),
                )
                self.conn.commit()
        except sqlite3.Error as exc:
            raise PersistenceFailure(f"Failed to write {key!r}: {exc}") from exc

    def close(self) -> None:
        self.conn.close()
