"""
Persistence adapters — durable key/value records shared by all components.

The contract mirrors the extension storage API the engine replaces:
``get(keys) -> {key: value}`` (missing keys are simply absent) and
``set({key: value, ...})``. Values are JSON-serialisable. Any failure is
raised as PersistenceFailure; callers decide whether to degrade.
"""

from __future__ import annotations

import copy
import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Protocol

from ..errors import PersistenceFailure

# Record keys
BLOCKED_SITES = "blockedSites"
FOCUS_MODE_SITES = "focusModeSites"
FOCUS_MODE_STATUS = "focusModeStatus"
TEMP_ACCESS = "tempAccess"
TIME_DATA = "timeData"


class PersistenceAdapter(Protocol):
    def get(self, keys: Iterable[str]) -> Dict[str, Any]: ...

    def set(self, record: Dict[str, Any]) -> None: ...

    def clear(self) -> None: ...


class MemoryStore:
    """Process-local store. Values are deep-copied in and out like a real store."""

    def __init__(self, initial: Dict[str, Any] | None = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial or {})

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        return {k: copy.deepcopy(self._data[k]) for k in keys if k in self._data}

    def set(self, record: Dict[str, Any]) -> None:
        for k, v in record.items():
            self._data[k] = copy.deepcopy(v)

    def clear(self) -> None:
        self._data.clear()

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class SqliteStore:
    """Key/value table in a local SQLite file; one JSON document per key."""

    def __init__(self, db_path: Path, timeout_s: float = 5.0):
        self.db_path = db_path
        self._timeout_s = timeout_s
        self._init_db()

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    def get(self, keys: Iterable[str]) -> Dict[str, Any]:
        keys = list(keys)
        if not keys:
            return {}
        placeholders = ", ".join("?" for _ in keys)
        with self._conn() as conn:
            rows = conn.execute(
                f"SELECT key, value_json FROM records WHERE key IN ({placeholders})",
                keys,
            ).fetchall()
        try:
            return {key: json.loads(value) for key, value in rows}
        except ValueError as e:
            raise PersistenceFailure(f"Corrupt record in {self.db_path}: {e}") from e

    def set(self, record: Dict[str, Any]) -> None:
        try:
            rows = [(k, json.dumps(v)) for k, v in record.items()]
        except (TypeError, ValueError) as e:
            raise PersistenceFailure(f"Record is not serialisable: {e}") from e
        with self._conn() as conn:
            conn.executemany(
                """
                INSERT INTO records (key, value_json) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value_json = excluded.value_json
                """,
                rows,
            )

    def clear(self) -> None:
        with self._conn() as conn:
            conn.execute("DELETE FROM records")

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _init_db(self) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS records (
                    key        TEXT PRIMARY KEY,
                    value_json TEXT NOT NULL
                )
                """
            )

    @contextmanager
    def _conn(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(
                str(self.db_path), timeout=self._timeout_s, check_same_thread=False
            )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Cannot open {self.db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Store operation failed: {e}") from e
        finally:
            conn.close()
