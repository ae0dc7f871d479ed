"""
Durable key/value storage for the sequence library.

Storage calls never raise for I/O trouble. They return a StorageResult whose
error_kind tells a read failure from a write failure; serialization failures
are reported with the same type by the caller that does the encoding.
"""
from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from loguru import logger


class StorageErrorKind(Enum):
    READ = "read"
    WRITE = "write"
    SERIALIZATION = "serialization"


@dataclass
class StorageResult:
    """Outcome of a storage or (de)serialization step."""

    ok: bool
    data: Any = None
    error_kind: Optional[StorageErrorKind] = None
    error_message: Optional[str] = None

    @classmethod
    def success(cls, data: Any = None) -> "StorageResult":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, kind: StorageErrorKind, message: str) -> "StorageResult":
        return cls(ok=False, error_kind=kind, error_message=message)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok, "data": self.data}
        if not self.ok:
            result["error_kind"] = self.error_kind.value if self.error_kind else None
            result["error_message"] = self.error_message
        return result


class KeyValueStorage(ABC):
    @abstractmethod
    def read(self, key: str) -> StorageResult:
        """Return the stored text (data=None when the key is absent)."""

    @abstractmethod
    def write(self, key: str, value: str) -> StorageResult:
        """Replace the text stored under key."""


class MemoryStorage(KeyValueStorage):
    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def read(self, key: str) -> StorageResult:
        return StorageResult.success(self._data.get(key))

    def write(self, key: str, value: str) -> StorageResult:
        self._data[key] = value
        return StorageResult.success()


class SqliteStorage(KeyValueStorage):
    """
    Single-table SQLite key/value store; one connection per call.

    An unusable path does not raise here: the table is created on the next
    read or write instead, and that call reports the failure.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._schema_ready = False
        try:
            self._ensure_schema()
        except sqlite3.Error as e:
            logger.warning("Cannot prepare storage at {}: {}", path, e)

    @property
    def path(self) -> str:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()
        self._schema_ready = True

    def read(self, key: str) -> StorageResult:
        try:
            self._ensure_schema()
            conn = self._connect()
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return StorageResult.failure(StorageErrorKind.READ, str(e))
        return StorageResult.success(row["value"] if row else None)

    def write(self, key: str, value: str) -> StorageResult:
        try:
            self._ensure_schema()
            conn = self._connect()
            try:
                conn.execute(
                    "INSERT INTO kv (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                    (key, value),
                )
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            return StorageResult.failure(StorageErrorKind.WRITE, str(e))
        return StorageResult.success()
