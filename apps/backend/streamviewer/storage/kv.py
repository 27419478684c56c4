from __future__ import annotations

import json
import sqlite3
from typing import Any

from streamviewer.errors import PersistenceError
from streamviewer.util.time import now_utc_iso

from .db import Database

_UPSERT_SQL = """
    INSERT INTO kv (namespace, key, value, updated_at)
    VALUES (?, ?, ?, ?)
    ON CONFLICT(namespace, key) DO UPDATE SET
      value=excluded.value,
      updated_at=excluded.updated_at
"""


class KeyValueStore:
    """Namespaced string store with bool and JSON helpers on top."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_string(self, namespace: str, key: str, default: str | None = None) -> str | None:
        try:
            row = self.db.query_one("SELECT value FROM kv WHERE namespace = ? AND key = ?", (namespace, key))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to read {namespace}/{key}: {exc}") from exc
        if row is None:
            return default
        return str(row["value"])

    def set_string(self, namespace: str, key: str, value: str) -> None:
        self.set_many(namespace, {key: value})

    def set_many(self, namespace: str, values: dict[str, str]) -> None:
        now_iso = now_utc_iso()
        try:
            with self.db.transaction() as conn:
                for key, value in values.items():
                    conn.execute(_UPSERT_SQL, (namespace, key, value, now_iso))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to write {namespace}: {exc}") from exc

    def delete(self, namespace: str, key: str) -> None:
        try:
            self.db.execute("DELETE FROM kv WHERE namespace = ? AND key = ?", (namespace, key))
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to delete {namespace}/{key}: {exc}") from exc

    def get_bool(self, namespace: str, key: str, default: bool = False) -> bool:
        raw = self.get_string(namespace, key)
        if raw is None:
            return default
        return raw == "true"

    def set_bool(self, namespace: str, key: str, value: bool) -> None:
        self.set_string(namespace, key, "true" if value else "false")

    def get_json(self, namespace: str, key: str, default: Any = None) -> Any:
        raw = self.get_string(namespace, key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupt value at {namespace}/{key}: {exc}") from exc

    def set_json(self, namespace: str, key: str, value: Any) -> None:
        self.set_string(namespace, key, json.dumps(value, ensure_ascii=True))
