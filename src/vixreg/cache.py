"""Persistent snapshot cache backed by SQLite.

Holds exactly one snapshot: its meta block under ``registry_meta`` in the
``meta`` table and the full document under ``registry_all_json`` in the
``blobs`` table. Both rows are always written in the same transaction.
"""

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

META_KEY = "registry_meta"
BLOB_KEY = "registry_all_json"

_SCHEMA = """
CREATE TABLE IF NOT EXISTS meta (
    key TEXT PRIMARY KEY,
    value TEXT
);
CREATE TABLE IF NOT EXISTS blobs (
    key TEXT PRIMARY KEY,
    json TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class CachedSnapshot:
    """A cache hit: the stored meta block and the full snapshot document."""

    meta: dict[str, Any] | None
    data: dict[str, Any]

    @property
    def generated_at(self) -> str:
        """Freshness token of the cached snapshot, empty if unknown."""
        for source in (self.meta, self.data.get("meta")):
            if isinstance(source, dict) and isinstance(source.get("generatedAt"), str):
                return source["generatedAt"]
        return ""


class SnapshotCache:
    """Versioned single-record store for the registry snapshot.

    Every call opens its own connection, so the cache can be shared between
    the caller and a background refresh thread.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path), timeout=5.0)
        try:
            self._ensure_schema(conn)
            yield conn
        finally:
            conn.close()

    @staticmethod
    def _ensure_schema(conn: sqlite3.Connection) -> None:
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version == SCHEMA_VERSION:
            return
        with conn:
            if version != 0:
                logger.info("Cache schema %s is outdated, recreating", version)
                conn.execute("DROP TABLE IF EXISTS meta")
                conn.execute("DROP TABLE IF EXISTS blobs")
            for statement in _SCHEMA.split(";"):
                if statement.strip():
                    conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")

    def get(self) -> CachedSnapshot | None:
        """Return the cached snapshot, or None if absent or incomplete."""
        # one statement, so meta and blob come from the same committed state
        with self._connect() as conn:
            row = conn.execute(
                "SELECT m.value, b.json FROM meta AS m, blobs AS b WHERE m.key = ? AND b.key = ?",
                (META_KEY, BLOB_KEY),
            ).fetchone()

        if row is None:
            return None

        meta_json, blob_json = row
        try:
            meta = json.loads(meta_json) if meta_json is not None else None
            data = json.loads(blob_json)
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable cache record in %s", self._db_path)
            return None

        if not isinstance(data, dict) or not data:
            return None
        return CachedSnapshot(meta=meta if isinstance(meta, dict) else None, data=data)

    def put(self, meta: dict[str, Any] | None, data: dict[str, Any]) -> None:
        """Replace the cached record; meta and blob commit together or not at all."""
        meta_json = json.dumps(meta) if meta is not None else None
        blob_json = json.dumps(data, separators=(",", ":"))
        with self._connect() as conn, conn:
            conn.execute(
                "INSERT OR REPLACE INTO meta (key, value) VALUES (?, ?)",
                (META_KEY, meta_json),
            )
            conn.execute(
                "INSERT OR REPLACE INTO blobs (key, json) VALUES (?, ?)",
                (BLOB_KEY, blob_json),
            )

    def clear(self) -> None:
        """Remove the cached record."""
        with self._connect() as conn, conn:
            conn.execute("DELETE FROM meta WHERE key = ?", (META_KEY,))
            conn.execute("DELETE FROM blobs WHERE key = ?", (BLOB_KEY,))
