"""SQLite-backed key/value store.

Holds small string payloads such as the persisted contact directory. Blocking
sqlite calls run in a worker thread via ``asyncio.to_thread`` so callers stay
on the event loop.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

import structlog

from email_client_core.exceptions import StorageError

logger = structlog.get_logger()


_SCHEMA_VERSION = 1


class SqliteKeyValueStore:
    """Key/value store persisted in a local SQLite database."""

    def __init__(self, db_path: Path) -> None:
        """Create a store.

        Args:
            db_path: Path to the SQLite database file.
        """

        self._db_path = db_path
        self._initialized = False

    def initialize(self) -> None:
        """Create or validate the store schema."""

        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL;")

            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS _schema_meta (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )

            current_version = self._get_schema_version(conn)
            if current_version is None:
                self._create_schema_v1(conn)
                self._set_schema_version(conn, _SCHEMA_VERSION)
                conn.commit()
                logger.info("kv_store_schema_created", version=_SCHEMA_VERSION, path=str(self._db_path))
            elif current_version != _SCHEMA_VERSION:
                raise StorageError(
                    f"Unsupported schema version {current_version}; expected {_SCHEMA_VERSION}"
                )

        self._initialized = True

    async def get(self, key: str) -> str | None:
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except sqlite3.Error as exc:
            logger.exception("kv_store_get_failed", key=key, error=str(exc))
            raise StorageError(str(exc)) from exc

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(self._set_sync, key, value)
        except sqlite3.Error as exc:
            logger.exception("kv_store_set_failed", key=key, error=str(exc))
            raise StorageError(str(exc)) from exc

    def keys(self) -> list[str]:
        """List stored keys, sorted."""

        self._ensure_initialized()
        with self._connect() as conn:
            rows = conn.execute("SELECT key FROM kv ORDER BY key;").fetchall()
        return [row["key"] for row in rows]

    def _get_sync(self, key: str) -> str | None:
        self._ensure_initialized()
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?;", (key,)).fetchone()
        return None if row is None else str(row["value"])

    def _set_sync(self, key: str, value: str) -> None:
        self._ensure_initialized()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at_iso)
                VALUES (:key, :value, :updated_at_iso)
                ON CONFLICT(key) DO UPDATE SET
                    value=excluded.value,
                    updated_at_iso=excluded.updated_at_iso
                """,
                {
                    "key": key,
                    "value": value,
                    "updated_at_iso": datetime.now(timezone.utc).isoformat(),
                },
            )
            conn.commit()

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            self.initialize()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self._db_path)
        try:
            conn.row_factory = sqlite3.Row
            yield conn
        finally:
            conn.close()

    def _get_schema_version(self, conn: sqlite3.Connection) -> int | None:
        row = conn.execute(
            "SELECT value FROM _schema_meta WHERE key = 'schema_version'"
        ).fetchone()
        if row is None:
            return None
        return int(row[0])

    def _set_schema_version(self, conn: sqlite3.Connection, version: int) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO _schema_meta(key, value) VALUES('schema_version', ?) ",
            (str(version),),
        )

    def _create_schema_v1(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS kv (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at_iso TEXT NOT NULL
            );
            """
        )
