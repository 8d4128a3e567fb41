"""
SQLite event store for HoneyWall.

Tables
------
honeypot_logs – append-only log of validated sensor events

`EventStore.insert_events()` is the only writer: a batch is inserted inside a
single transaction and, once committed, handed to the change notifier in id
order.  Every store call is bounded by `timeout` seconds.
"""
from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
from typing import Any

import aiosqlite

from .errors import StorageError
from .models import Event
from .notifier import ChangeNotifier

logger = logging.getLogger("honeywall.db")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

CREATE_LOGS = """
CREATE TABLE IF NOT EXISTS honeypot_logs (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    timestamp     REAL    NOT NULL,
    source_ip     TEXT    NOT NULL,
    source_port   INTEGER,
    honeypot_name TEXT    NOT NULL,
    honeypot_type TEXT    NOT NULL,
    attack_type   TEXT,
    payload       TEXT,
    protocol      TEXT,
    metadata      TEXT    NOT NULL DEFAULT '{}',
    received_at   REAL    NOT NULL
);
"""

CREATE_INDEXES = (
    "CREATE INDEX IF NOT EXISTS idx_logs_timestamp ON honeypot_logs(timestamp);",
    "CREATE INDEX IF NOT EXISTS idx_logs_source_ip ON honeypot_logs(source_ip);",
    "CREATE INDEX IF NOT EXISTS idx_logs_honeypot ON honeypot_logs(honeypot_name);",
)

INSERT_LOG = """
INSERT INTO honeypot_logs
    (timestamp, source_ip, source_port, honeypot_name, honeypot_type,
     attack_type, payload, protocol, metadata, received_at)
VALUES
    (:timestamp, :source_ip, :source_port, :honeypot_name, :honeypot_type,
     :attack_type, :payload, :protocol, :metadata, :received_at)
"""


def row_to_event(row: Any) -> Event:
    data = dict(row)
    data.pop("received_at", None)
    meta = data.get("metadata")
    if isinstance(meta, str):
        try:
            data["metadata"] = json.loads(meta)
        except json.JSONDecodeError:
            data["metadata"] = {}
    return Event(**data)


class EventStore:
    def __init__(
        self,
        db_path: str,
        notifier: ChangeNotifier | None = None,
        timeout: float = 5.0,
    ) -> None:
        self.db_path = db_path
        self.notifier = notifier
        self.timeout = timeout

    async def init_db(self) -> None:
        """Create tables if they don't exist."""
        async with aiosqlite.connect(self.db_path) as conn:
            await conn.execute(CREATE_LOGS)
            for stmt in CREATE_INDEXES:
                await conn.execute(stmt)
            await conn.commit()

    # -----------------------------------------------------------------------
    # Writes
    # -----------------------------------------------------------------------

    async def insert_events(self, records: list[dict[str, Any]]) -> list[Event]:
        """Insert a validated batch atomically; returns events in submission order.

        The row writes are bounded by `timeout` and rolled back when it
        expires.  The commit itself is never cancelled: SQLite's busy timeout
        bounds its lock wait, so a batch is either committed and published or
        not stored at all.
        """
        try:
            stored = await self._insert(records)
        except asyncio.TimeoutError as exc:
            logger.error("Database error: insert of %d rows timed out after %ss", len(records), self.timeout)
            raise StorageError() from exc
        except (sqlite3.Error, ValueError) as exc:
            logger.exception("Database error: %s", exc)
            raise StorageError() from exc

        if self.notifier is not None:
            self.notifier.publish(stored)
        return stored

    async def _insert(self, records: list[dict[str, Any]]) -> list[Event]:
        received_at = time.time()
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as conn:
            try:
                stored = await asyncio.wait_for(
                    self._write_rows(conn, records, received_at), self.timeout,
                )
            except Exception:
                await conn.rollback()
                raise
            await conn.commit()
        return stored

    async def _write_rows(
        self,
        conn: aiosqlite.Connection,
        records: list[dict[str, Any]],
        received_at: float,
    ) -> list[Event]:
        stored: list[Event] = []
        for record in records:
            row = dict(record, metadata=json.dumps(record.get("metadata") or {}),
                       received_at=received_at)
            cursor = await conn.execute(INSERT_LOG, row)
            stored.append(Event(id=cursor.lastrowid, **record))
        return stored

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def fetch_events_since(self, since_ts: float, limit: int | None = None) -> list[Event]:
        """Events with timestamp >= since_ts, newest first."""
        sql = "SELECT * FROM honeypot_logs WHERE timestamp >= ? ORDER BY timestamp DESC, id DESC"
        params: tuple = (since_ts,)
        if limit is not None:
            sql += " LIMIT ?"
            params = (since_ts, limit)
        try:
            return await asyncio.wait_for(self._select(sql, params), self.timeout)
        except asyncio.TimeoutError as exc:
            logger.error("Database error: window read timed out after %ss", self.timeout)
            raise StorageError("Failed to read log entries") from exc
        except sqlite3.Error as exc:
            logger.exception("Database error: %s", exc)
            raise StorageError("Failed to read log entries") from exc

    async def count(self) -> int:
        rows = await self._select("SELECT COUNT(*) AS n FROM honeypot_logs", (), raw=True)
        return int(rows[0]["n"])

    async def _select(self, sql: str, params: tuple, raw: bool = False) -> list:
        async with aiosqlite.connect(self.db_path, timeout=self.timeout) as conn:
            conn.row_factory = aiosqlite.Row
            async with conn.execute(sql, params) as cursor:
                rows = await cursor.fetchall()
        if raw:
            return [dict(r) for r in rows]
        return [row_to_event(r) for r in rows]
