"""SQLite implementation of the WatermarkStore and ErrorLog protocols."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

import aiosqlite

from juicebox_notifier.models.records import ErrorRecord

log = logging.getLogger(__name__)

SCHEMA = """
-- Delivery watermark per stream
CREATE TABLE IF NOT EXISTS watermarks (
    stream TEXT PRIMARY KEY,
    last_timestamp INTEGER NOT NULL,
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);

-- Append-only operational error log
CREATE TABLE IF NOT EXISTS error_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    stream TEXT NOT NULL,
    kind TEXT NOT NULL,
    tx_hash TEXT,
    event_timestamp INTEGER,
    message TEXT NOT NULL,
    created_at TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_error_log_created ON error_log(created_at);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SQLiteStateStore:
    """SQLite-backed watermark store and error log.

    Both live in the same database file. Watermarks are written in a single
    transaction so a crash mid-save leaves the previous state intact.
    """

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(self._db_path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)
        await self._db.commit()

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        assert self._db is not None, "Store not initialized. Call initialize() first."
        return self._db

    # ── Watermarks ─────────────────────────────────────────

    async def get_watermark(self, stream: str) -> int | None:
        async with self.db.execute(
            "SELECT last_timestamp FROM watermarks WHERE stream=?", (stream,),
        ) as cur:
            row = await cur.fetchone()
            return row["last_timestamp"] if row else None

    async def get_all_watermarks(self) -> dict[str, int]:
        async with self.db.execute(
            "SELECT stream, last_timestamp FROM watermarks ORDER BY stream"
        ) as cur:
            rows = await cur.fetchall()
            return {r["stream"]: r["last_timestamp"] for r in rows}

    async def load_watermarks(
        self, streams: Iterable[str], now: int | None = None,
    ) -> dict[str, int]:
        """Return the stored watermark for each stream.

        Streams without a row are bootstrapped to `now` (current time by
        default) and the seed is persisted right away, so a fresh install
        only ever notifies about events that happen after it starts.
        """
        seed = int(time.time()) if now is None else now
        stored = await self.get_all_watermarks()
        result: dict[str, int] = {}
        seeded: list[str] = []
        for stream in streams:
            if stream in stored:
                result[stream] = stored[stream]
            else:
                result[stream] = seed
                seeded.append(stream)

        if seeded:
            await self.db.executemany(
                "INSERT OR IGNORE INTO watermarks (stream, last_timestamp, updated_at)"
                " VALUES (?, ?, ?)",
                [(s, seed, _now()) for s in seeded],
            )
            await self.db.commit()
            log.info("Seeded watermarks for %s at %d", ", ".join(seeded), seed)

        return result

    async def save_watermarks(self, watermarks: dict[str, int]) -> None:
        now = _now()
        try:
            await self.db.executemany(
                "INSERT INTO watermarks (stream, last_timestamp, updated_at) VALUES (?, ?, ?)"
                " ON CONFLICT(stream) DO UPDATE SET last_timestamp=excluded.last_timestamp,"
                " updated_at=excluded.updated_at",
                [(stream, ts, now) for stream, ts in watermarks.items()],
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

    # ── Error log ──────────────────────────────────────────

    async def log_error(
        self,
        stream: str,
        kind: str,
        message: str,
        tx_hash: str | None = None,
        event_timestamp: int | None = None,
    ) -> None:
        await self.db.execute(
            "INSERT INTO error_log (stream, kind, tx_hash, event_timestamp, message, created_at)"
            " VALUES (?, ?, ?, ?, ?, ?)",
            (stream, kind, tx_hash, event_timestamp, message, _now()),
        )
        await self.db.commit()

    async def get_recent_errors(self, limit: int = 50) -> list[ErrorRecord]:
        async with self.db.execute(
            "SELECT * FROM error_log ORDER BY id DESC LIMIT ?", (limit,),
        ) as cur:
            rows = await cur.fetchall()
            return [
                ErrorRecord(
                    stream=r["stream"],
                    kind=r["kind"],
                    message=r["message"],
                    tx_hash=r["tx_hash"],
                    event_timestamp=r["event_timestamp"],
                    created_at=r["created_at"],
                )
                for r in rows
            ]

    async def count_errors(self) -> int:
        async with self.db.execute("SELECT COUNT(*) AS n FROM error_log") as cur:
            row = await cur.fetchone()
            return row["n"] if row else 0
