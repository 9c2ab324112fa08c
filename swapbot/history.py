"""SQLite-backed swap history."""

from __future__ import annotations

import logging
from typing import Any

import aiosqlite

from .errors import PersistenceError

logger = logging.getLogger(__name__)

_COLUMNS = (
    "bot_id",
    "input_token",
    "output_token",
    "in_amount",
    "out_amount",
    "txid",
    "timestamp",
)


class SwapHistory:
    """Append-only log of completed swaps."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL;")
        await self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS swaps (
              id INTEGER PRIMARY KEY AUTOINCREMENT,
              bot_id TEXT NOT NULL,
              input_token TEXT NOT NULL,
              output_token TEXT NOT NULL,
              in_amount TEXT NOT NULL,
              out_amount TEXT NOT NULL,
              txid TEXT NOT NULL,
              timestamp TEXT NOT NULL
            )
            """
        )
        await self._conn.execute("CREATE INDEX IF NOT EXISTS idx_swaps_bot ON swaps(bot_id)")
        await self._conn.commit()
        logger.info("Swap history opened at %s", self._db_path)

    async def close(self) -> None:
        if not self._conn:
            return
        await self._conn.close()
        self._conn = None

    async def record_swap(self, swap: dict[str, Any]) -> int:
        """Insert a ``swapLogged`` payload and return the new row id."""
        if not self._conn:
            raise PersistenceError("SwapHistory is not connected")
        try:
            values = tuple(str(swap[col]) for col in _COLUMNS)
        except KeyError as e:
            raise PersistenceError(f"Swap record is missing {e}") from e

        cur = await self._conn.execute(
            f"INSERT INTO swaps ({', '.join(_COLUMNS)}) VALUES ({', '.join('?' * len(_COLUMNS))})",
            values,
        )
        await self._conn.commit()
        return int(cur.lastrowid)

    async def list_swaps(
        self, limit: int = 20, bot_id: str | None = None
    ) -> list[dict[str, Any]]:
        """Most recent swaps first."""
        if not self._conn:
            raise PersistenceError("SwapHistory is not connected")
        query = f"SELECT id, {', '.join(_COLUMNS)} FROM swaps"
        params: tuple[Any, ...] = ()
        if bot_id is not None:
            query += " WHERE bot_id = ?"
            params = (bot_id,)
        query += " ORDER BY id DESC LIMIT ?"
        params += (limit,)

        async with self._conn.execute(query, params) as cursor:
            rows = await cursor.fetchall()
        return [dict(row) for row in rows]
