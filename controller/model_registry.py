from __future__ import annotations

import asyncio
import sqlite3
from datetime import datetime, timezone


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_guild_model_sync(conn: sqlite3.Connection, guild_id: str) -> str | None:
    cur = conn.cursor()
    cur.execute("SELECT model FROM guild_model_bindings WHERE guild_id = ? LIMIT 1", (str(guild_id),))
    row = cur.fetchone()
    return str(row[0]) if row and row[0] else None


def upsert_guild_model_sync(conn: sqlite3.Connection, guild_id: str, model: str) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO guild_model_bindings (guild_id, model, updated_at_utc)
        VALUES (?, ?, ?)
        ON CONFLICT(guild_id) DO UPDATE SET
            model=excluded.model,
            updated_at_utc=excluded.updated_at_utc
        """,
        (str(guild_id), str(model), _utc_now_iso()),
    )
    conn.commit()


class InMemoryModelRegistry:
    """Per-guild default model held in process memory; a restart forgets every binding."""

    persistent = False

    def __init__(self, initial: dict[str, str] | None = None):
        self._models: dict[str, str] = dict(initial or {})

    async def get(self, guild_id: str) -> str | None:
        return self._models.get(str(guild_id))

    async def set(self, guild_id: str, model: str) -> None:
        self._models[str(guild_id)] = str(model)


class SqliteModelRegistry:
    """Per-guild default model stored in guild_model_bindings; survives restarts."""

    persistent = True

    def __init__(self, *, db_lock, db_conn: sqlite3.Connection):
        self.db_lock = db_lock
        self.db_conn = db_conn

    async def get(self, guild_id: str) -> str | None:
        async with self.db_lock:
            return await asyncio.to_thread(get_guild_model_sync, self.db_conn, guild_id)

    async def set(self, guild_id: str, model: str) -> None:
        async with self.db_lock:
            await asyncio.to_thread(upsert_guild_model_sync, self.db_conn, guild_id, model)


def build_model_registry(kind: str, *, db_lock, db_conn: sqlite3.Connection):
    kind = (kind or "").strip().lower()
    if kind == "memory":
        return InMemoryModelRegistry()
    if kind == "sqlite":
        return SqliteModelRegistry(db_lock=db_lock, db_conn=db_conn)
    raise ValueError(f"Unknown model registry kind: {kind!r}")
