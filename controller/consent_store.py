from __future__ import annotations

import asyncio
import sqlite3
import time
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ConsentRecord:
    user_id: str
    username: str
    agreed_at: int


def has_agreed_sync(conn: sqlite3.Connection, user_id: str) -> bool:
    cur = conn.cursor()
    cur.execute("SELECT 1 FROM consent_records WHERE user_id = ? LIMIT 1", (str(user_id),))
    return cur.fetchone() is not None


def get_consent_record_sync(conn: sqlite3.Connection, user_id: str) -> ConsentRecord | None:
    cur = conn.cursor()
    cur.execute(
        "SELECT user_id, username, agreed_at FROM consent_records WHERE user_id = ? LIMIT 1",
        (str(user_id),),
    )
    row = cur.fetchone()
    if not row:
        return None
    return ConsentRecord(user_id=str(row[0]), username=str(row[1] or ""), agreed_at=int(row[2]))


def record_agreement_sync(
    conn: sqlite3.Connection,
    user_id: str,
    username: str,
    *,
    agreed_at: int | None = None,
) -> bool:
    """
    Returns True when a new record was written. Records are immutable once
    created, so agreeing again keeps the original name and instant.
    """
    if agreed_at is None:
        agreed_at = int(time.time() * 1000)
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO consent_records (user_id, username, agreed_at)
        VALUES (?, ?, ?)
        ON CONFLICT(user_id) DO NOTHING
        """,
        (str(user_id), str(username or ""), int(agreed_at)),
    )
    conn.commit()
    return cur.rowcount > 0


class ConsentGate:
    """Async facade over the consent table sharing the bot's db lock."""

    def __init__(self, *, db_lock, db_conn: sqlite3.Connection):
        self.db_lock = db_lock
        self.db_conn = db_conn

    async def has_agreed(self, user_id: str) -> bool:
        async with self.db_lock:
            return await asyncio.to_thread(has_agreed_sync, self.db_conn, user_id)

    async def record_agreement(self, user_id: str, username: str) -> bool:
        async with self.db_lock:
            created = await asyncio.to_thread(record_agreement_sync, self.db_conn, user_id, username)
        print(f"[Consent] user={user_id} agreed new_record={created}")
        return created
