from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS consent_records (
            user_id TEXT PRIMARY KEY,
            username TEXT NOT NULL DEFAULT '',
            agreed_at INTEGER NOT NULL
        )
        """
    )
    conn.commit()
