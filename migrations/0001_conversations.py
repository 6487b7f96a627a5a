from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS conversations (
            guild_id TEXT NOT NULL,
            channel_id TEXT NOT NULL,
            conversation TEXT NOT NULL,
            updated_at_utc TEXT,
            PRIMARY KEY (guild_id, channel_id)
        )
        """
    )
    conn.commit()
