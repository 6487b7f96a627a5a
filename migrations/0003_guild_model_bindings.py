from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS guild_model_bindings (
            guild_id TEXT PRIMARY KEY,
            model TEXT NOT NULL,
            updated_at_utc TEXT
        )
        """
    )
    conn.commit()
