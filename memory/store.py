from __future__ import annotations

import sqlite3
from datetime import datetime, timezone

from memory.models import Turn
from memory.models import TranscriptDecodeError
from memory.models import decode_transcript
from memory.models import encode_transcript


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def fetch_transcript_blob_sync(conn: sqlite3.Connection, guild_id: str, channel_id: str) -> str | None:
    cur = conn.cursor()
    cur.execute(
        "SELECT conversation FROM conversations WHERE guild_id = ? AND channel_id = ? LIMIT 1",
        (str(guild_id), str(channel_id)),
    )
    row = cur.fetchone()
    if not row or not row[0]:
        return None
    return str(row[0])


def load_transcript_sync(conn: sqlite3.Connection, guild_id: str, channel_id: str) -> list[Turn]:
    """
    Missing rows load as an empty transcript. So do rows that no longer parse:
    channel memory is a cache, and a corrupt blob must not wedge the channel.
    """
    blob = fetch_transcript_blob_sync(conn, guild_id, channel_id)
    if blob is None:
        return []
    try:
        return decode_transcript(blob)
    except TranscriptDecodeError as e:
        print(f"[Store] Discarding unreadable transcript guild={guild_id} channel={channel_id}: {e}")
        return []


def replace_transcript_sync(
    conn: sqlite3.Connection,
    guild_id: str,
    channel_id: str,
    turns: list[Turn],
) -> None:
    # Whole-blob upsert; last write wins.
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO conversations (guild_id, channel_id, conversation, updated_at_utc)
        VALUES (?, ?, ?, ?)
        ON CONFLICT(guild_id, channel_id) DO UPDATE SET
            conversation=excluded.conversation,
            updated_at_utc=excluded.updated_at_utc
        """,
        (str(guild_id), str(channel_id), encode_transcript(turns), _utc_now_iso()),
    )
    conn.commit()


def clear_transcript_sync(conn: sqlite3.Connection, guild_id: str, channel_id: str) -> bool:
    cur = conn.cursor()
    cur.execute(
        "DELETE FROM conversations WHERE guild_id = ? AND channel_id = ?",
        (str(guild_id), str(channel_id)),
    )
    conn.commit()
    return cur.rowcount > 0
