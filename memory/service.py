from __future__ import annotations

import asyncio
import contextlib
import sqlite3
import time
from typing import Callable

from config.defaults import DM_GUILD_KEY
from config.defaults import EMPTY_REPLY_PLACEHOLDER
from controller.errors import BackendError
from controller.errors import BackendTimeout
from controller.errors import ChatBridgeError
from controller.errors import ConsentRequired
from controller.errors import EmptyPrompt
from controller.errors import NoDefaultModel
from controller.errors import StorePersistFailed
from ingestion.service import AttachmentRef
from ingestion.service import check_attachment_size
from ingestion.service import ingest_attachment
from memory.models import Sender
from memory.models import Turn
from memory.models import assistant_turn
from memory.models import user_turn
from memory.store import clear_transcript_sync
from memory.store import fetch_transcript_blob_sync
from memory.store import load_transcript_sync
from memory.store import replace_transcript_sync


def now_ms() -> int:
    return int(time.time() * 1000)


def guild_key(guild_id) -> str:
    return str(guild_id) if guild_id else DM_GUILD_KEY


class ChannelLocks:
    """
    One asyncio.Lock per (guild, channel) so a channel's turns never interleave.

    An entry lives only while some call holds or waits on it.
    """

    def __init__(self):
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}
        self._holders: dict[tuple[str, str], int] = {}

    @contextlib.asynccontextmanager
    async def hold(self, guild_id: str, channel_id: str):
        key = (str(guild_id), str(channel_id))
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class ConversationService:
    """
    Per-channel conversation memory in front of the model backend.

    A converse() call borrows the channel transcript, appends the user turn
    (plus an attachment turn), asks the backend, and writes the whole
    transcript back only after the reply arrives. Any failure before the write
    leaves the stored transcript exactly as it was, the user's own turn
    included.
    """

    def __init__(
        self,
        *,
        db_lock,
        db_conn: sqlite3.Connection,
        consent_gate,
        model_registry,
        backend,
        fetcher,
        timeout_seconds: float | None = None,
        clock: Callable[[], int] = now_ms,
        channel_locks: ChannelLocks | None = None,
    ):
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.consent_gate = consent_gate
        self.model_registry = model_registry
        self.backend = backend
        self.fetcher = fetcher
        self.timeout_seconds = timeout_seconds
        self.clock = clock
        self.channel_locks = channel_locks if channel_locks is not None else ChannelLocks()

    async def load(self, guild_id, channel_id) -> list[Turn]:
        async with self.db_lock:
            return await asyncio.to_thread(load_transcript_sync, self.db_conn, guild_key(guild_id), str(channel_id))

    async def replace(self, guild_id, channel_id, turns: list[Turn]) -> None:
        try:
            async with self.db_lock:
                await asyncio.to_thread(
                    replace_transcript_sync,
                    self.db_conn,
                    guild_key(guild_id),
                    str(channel_id),
                    turns,
                )
        except sqlite3.Error as e:
            print(f"[Store] Persist failed guild={guild_id} channel={channel_id}: {e}")
            raise StorePersistFailed(str(e)) from e

    async def clear(self, guild_id, channel_id) -> bool:
        async with self.channel_locks.hold(guild_key(guild_id), str(channel_id)):
            async with self.db_lock:
                existed = await asyncio.to_thread(
                    clear_transcript_sync, self.db_conn, guild_key(guild_id), str(channel_id)
                )
        print(f"[Chat] cleared guild={guild_id} channel={channel_id} existed={existed}")
        return existed

    async def export(self, guild_id, channel_id, user_id: str) -> bytes | None:
        """Stored blob, byte for byte, or None when the channel has no history."""
        if not await self.consent_gate.has_agreed(str(user_id)):
            raise ConsentRequired()
        async with self.db_lock:
            blob = await asyncio.to_thread(
                fetch_transcript_blob_sync, self.db_conn, guild_key(guild_id), str(channel_id)
            )
        return blob.encode("utf-8") if blob is not None else None

    async def resolve_model(self, guild_id, model: str | None) -> str:
        model = (model or "").strip()
        if model:
            return model
        default = await self.model_registry.get(guild_key(guild_id))
        if not default:
            raise NoDefaultModel()
        return default

    async def set_default_model(self, guild_id, model: str) -> None:
        await self.model_registry.set(guild_key(guild_id), model.strip())
        print(f"[Chat] default model guild={guild_id} -> {model.strip()}")

    async def default_model(self, guild_id) -> str | None:
        return await self.model_registry.get(guild_key(guild_id))

    async def list_models(self) -> list[str]:
        return await self.backend.list_models()

    async def check_ready(
        self,
        guild_id,
        user: Sender,
        prompt: str,
        model: str | None = None,
        attachment: AttachmentRef | None = None,
    ) -> str:
        """Checks that run before any transcript work; returns the model to use."""
        if not await self.consent_gate.has_agreed(user.id):
            raise ConsentRequired()

        resolved_model = await self.resolve_model(guild_id, model)
        if not (prompt or "").strip() and attachment is None:
            raise EmptyPrompt()
        if attachment is not None:
            check_attachment_size(attachment)
        return resolved_model

    async def converse(
        self,
        guild_id,
        channel_id,
        user: Sender,
        prompt: str,
        model: str | None = None,
        attachment: AttachmentRef | None = None,
    ) -> str:
        resolved_model = await self.check_ready(guild_id, user, prompt, model=model, attachment=attachment)
        prompt = prompt or ""

        async with self.channel_locks.hold(guild_key(guild_id), str(channel_id)):
            turns = await self.load(guild_id, channel_id)

            if prompt.strip():
                turns.append(user_turn(user, prompt, timestamp=self.clock()))

            if attachment is not None:
                turns.append(
                    await ingest_attachment(
                        attachment,
                        sender=user,
                        fetcher=self.fetcher,
                        timestamp=self.clock(),
                        timeout_seconds=self.timeout_seconds,
                    )
                )

            reply = await self._ask_backend(resolved_model, turns)

            turns.append(assistant_turn(reply or EMPTY_REPLY_PLACEHOLDER, timestamp=self.clock()))
            await self.replace(guild_id, channel_id, turns)

        print(
            f"[Chat] guild={guild_id} channel={channel_id} user={user.id} "
            f"model={resolved_model} turns={len(turns)}"
        )
        return reply or EMPTY_REPLY_PLACEHOLDER

    async def _ask_backend(self, model: str, turns: list[Turn]) -> str:
        try:
            return await asyncio.wait_for(self.backend.chat(model, turns), self.timeout_seconds)
        except asyncio.TimeoutError as e:
            print(f"[LLM] Timed out after {self.timeout_seconds}s model={model}")
            raise BackendTimeout(f"no reply within {self.timeout_seconds}s") from e
        except ChatBridgeError as e:
            print(f"[LLM] Error model={model}: {e}")
            raise
        except Exception as e:
            print(f"[LLM] Unexpected backend failure model={model}: {e!r}")
            raise BackendError(str(e)) from e
