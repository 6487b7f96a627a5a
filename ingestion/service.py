from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any

import aiohttp

from config.defaults import MAX_ATTACHMENT_BYTES
from controller.errors import AttachmentProcessingFailed
from controller.errors import AttachmentTooLarge
from controller.errors import BackendTimeout
from memory.models import Sender
from memory.models import Turn
from memory.models import user_turn


@dataclass(frozen=True, slots=True)
class AttachmentRef:
    url: str
    filename: str
    content_type: str | None
    size: int

    @classmethod
    def from_discord(cls, attachment: Any) -> "AttachmentRef":
        return cls(
            url=str(attachment.url),
            filename=str(getattr(attachment, "filename", "") or "attachment"),
            content_type=getattr(attachment, "content_type", None),
            size=int(getattr(attachment, "size", 0) or 0),
        )

    @property
    def is_text(self) -> bool:
        return (self.content_type or "").lower().startswith("text/")


class AttachmentFetcher:
    """Downloads attachment bodies over HTTP with one shared aiohttp session."""

    def __init__(self, *, timeout_seconds: float):
        self.timeout_seconds = float(timeout_seconds)
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds),
            )
        return self._session

    async def fetch_text(self, url: str) -> str:
        async with self._get_session().get(url) as response:
            response.raise_for_status()
            return await response.text()

    async def fetch_bytes(self, url: str) -> bytes:
        async with self._get_session().get(url) as response:
            response.raise_for_status()
            return await response.read()

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


def check_attachment_size(ref: AttachmentRef, *, max_bytes: int = MAX_ATTACHMENT_BYTES) -> None:
    if int(ref.size) > int(max_bytes):
        raise AttachmentTooLarge(f"{ref.filename} is {ref.size} bytes (limit {max_bytes})")


async def ingest_attachment(
    ref: AttachmentRef,
    *,
    sender: Sender,
    fetcher,
    timestamp: int,
    timeout_seconds: float | None = None,
    max_bytes: int = MAX_ATTACHMENT_BYTES,
) -> Turn:
    """
    Turn one attachment into a user turn placed right after the prompt turn.

    text/* bodies are inlined under the file name. Every other type, images
    and unknown binaries alike, is base64-encoded into the turn's images.
    """
    check_attachment_size(ref, max_bytes=max_bytes)

    label = f"Attached file: {ref.filename}"
    try:
        if ref.is_text:
            text = await asyncio.wait_for(fetcher.fetch_text(ref.url), timeout_seconds)
            return user_turn(sender, f"{label}\nFile contents:\n{text}", timestamp=timestamp)

        data = await asyncio.wait_for(fetcher.fetch_bytes(ref.url), timeout_seconds)
        encoded = base64.b64encode(data).decode("ascii")
        return user_turn(sender, label, timestamp=timestamp, images=[encoded])
    except asyncio.TimeoutError as e:
        print(f"[Attach] Timed out fetching {ref.filename}: {e!r}")
        raise BackendTimeout(f"attachment fetch timed out: {ref.filename}") from e
    except (aiohttp.ClientError, OSError, ValueError) as e:
        print(f"[Attach] Failed to process {ref.filename} ({ref.content_type}): {e}")
        raise AttachmentProcessingFailed(str(e)) from e
