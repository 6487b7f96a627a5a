from __future__ import annotations

import asyncio
import base64
import binascii
from typing import Any

import httpx
import ollama
import openai

from controller.errors import BackendError
from controller.errors import BackendTimeout
from controller.errors import BackendUnavailable
from memory.models import Turn


def to_ollama_messages(turns: list[Turn]) -> list[dict[str, Any]]:
    return [t.to_backend_message() for t in turns]


IMAGE_SIGNATURES = (
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)
FALLBACK_MIME_TYPE = "application/octet-stream"


def sniff_image_mime_type(encoded: str) -> str:
    """MIME type from the magic bytes of a base64 payload."""
    try:
        head = base64.b64decode(encoded[:24], validate=False)
    except (binascii.Error, ValueError):
        return FALLBACK_MIME_TYPE
    for magic, mime in IMAGE_SIGNATURES:
        if head.startswith(magic):
            return mime
    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return FALLBACK_MIME_TYPE


def to_openai_messages(turns: list[Turn]) -> list[dict[str, Any]]:
    """
    Chat-completions has no `images` field; image turns become content parts
    with base64 data URIs.
    """
    out: list[dict[str, Any]] = []
    for t in turns:
        if not t.images:
            out.append({"role": t.role.value, "content": t.content})
            continue
        parts: list[dict[str, Any]] = []
        if t.content:
            parts.append({"type": "text", "text": t.content})
        for img in t.images:
            parts.append({"type": "image_url", "image_url": {"url": f"data:{sniff_image_mime_type(img)};base64,{img}"}})
        out.append({"role": t.role.value, "content": parts})
    return out


class OllamaBackend:
    name = "ollama"

    def __init__(self, *, host: str, timeout_seconds: float, client: Any = None):
        self.host = host
        self.client = client or ollama.Client(host=host, timeout=timeout_seconds)

    async def chat(self, model: str, turns: list[Turn]) -> str:
        try:
            resp = await asyncio.to_thread(
                self.client.chat,
                model=model,
                messages=to_ollama_messages(turns),
            )
        except (httpx.TimeoutException, TimeoutError) as e:
            raise BackendTimeout(str(e)) from e
        except (httpx.ConnectError, ConnectionError) as e:
            raise BackendUnavailable(f"{self.host}: {e}") from e
        except (ollama.ResponseError, ollama.RequestError, httpx.HTTPError) as e:
            raise BackendError(str(e)) from e

        try:
            return str(resp["message"]["content"] or "")
        except (KeyError, TypeError) as e:
            raise BackendError(f"malformed ollama response: {e}") from e

    async def list_models(self) -> list[str]:
        try:
            resp = await asyncio.to_thread(self.client.list)
        except (httpx.ConnectError, ConnectionError) as e:
            raise BackendUnavailable(f"{self.host}: {e}") from e
        except (ollama.ResponseError, httpx.HTTPError) as e:
            raise BackendError(str(e)) from e

        names: list[str] = []
        for m in resp["models"] or []:
            name = getattr(m, "model", None) or (m.get("name") if isinstance(m, dict) else None)
            if name:
                names.append(str(name))
        return names


class OpenAICompatBackend:
    name = "openai"

    def __init__(self, *, base_url: str, api_key: str, timeout_seconds: float, client: Any = None):
        self.base_url = base_url
        self.client = client or openai.OpenAI(base_url=base_url, api_key=api_key, timeout=timeout_seconds)

    async def chat(self, model: str, turns: list[Turn]) -> str:
        try:
            resp = await asyncio.to_thread(
                self.client.chat.completions.create,
                model=model,
                messages=to_openai_messages(turns),
            )
        except openai.APITimeoutError as e:
            raise BackendTimeout(str(e)) from e
        except openai.APIConnectionError as e:
            raise BackendUnavailable(f"{self.base_url}: {e}") from e
        except openai.OpenAIError as e:
            raise BackendError(str(e)) from e

        try:
            return str(resp.choices[0].message.content or "")
        except (AttributeError, IndexError) as e:
            raise BackendError(f"malformed completion response: {e}") from e

    async def list_models(self) -> list[str]:
        try:
            page = await asyncio.to_thread(self.client.models.list)
        except openai.APIConnectionError as e:
            raise BackendUnavailable(f"{self.base_url}: {e}") from e
        except openai.OpenAIError as e:
            raise BackendError(str(e)) from e
        return [str(m.id) for m in page]


def build_backend(
    kind: str,
    *,
    ollama_host: str,
    openai_base_url: str,
    openai_api_key: str,
    timeout_seconds: float,
):
    kind = (kind or "").strip().lower()
    if kind == "ollama":
        return OllamaBackend(host=ollama_host, timeout_seconds=timeout_seconds)
    if kind == "openai":
        return OpenAICompatBackend(
            base_url=openai_base_url,
            api_key=openai_api_key,
            timeout_seconds=timeout_seconds,
        )
    raise ValueError(f"Unknown LLM backend: {kind!r}")
