from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from config.defaults import ASSISTANT_SENDER_ID
from config.defaults import ASSISTANT_SENDER_NAME


class TranscriptDecodeError(ValueError):
    pass


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True, slots=True)
class Sender:
    id: str
    username: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "username": self.username}


ASSISTANT_SENDER = Sender(id=ASSISTANT_SENDER_ID, username=ASSISTANT_SENDER_NAME)


@dataclass(slots=True)
class Turn:
    role: Role
    content: str
    sender: Sender
    timestamp: int | None = None
    images: list[str] | None = field(default=None)

    def __post_init__(self) -> None:
        if not self.sender.id:
            raise TranscriptDecodeError("turn sender has no id")
        if not self.content and not self.images:
            raise TranscriptDecodeError("turn has neither content nor images")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.timestamp is not None:
            out["timestamp"] = self.timestamp
        out["sender"] = self.sender.to_dict()
        if self.images is not None:
            out["images"] = list(self.images)
        return out

    def to_backend_message(self) -> dict[str, Any]:
        # Backend messages carry only what the model reads.
        msg: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.images:
            msg["images"] = list(self.images)
        return msg


def user_turn(sender: Sender, content: str, *, timestamp: int, images: list[str] | None = None) -> Turn:
    return Turn(role=Role.USER, content=content, sender=sender, timestamp=timestamp, images=images)


def assistant_turn(content: str, *, timestamp: int) -> Turn:
    return Turn(role=Role.ASSISTANT, content=content, sender=ASSISTANT_SENDER, timestamp=timestamp)


def _parse_role(value: Any) -> Role:
    match value:
        case "user":
            return Role.USER
        case "assistant":
            return Role.ASSISTANT
        case _:
            raise TranscriptDecodeError(f"unknown role: {value!r}")


def turn_from_dict(payload: Any) -> Turn:
    if not isinstance(payload, dict):
        raise TranscriptDecodeError("turn is not an object")

    role = _parse_role(payload.get("role"))

    content = payload.get("content", "")
    if not isinstance(content, str):
        raise TranscriptDecodeError("turn content is not a string")

    raw_sender = payload.get("sender")
    if not isinstance(raw_sender, dict):
        raise TranscriptDecodeError("turn sender missing")
    sender_id = raw_sender.get("id")
    username = raw_sender.get("username", "")
    if not isinstance(sender_id, str) or not isinstance(username, str):
        raise TranscriptDecodeError("turn sender fields must be strings")

    timestamp = payload.get("timestamp")
    if timestamp is not None and (isinstance(timestamp, bool) or not isinstance(timestamp, int)):
        raise TranscriptDecodeError("turn timestamp must be an integer")

    images = payload.get("images")
    if images is not None:
        if not isinstance(images, list) or not all(isinstance(img, str) for img in images):
            raise TranscriptDecodeError("turn images must be a list of strings")

    return Turn(
        role=role,
        content=content,
        sender=Sender(id=sender_id, username=username),
        timestamp=timestamp,
        images=images,
    )


def encode_transcript(turns: list[Turn]) -> str:
    return json.dumps([t.to_dict() for t in turns], ensure_ascii=False)


def decode_transcript(blob: str) -> list[Turn]:
    """
    Parse a stored transcript blob. Raises TranscriptDecodeError on anything
    that is not a JSON array of valid turns.
    """
    try:
        data = json.loads(blob)
    except (TypeError, ValueError) as exc:
        raise TranscriptDecodeError(f"invalid transcript json: {exc}") from exc
    if not isinstance(data, list):
        raise TranscriptDecodeError("transcript is not a list")
    return [turn_from_dict(item) for item in data]
