from __future__ import annotations

from dataclasses import dataclass
from typing import Any
from typing import Callable

from config.defaults import DISCORD_MAX_MESSAGE_LEN


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    conversation_service: Any = None
    eula: Any = None
    eula_panel_factory: Callable | None = None
    collect_snapshot: Callable | None = None
    max_message_len: int = DISCORD_MAX_MESSAGE_LEN
    wait_notice: str = "AI is slow, please wait a moment..."


@dataclass(frozen=True)
class CommandGates:
    user_is_admin: Callable[[Any], bool] = _default_false
