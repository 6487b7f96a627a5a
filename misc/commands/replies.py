from __future__ import annotations

import traceback

from controller.errors import ChatBridgeError

GENERIC_FAILURE = "Something went wrong while handling that command."


def render_error(exc: BaseException) -> str:
    """Single place where failures become text for the caller."""
    if isinstance(exc, ChatBridgeError):
        return exc.user_message
    return GENERIC_FAILURE


def log_command_error(command: str, exc: BaseException) -> None:
    if isinstance(exc, ChatBridgeError):
        print(f"[Commands] /{command} failed: {type(exc).__name__}: {exc}")
        return
    print(f"[Commands] /{command} crashed: {exc!r}")
    traceback.print_exception(exc)
