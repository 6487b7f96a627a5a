from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml


@dataclass(slots=True)
class EulaText:
    version: str = "eula_v1"
    title: str = "Privacy policy and notice"
    body: str = ""
    agree_label: str = "I agree"
    modal_title: str = "Privacy policy agreement"
    name_prompt: str = "Enter your name or user ID"


def default_eula() -> EulaText:
    return EulaText(
        body=(
            "This bot generates replies with an AI model. AI can make mistakes; "
            "younger users should always check answers with a parent or guardian.\n"
            "By using this bot you agree to this privacy policy and notice.\n"
            "We store only your Discord ID and the name you provide, and only to run the service.\n"
            "Every AI reply is for reference and its accuracy is not guaranteed."
        ),
    )


def _as_text(value: Any, fallback: str) -> str:
    text = str(value or "").strip()
    return text or fallback


def load_eula(path: str | Path | None) -> tuple[EulaText, str | None]:
    """
    Returns (eula, warning_message). warning_message is None on clean load.
    """
    defaults = default_eula()
    if not path:
        return (defaults, "EULA path missing; using built-in text.")

    p = Path(path)
    if not p.exists():
        return (defaults, f"EULA file not found at {p}; using built-in text.")

    try:
        payload = yaml.safe_load(p.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        return (defaults, f"Failed to read EULA from {p}: {exc}; using built-in text.")

    if not isinstance(payload, dict):
        return (defaults, f"Invalid EULA format in {p}; using built-in text.")

    eula = EulaText(
        version=_as_text(payload.get("version"), defaults.version),
        title=_as_text(payload.get("title"), defaults.title),
        body=_as_text(payload.get("body"), defaults.body),
        agree_label=_as_text(payload.get("agree_label"), defaults.agree_label),
        modal_title=_as_text(payload.get("modal_title"), defaults.modal_title),
        name_prompt=_as_text(payload.get("name_prompt"), defaults.name_prompt),
    )
    return (eula, None)
