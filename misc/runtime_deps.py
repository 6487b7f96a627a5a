from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    eula_panel_factory: Callable
    sync_commands: bool
    backend_name: str
    registry_kind: str
