from __future__ import annotations

import importlib
from types import SimpleNamespace


async def _noop_async(*args, **kwargs):
    return None


class _DummyConversationService:
    async def converse(self, *args, **kwargs):
        return "ok"

    async def list_models(self):
        return []


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install the project and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0

    import discord
    from discord.ext import commands
    from misc.runtime_wiring import wire_bot_runtime

    intents = discord.Intents.none()
    bot = commands.Bot(command_prefix="!", intents=intents)

    wire_bot_runtime(
        bot,
        conversation_service=_DummyConversationService(),
        eula=SimpleNamespace(version="eula_test", title="EULA", body="Terms", agree_label="I agree"),
        eula_panel_factory=lambda: discord.ui.View(timeout=None),
        collect_snapshot=_noop_async,
        user_is_admin=lambda interaction: True,
        max_message_len=1900,
        sync_commands=False,
        backend_name="ollama",
        registry_kind="memory",
    )

    expected_commands = {
        "chat",
        "listmodels",
        "setmodel",
        "clearmemory",
        "eula",
        "export",
        "performance",
        "performance_detail",
    }
    existing_commands = {c.name for c in bot.tree.get_commands()}
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    if getattr(bot, "on_ready", None) is None:
        raise RuntimeError("Runtime events were not registered")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
