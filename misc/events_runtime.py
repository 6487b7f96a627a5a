from __future__ import annotations

import discord
from discord.ext import commands

from misc.runtime_deps import RuntimeBootDeps


def register_runtime_events(
    bot: commands.Bot,
    *,
    boot: RuntimeBootDeps,
) -> None:
    @bot.event
    async def on_ready():
        if not getattr(bot, "_eula_panel_registered", False):
            bot.add_view(boot.eula_panel_factory())
            bot._eula_panel_registered = True

        if boot.sync_commands and not getattr(bot, "_commands_synced", False):
            try:
                synced = await bot.tree.sync()
                bot._commands_synced = True
                print(f"[Commands] Synced {len(synced)} slash commands")
            except discord.HTTPException as e:
                print(f"[Commands] Slash command sync failed: {e}")

        print(f"Logged in as {bot.user} backend={boot.backend_name} registry={boot.registry_kind}")
