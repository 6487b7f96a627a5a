from __future__ import annotations

import discord
from discord.ext import commands

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.system_stats import format_detail
from misc.system_stats import format_summary

STATS_FAILED = "Could not read system performance information."


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    async def reply_with(interaction: discord.Interaction, formatter) -> None:
        await interaction.response.defer(ephemeral=True, thinking=True)
        try:
            snapshot = await deps.collect_snapshot()
        except (OSError, RuntimeError) as e:
            print(f"[Perf] snapshot failed: {e}")
            await interaction.followup.send(STATS_FAILED, ephemeral=True)
            return
        await interaction.followup.send(formatter(snapshot), ephemeral=True)

    @bot.tree.command(name="performance", description="Show current CPU, GPU and memory usage (%).")
    async def performance_command(interaction: discord.Interaction):
        await reply_with(interaction, format_summary)

    @bot.tree.command(name="performance_detail", description="Show detailed CPU, GPU and memory information.")
    async def performance_detail_command(interaction: discord.Interaction):
        await reply_with(interaction, format_detail)
