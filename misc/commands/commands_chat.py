from __future__ import annotations

import io

import discord
from discord import app_commands
from discord.ext import commands

from config.defaults import EXPORT_FILENAME
from ingestion.service import AttachmentRef
from memory.models import Sender
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.replies import log_command_error
from misc.commands.replies import render_error
from misc.discord_gates import interaction_sender_name
from misc.discord_text import chunk_text
from misc.eula_panel import build_eula_embed

ADMIN_ONLY = "Only server administrators can use this command."


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    service = deps.conversation_service

    async def send_ephemeral(interaction: discord.Interaction, text: str, **kwargs) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(text, ephemeral=True, **kwargs)
        else:
            await interaction.response.send_message(text, ephemeral=True, **kwargs)

    @bot.tree.command(
        name="chat",
        description="Talk to the local LLM (per-channel memory, speaker info included).",
    )
    @app_commands.describe(
        prompt="Message to send to the LLM",
        model="Model to use (defaults to this server's model)",
        file="Optional attachment (up to 1GB)",
    )
    async def chat_command(
        interaction: discord.Interaction,
        prompt: str,
        model: str | None = None,
        file: discord.Attachment | None = None,
    ):
        user = Sender(id=str(interaction.user.id), username=interaction_sender_name(interaction))
        attachment = AttachmentRef.from_discord(file) if file is not None else None

        try:
            resolved_model = await service.check_ready(
                interaction.guild_id,
                user,
                prompt,
                model=model,
                attachment=attachment,
            )
        except Exception as e:
            log_command_error("chat", e)
            await send_ephemeral(interaction, render_error(e))
            return

        await interaction.response.defer(thinking=True)
        await interaction.edit_original_response(content=deps.wait_notice)
        try:
            reply = await service.converse(
                interaction.guild_id,
                interaction.channel_id,
                user,
                prompt,
                model=resolved_model,
                attachment=attachment,
            )
        except Exception as e:
            log_command_error("chat", e)
            await interaction.edit_original_response(content=render_error(e))
            return

        parts = chunk_text(reply, deps.max_message_len)
        await interaction.edit_original_response(content=parts[0])
        for part in parts[1:]:
            await interaction.followup.send(part)

    @bot.tree.command(name="listmodels", description="List the models installed on the LLM backend.")
    async def listmodels_command(interaction: discord.Interaction):
        try:
            names = await service.list_models()
        except Exception as e:
            log_command_error("listmodels", e)
            await send_ephemeral(interaction, render_error(e))
            return

        text = "Available models:\n"
        if names:
            text += "\n".join(f"- {name}" for name in names)
        else:
            text += "No models installed."
        await send_ephemeral(interaction, chunk_text(text, deps.max_message_len)[0])

    @bot.tree.command(name="setmodel", description="Set this server's default model. (admin only)")
    @app_commands.describe(model="Model name, e.g. mistral or llama3.1")
    @app_commands.default_permissions(administrator=True)
    async def setmodel_command(interaction: discord.Interaction, model: str):
        if not gates.user_is_admin(interaction):
            await send_ephemeral(interaction, ADMIN_ONLY)
            return
        if not model.strip():
            await send_ephemeral(interaction, "Give a model name.")
            return
        try:
            await service.set_default_model(interaction.guild_id, model)
        except Exception as e:
            log_command_error("setmodel", e)
            await send_ephemeral(interaction, render_error(e))
            return
        await interaction.response.send_message(
            f"This server's default model is now **{model.strip()}**."
        )

    @bot.tree.command(name="clearmemory", description="Delete this channel's conversation memory. (admin only)")
    @app_commands.default_permissions(administrator=True)
    async def clearmemory_command(interaction: discord.Interaction):
        if not gates.user_is_admin(interaction):
            await send_ephemeral(interaction, ADMIN_ONLY)
            return
        try:
            await service.clear(interaction.guild_id, interaction.channel_id)
        except Exception as e:
            log_command_error("clearmemory", e)
            await send_ephemeral(interaction, render_error(e))
            return
        await interaction.response.send_message("This channel's conversation memory was deleted.")

    @bot.tree.command(name="eula", description="Read and agree to the privacy policy and notice.")
    async def eula_command(interaction: discord.Interaction):
        await interaction.response.send_message(
            embed=build_eula_embed(deps.eula),
            view=deps.eula_panel_factory(),
            ephemeral=True,
        )

    @bot.tree.command(
        name="export",
        description="Export this channel's conversation as JSON. (agreed users only)",
    )
    async def export_command(interaction: discord.Interaction):
        try:
            payload = await service.export(
                interaction.guild_id,
                interaction.channel_id,
                str(interaction.user.id),
            )
        except Exception as e:
            log_command_error("export", e)
            await send_ephemeral(interaction, render_error(e))
            return

        if payload is None:
            await send_ephemeral(interaction, "This channel has no conversation history.")
            return
        await send_ephemeral(
            interaction,
            "Exporting the conversation history as JSON.",
            file=discord.File(io.BytesIO(payload), filename=EXPORT_FILENAME),
        )
