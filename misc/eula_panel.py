from __future__ import annotations

import discord

from controller.eula import EulaText
from misc.commands.replies import log_command_error
from misc.commands.replies import render_error

EULA_AGREE_CUSTOM_ID = "eula_agree"
EULA_MODAL_CUSTOM_ID = "eula_modal"
AGREEMENT_RECORDED = "Agreement recorded. You can use the bot now."


def build_eula_embed(eula: EulaText) -> discord.Embed:
    return discord.Embed(
        title=eula.title,
        description=eula.body,
        colour=discord.Colour(0x0099FF),
    )


async def record_eula_agreement(interaction: discord.Interaction, *, consent_gate, name: str) -> None:
    try:
        await consent_gate.record_agreement(str(interaction.user.id), name.strip())
    except Exception as e:
        log_command_error("eula", e)
        await interaction.response.send_message(render_error(e), ephemeral=True)
        return
    await interaction.response.send_message(AGREEMENT_RECORDED, ephemeral=True)


def build_eula_modal(*, eula: EulaText, consent_gate) -> discord.ui.Modal:
    class EulaModal(discord.ui.Modal, title=eula.modal_title[:45]):
        name = discord.ui.TextInput(
            label=eula.name_prompt[:45],
            style=discord.TextStyle.short,
            required=True,
            max_length=100,
        )

        def __init__(self):
            super().__init__(custom_id=EULA_MODAL_CUSTOM_ID)

        async def on_submit(self, interaction: discord.Interaction):
            await record_eula_agreement(interaction, consent_gate=consent_gate, name=str(self.name.value))

    return EulaModal()


def build_eula_panel(*, eula: EulaText, consent_gate) -> discord.ui.View:
    class EulaPanel(discord.ui.View):
        def __init__(self):
            super().__init__(timeout=None)

        @discord.ui.button(
            label=eula.agree_label[:80],
            style=discord.ButtonStyle.primary,
            custom_id=EULA_AGREE_CUSTOM_ID,
        )
        async def agree_button(self, interaction: discord.Interaction, button: discord.ui.Button):
            await interaction.response.send_modal(build_eula_modal(eula=eula, consent_gate=consent_gate))

    return EulaPanel()
