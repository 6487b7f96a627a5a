from __future__ import annotations

import discord


def interaction_user_is_admin(interaction: discord.Interaction) -> bool:
    # DMs have no guild permissions, so nobody administers them.
    if getattr(interaction, "guild", None) is None:
        return False
    perms = getattr(interaction.user, "guild_permissions", None)
    return bool(perms is not None and perms.administrator)


def interaction_sender_name(interaction: discord.Interaction) -> str:
    user = interaction.user
    return str(getattr(user, "name", "") or user)
