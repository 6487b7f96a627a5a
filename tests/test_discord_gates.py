from __future__ import annotations

import unittest
from types import SimpleNamespace

try:
    from misc.discord_gates import interaction_sender_name
    from misc.discord_gates import interaction_user_is_admin
except ModuleNotFoundError:
    interaction_user_is_admin = None
    interaction_sender_name = None


def _interaction(*, guild=True, administrator=False, name="alice"):
    user = SimpleNamespace(
        id=1,
        name=name,
        guild_permissions=SimpleNamespace(administrator=administrator),
    )
    return SimpleNamespace(
        guild=SimpleNamespace(id=10) if guild else None,
        user=user,
    )


@unittest.skipIf(interaction_user_is_admin is None, "discord.py not installed")
class DiscordGatesTests(unittest.TestCase):
    def test_guild_administrator_is_admin(self):
        self.assertTrue(interaction_user_is_admin(_interaction(administrator=True)))

    def test_regular_member_is_not_admin(self):
        self.assertFalse(interaction_user_is_admin(_interaction(administrator=False)))

    def test_dm_is_never_admin(self):
        self.assertFalse(interaction_user_is_admin(_interaction(guild=False, administrator=True)))

    def test_user_without_guild_permissions_is_not_admin(self):
        interaction = SimpleNamespace(guild=SimpleNamespace(id=10), user=SimpleNamespace(id=1, name="bob"))
        self.assertFalse(interaction_user_is_admin(interaction))

    def test_sender_name_prefers_username(self):
        self.assertEqual(interaction_sender_name(_interaction(name="alice")), "alice")


if __name__ == "__main__":
    unittest.main()
