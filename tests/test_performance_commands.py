from __future__ import annotations

import unittest
from types import SimpleNamespace

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.commands.command_deps import CommandDeps
    from misc.commands.command_deps import CommandGates
    from misc.commands.commands_performance import STATS_FAILED
    from misc.commands.commands_performance import register as register_performance
    from misc.system_stats import SystemSnapshot


class _FakeInteraction:
    def __init__(self):
        self.deferred: dict | None = None
        self.sent: list[tuple] = []
        self.response = SimpleNamespace(defer=self._defer)
        self.followup = SimpleNamespace(send=self._send)

    async def _defer(self, **kwargs):
        self.deferred = kwargs

    async def _send(self, content=None, **kwargs):
        self.sent.append((content, kwargs))


@unittest.skipIf(commands is None, "discord.py not installed")
class PerformanceCommandTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, collect):
        bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_performance(bot, deps=CommandDeps(collect_snapshot=collect), gates=CommandGates())
        return bot

    async def test_performance_reports_usage(self):
        async def collect():
            return SystemSnapshot(
                cpu_pct=12.5,
                load_avg_1m=None,
                cpu_count=8,
                cpu_freq_mhz=None,
                mem_total=16 * 1024**3,
                mem_used=4 * 1024**3,
                mem_available=12 * 1024**3,
            )

        interaction = _FakeInteraction()
        await self._bot(collect).tree.get_command("performance").callback(interaction)
        self.assertTrue(interaction.deferred["ephemeral"])
        content, kwargs = interaction.sent[0]
        self.assertIn("**CPU usage:** 12.50%", content)
        self.assertIn("**GPU usage:** n/a", content)
        self.assertTrue(kwargs["ephemeral"])

    async def test_snapshot_failure_is_reported(self):
        async def collect():
            raise OSError("no /proc")

        interaction = _FakeInteraction()
        await self._bot(collect).tree.get_command("performance_detail").callback(interaction)
        self.assertEqual(interaction.sent[0][0], STATS_FAILED)


if __name__ == "__main__":
    unittest.main()
