from __future__ import annotations

import sqlite3
import unittest
from types import SimpleNamespace

from controller.errors import AttachmentTooLarge
from controller.errors import BackendError
from controller.errors import ChatBridgeError
from controller.errors import ConsentRequired
from controller.errors import NoDefaultModel

try:
    import discord
    from discord.ext import commands
except ModuleNotFoundError:
    discord = None
    commands = None

if commands is not None:
    from misc.commands.command_deps import CommandDeps
    from misc.commands.command_deps import CommandGates
    from misc.commands.commands_chat import register as register_chat
    from misc.commands.replies import GENERIC_FAILURE
    from misc.commands.replies import render_error


class _FakeResponse:
    def __init__(self, owner):
        self.owner = owner
        self._done = False

    def is_done(self):
        return self._done

    async def defer(self, **kwargs):
        self._done = True
        self.owner.deferred = True

    async def send_message(self, content=None, **kwargs):
        self._done = True
        self.owner.sent.append((content, kwargs))


class _FakeFollowup:
    def __init__(self, owner):
        self.owner = owner

    async def send(self, content=None, **kwargs):
        self.owner.sent.append((content, kwargs))


class _FakeInteraction:
    def __init__(self, *, user_id=1, guild_id=10, channel_id=20, admin=False):
        self.user = SimpleNamespace(
            id=user_id,
            name="alice",
            guild_permissions=SimpleNamespace(administrator=admin),
        )
        self.guild = SimpleNamespace(id=guild_id) if guild_id else None
        self.guild_id = guild_id
        self.channel_id = channel_id
        self.response = _FakeResponse(self)
        self.followup = _FakeFollowup(self)
        self.deferred = False
        self.edits: list[str] = []
        self.sent: list[tuple] = []

    async def edit_original_response(self, *, content=None, **kwargs):
        self.edits.append(content)


class _StubService:
    def __init__(
        self,
        *,
        reply="hi there",
        error: Exception | None = None,
        ready_error: Exception | None = None,
        set_error: Exception | None = None,
        blob: bytes | None = None,
    ):
        self.reply = reply
        self.error = error
        self.ready_error = ready_error
        self.set_error = set_error
        self.blob = blob
        self.converse_calls: list[tuple] = []
        self.cleared: list[tuple] = []
        self.defaults: dict = {}

    async def check_ready(self, guild_id, user, prompt, model=None, attachment=None):
        if self.ready_error is not None:
            raise self.ready_error
        return model or "guild-default"

    async def converse(self, guild_id, channel_id, user, prompt, model=None, attachment=None):
        self.converse_calls.append((guild_id, channel_id, user, prompt, model, attachment))
        if self.error is not None:
            raise self.error
        return self.reply

    async def list_models(self):
        if self.error is not None:
            raise self.error
        return ["llama3.1", "mistral"]

    async def set_default_model(self, guild_id, model):
        if self.set_error is not None:
            raise self.set_error
        self.defaults[guild_id] = model.strip()

    async def clear(self, guild_id, channel_id):
        self.cleared.append((guild_id, channel_id))
        return True

    async def export(self, guild_id, channel_id, user_id):
        if self.error is not None:
            raise self.error
        return self.blob


def _is_admin(interaction) -> bool:
    return bool(interaction.user.guild_permissions.administrator)


@unittest.skipIf(commands is None, "discord.py not installed")
class ChatCommandTests(unittest.IsolatedAsyncioTestCase):
    def _bot(self, service, max_message_len=1900):
        bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
        register_chat(
            bot,
            deps=CommandDeps(conversation_service=service, max_message_len=max_message_len),
            gates=CommandGates(user_is_admin=_is_admin),
        )
        return bot

    def test_all_chat_commands_registered(self):
        bot = self._bot(_StubService())
        names = {c.name for c in bot.tree.get_commands()}
        self.assertEqual(names, {"chat", "listmodels", "setmodel", "clearmemory", "eula", "export"})

    async def test_chat_edits_in_reply(self):
        service = _StubService(reply="hi there")
        cmd = self._bot(service).tree.get_command("chat")
        interaction = _FakeInteraction()
        await cmd.callback(interaction, prompt="hello")
        self.assertTrue(interaction.deferred)
        self.assertEqual(interaction.edits[-1], "hi there")
        guild_id, channel_id, user, prompt, model, attachment = service.converse_calls[0]
        self.assertEqual((guild_id, channel_id, user.id, user.username, prompt), (10, 20, "1", "alice", "hello"))
        self.assertEqual(model, "guild-default")
        self.assertIsNone(attachment)

    async def test_chat_long_reply_is_chunked(self):
        service = _StubService(reply="word " * 30)
        cmd = self._bot(service, max_message_len=40).tree.get_command("chat")
        interaction = _FakeInteraction()
        await cmd.callback(interaction, prompt="hello")
        self.assertLessEqual(len(interaction.edits[-1]), 40)
        self.assertTrue(interaction.sent)

    async def test_chat_precheck_failures_are_ephemeral(self):
        for exc in (ConsentRequired(), NoDefaultModel(), AttachmentTooLarge()):
            service = _StubService(ready_error=exc)
            cmd = self._bot(service).tree.get_command("chat")
            interaction = _FakeInteraction()
            await cmd.callback(interaction, prompt="hello")
            self.assertFalse(interaction.deferred)
            self.assertEqual(interaction.edits, [])
            self.assertEqual(interaction.sent, [(type(exc).user_message, {"ephemeral": True})])
            self.assertEqual(service.converse_calls, [])

    async def test_chat_backend_failure_is_edited_in(self):
        service = _StubService(error=BackendError())
        cmd = self._bot(service).tree.get_command("chat")
        interaction = _FakeInteraction()
        await cmd.callback(interaction, prompt="hello")
        self.assertTrue(interaction.deferred)
        self.assertEqual(interaction.edits[-1], BackendError.user_message)

    async def test_setmodel_requires_admin(self):
        service = _StubService()
        cmd = self._bot(service).tree.get_command("setmodel")
        interaction = _FakeInteraction(admin=False)
        await cmd.callback(interaction, model="mistral")
        self.assertEqual(service.defaults, {})
        self.assertIn("administrators", interaction.sent[0][0])

        admin = _FakeInteraction(admin=True)
        await cmd.callback(admin, model=" mistral ")
        self.assertEqual(service.defaults, {10: "mistral"})

    async def test_setmodel_store_failure_is_reported(self):
        service = _StubService(set_error=sqlite3.OperationalError("database is locked"))
        cmd = self._bot(service).tree.get_command("setmodel")
        interaction = _FakeInteraction(admin=True)
        await cmd.callback(interaction, model="mistral")
        self.assertEqual(interaction.sent, [(GENERIC_FAILURE, {"ephemeral": True})])

    async def test_clearmemory_requires_admin(self):
        service = _StubService()
        cmd = self._bot(service).tree.get_command("clearmemory")
        await cmd.callback(_FakeInteraction(admin=False))
        self.assertEqual(service.cleared, [])
        await cmd.callback(_FakeInteraction(admin=True))
        self.assertEqual(service.cleared, [(10, 20)])

    async def test_export_sends_conversation_json(self):
        service = _StubService(blob=b"[]")
        cmd = self._bot(service).tree.get_command("export")
        interaction = _FakeInteraction()
        await cmd.callback(interaction)
        content, kwargs = interaction.sent[0]
        self.assertTrue(kwargs["ephemeral"])
        self.assertEqual(kwargs["file"].filename, "conversation.json")

    async def test_export_without_history(self):
        cmd = self._bot(_StubService(blob=None)).tree.get_command("export")
        interaction = _FakeInteraction()
        await cmd.callback(interaction)
        self.assertIn("no conversation history", interaction.sent[0][0])

    async def test_listmodels_lists_names(self):
        cmd = self._bot(_StubService()).tree.get_command("listmodels")
        interaction = _FakeInteraction()
        await cmd.callback(interaction)
        self.assertIn("- llama3.1", interaction.sent[0][0])


@unittest.skipIf(commands is None, "discord.py not installed")
class RenderErrorTests(unittest.TestCase):
    def test_every_taxonomy_member_has_its_own_message(self):
        for cls in ChatBridgeError.__subclasses__():
            self.assertEqual(render_error(cls()), cls.user_message)
        self.assertNotEqual(render_error(NoDefaultModel()), render_error(BackendError()))

    def test_unexpected_errors_are_generic(self):
        self.assertEqual(render_error(KeyError("x")), GENERIC_FAILURE)


if __name__ == "__main__":
    unittest.main()
