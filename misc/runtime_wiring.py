from __future__ import annotations

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_chat import register as register_chat
from misc.commands.commands_performance import register as register_performance
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps


def wire_bot_runtime(
    bot,
    *,
    conversation_service,
    eula,
    eula_panel_factory,
    collect_snapshot,
    user_is_admin,
    max_message_len: int,
    sync_commands: bool,
    backend_name: str,
    registry_kind: str,
) -> None:
    command_deps = CommandDeps(
        conversation_service=conversation_service,
        eula=eula,
        eula_panel_factory=eula_panel_factory,
        collect_snapshot=collect_snapshot,
        max_message_len=max_message_len,
    )
    command_gates = CommandGates(user_is_admin=user_is_admin)

    register_chat(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_performance(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        boot=RuntimeBootDeps(
            eula_panel_factory=eula_panel_factory,
            sync_commands=sync_commands,
            backend_name=backend_name,
            registry_kind=registry_kind,
        ),
    )
