from __future__ import annotations

from typing import Awaitable, Callable, Iterable

from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates
from misc.commands.commands_community import register as register_community
from misc.commands.commands_music import register as register_music
from misc.commands.commands_reminders import register as register_reminders
from misc.events_runtime import register_runtime_events
from misc.runtime_deps import RuntimeBootDeps


def install_shutdown_closers(bot, closers: Iterable[Callable[[], Awaitable[None]]]) -> None:
    """Run each closer (e.g. the YouTube HTTP client's close) before the bot's own close."""
    pending = list(closers)
    if not pending:
        return
    bot_close = bot.close

    async def close() -> None:
        for closer in pending:
            try:
                await closer()
            except Exception as e:
                print(f"[Shutdown] closer {getattr(closer, '__qualname__', closer)} failed: {e}")
        await bot_close()

    bot.close = close


def wire_bot_runtime(
    bot,
    *,
    allowed_channel_ids: set[int],
    user_is_owner,
    admin_user_ids: set[int],
    send_chunked,
    reminder_service,
    reminder_loop_func,
    music_service,
    shutdown_closers: Iterable[Callable[[], Awaitable[None]]] = (),
) -> None:
    command_deps = CommandDeps(
        send_chunked=send_chunked,
        reminder_service=reminder_service,
        music_service=music_service,
        admin_user_ids=set(admin_user_ids),
    )
    command_gates = CommandGates(
        user_is_owner=user_is_owner,
    )

    # Reminder and music commands register even when their service is missing
    # so users get the "not set up" reply instead of silence.
    register_reminders(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_music(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_community(
        bot,
        deps=command_deps,
        gates=command_gates,
    )

    register_runtime_events(
        bot,
        boot=RuntimeBootDeps(
            allowed_channel_ids=allowed_channel_ids,
            reminder_enabled=reminder_service is not None and not reminder_service.disabled_reason(),
            reminder_loop_func=reminder_loop_func,
        ),
    )

    install_shutdown_closers(bot, shutdown_closers)
