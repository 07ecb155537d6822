from __future__ import annotations

import importlib


class _DummyReminderService:
    def disabled_reason(self):
        return None

    async def run_tick(self, bot, **kwargs):
        return None


class _DummyMusicService:
    def disabled_reason(self):
        return None

    def playlists_disabled_reason(self):
        return "YouTube playlist provider is not configured"


async def _noop_async(*args, **kwargs):
    return None


def _try_import_or_skip(module_name: str, pip_name: str | None = None) -> bool:
    try:
        importlib.import_module(module_name)
        return True
    except ModuleNotFoundError:
        install_name = pip_name or module_name
        print(
            f"Smoke wiring check skipped: missing dependency '{module_name}'. "
            f"Install requirements and retry (e.g. `pip install {install_name}` "
            f"or `pip install -e .`)."
        )
        return False


def _main() -> int:
    if not _try_import_or_skip("discord", "discord.py"):
        return 0
    if not _try_import_or_skip("httpx"):
        return 0

    import discord
    from discord.ext import commands
    from misc.runtime_wiring import wire_bot_runtime

    bot = commands.Bot(command_prefix="!", intents=discord.Intents.none())
    wire_bot_runtime(
        bot,
        allowed_channel_ids=set(),
        user_is_owner=lambda user: False,
        admin_user_ids=set(),
        send_chunked=_noop_async,
        reminder_service=_DummyReminderService(),
        reminder_loop_func=_noop_async,
        music_service=_DummyMusicService(),
    )

    expected_commands = {
        "reminder",
        "musicsetup",
        "musicmonth",
        "musicprompt",
        "music",
        "musicplaylist",
        "utc",
        "bigemoji",
        "suggestion",
        "addrole",
        "removerole",
    }
    existing_commands = set(bot.all_commands.keys())
    missing = sorted(expected_commands - existing_commands)
    if missing:
        raise RuntimeError(f"Missing expected commands: {missing}")

    for event_name in ("on_ready", "on_message", "on_command_error"):
        if event_name not in vars(bot):
            raise RuntimeError(f"Runtime event {event_name} was not registered")

    print("Smoke wiring check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
