from __future__ import annotations

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    service = deps.reminder_service

    async def _ensure_enabled(ctx: commands.Context) -> bool:
        if service is None or service.disabled_reason():
            await ctx.send("I haven't been set up to allow reminders, please moan at whoever set me up")
            return False
        return True

    @bot.command(name="reminder")
    async def reminder(ctx: commands.Context, when: str = "", *, text: str = ""):
        if not await _ensure_enabled(ctx):
            return
        if not when or not text.strip():
            await ctx.send("Usage: `!reminder 5d3h30m <what to remind you about>`")
            return
        ok, msg = await service.create_reminder(
            user_id=str(ctx.author.id),
            text=text,
            offset=when,
        )
        await ctx.send(msg)
