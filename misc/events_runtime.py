from __future__ import annotations

import asyncio

import discord
from discord.ext import commands
from misc.discord_gates import message_in_allowed_channels
from misc.runtime_deps import RuntimeBootDeps


def register_runtime_events(bot: commands.Bot, *, boot: RuntimeBootDeps) -> None:
    @bot.event
    async def on_ready():
        print(f"Birdbot is online as {bot.user}")

        if boot.reminder_enabled and not getattr(bot, "_reminder_task", None):
            bot._reminder_task = asyncio.create_task(boot.reminder_loop_func())
            print("[Reminders] delivery loop started")

    @bot.event
    async def on_message(message: discord.Message):
        if message.author.bot:
            return
        if not message_in_allowed_channels(message, boot.allowed_channel_ids):
            return
        if (message.content or "").lstrip().startswith(bot.command_prefix):
            await bot.process_commands(message)

    @bot.event
    async def on_command_error(ctx: commands.Context, error: commands.CommandError):
        if isinstance(error, commands.CommandNotFound):
            return
        if isinstance(error, commands.NoPrivateMessage):
            await ctx.send("That command only works in a server")
            return
        if isinstance(error, commands.UserInputError):
            await ctx.send(f"I didn't understand that: {error}")
            return
        print(f"[Commands] {getattr(ctx.command, 'name', '?')} failed: {error}")
        await ctx.send("Something went wrong running that command")
