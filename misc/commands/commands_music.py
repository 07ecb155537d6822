from __future__ import annotations

import re

from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates

_DAY_ARG_RE = re.compile(r"day[=:](\S+)", re.IGNORECASE)
_LINK_RE = re.compile(r"https?://\S+|\b(?:www\.)?(?:youtube\.com|youtu\.be)/\S+", re.IGNORECASE)

def _parse_day(raw: str) -> int | None:
    text = str(raw or "").strip()
    if not text.isdigit():
        return None
    day = int(text)
    return day if day > 0 else None


def split_trailing_day(text: str) -> tuple[str, int | None]:
    """
    Split "<song> [day]" into the song text and an optional day number.

    `day=N` at the end always names the day. A bare trailing number only
    counts as the day after a link, so titles like "Maroon 5" stay whole.
    """
    clean = str(text or "").strip()
    parts = clean.rsplit(None, 1)
    if len(parts) != 2:
        return (clean, None)
    song, last = parts[0].strip(), parts[1]
    explicit = _DAY_ARG_RE.fullmatch(last)
    if explicit:
        day = _parse_day(explicit.group(1))
        if day is not None:
            return (song, day)
        return (clean, None)
    if _LINK_RE.search(song):
        day = _parse_day(last)
        if day is not None:
            return (song, day)
    return (clean, None)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    service = deps.music_service

    async def _ensure_enabled(ctx: commands.Context) -> bool:
        if service is None or service.disabled_reason():
            await ctx.send("I haven't been set up to run music months, please moan at whoever set me up")
            return False
        return True

    async def _ensure_day(ctx: commands.Context, raw: str) -> tuple[bool, int | None]:
        if not str(raw or "").strip():
            return (True, None)
        day = _parse_day(raw)
        if day is None:
            await ctx.send(f"`{raw}` isn't a day number")
            return (False, None)
        return (True, day)

    async def _reply(ctx: commands.Context, text: str) -> None:
        if deps.send_chunked is not None:
            await deps.send_chunked(ctx.channel, text)
        else:
            await ctx.send(text)

    async def _ensure_owner(ctx: commands.Context) -> bool:
        if gates.user_is_owner(ctx.author):
            return True
        await ctx.send("Only the bot owner can set up a music month")
        return False

    @bot.command(name="musicsetup")
    async def musicsetup(ctx: commands.Context, url: str = ""):
        if not await _ensure_enabled(ctx):
            return
        if not await _ensure_owner(ctx):
            return
        ok, msg = await service.setup_month(url=url, actor_user_id=int(ctx.author.id))
        await ctx.send(msg)

    @bot.command(name="musicmonth")
    async def musicmonth(ctx: commands.Context):
        if not await _ensure_enabled(ctx):
            return
        ok, msg = await service.month_overview_text()
        await _reply(ctx, msg)

    @bot.command(name="musicprompt")
    async def musicprompt(ctx: commands.Context, day: str = ""):
        if not await _ensure_enabled(ctx):
            return
        valid, day_num = await _ensure_day(ctx, day)
        if not valid:
            return
        ok, msg = await service.prompt_text(day=day_num)
        await ctx.send(msg)

    @bot.command(name="music")
    async def music(ctx: commands.Context, *, submission: str = ""):
        if not await _ensure_enabled(ctx):
            return
        song, day_num = split_trailing_day(submission)
        if not song:
            await ctx.send("Usage: `!music <song link> [day]`")
            return
        ok, msg = await service.submit_song(user_id=int(ctx.author.id), song=song, day=day_num)
        await ctx.send(msg)

    @bot.command(name="musicplaylist")
    async def musicplaylist(ctx: commands.Context, scope: str = "", day: str = ""):
        if not await _ensure_enabled(ctx):
            return
        scope_clean = scope.strip().lower()
        if scope_clean not in {"mine", "all"}:
            await ctx.send("Usage: `!musicplaylist <mine|all> [day]`")
            return
        valid, day_num = await _ensure_day(ctx, day)
        if not valid:
            return
        async with ctx.typing():
            ok, msg = await service.playlist_text(
                user_id=int(ctx.author.id),
                user_name=str(getattr(ctx.author, "display_name", None) or getattr(ctx.author, "name", "")),
                mine=scope_clean == "mine",
                day=day_num,
            )
        await ctx.send(msg)
