from __future__ import annotations

import re
from datetime import datetime, timezone

import discord
from discord.ext import commands
from misc.commands.command_deps import CommandDeps
from misc.commands.command_deps import CommandGates

CUSTOM_EMOJI_RE = re.compile(r"^<(a?):([A-Za-z0-9_~]+):(\d+)>$")
EMOJI_CDN_TEMPLATE = "https://cdn.discordapp.com/emojis/{emoji_id}.{ext}?v=1"


def format_utc_now(now: datetime | None = None) -> str:
    current = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return f"The current time is: {current.strftime('%H:%M:%S')} UTC {current.strftime('%b')} {current.day:>2}"


def big_emoji_url(raw: str) -> str | None:
    match = CUSTOM_EMOJI_RE.match(str(raw or "").strip())
    if not match:
        return None
    ext = "gif" if match.group(1) == "a" else "png"
    return EMOJI_CDN_TEMPLATE.format(emoji_id=match.group(3), ext=ext)


def _self_assignable(role: discord.Role) -> bool:
    if role.is_default() or role.managed:
        return False
    perms = role.permissions
    return not (perms.administrator or perms.manage_guild or perms.manage_roles)


def register(
    bot: commands.Bot,
    *,
    deps: CommandDeps,
    gates: CommandGates,
) -> None:
    async def _find_role(ctx: commands.Context, role_name: str) -> discord.Role | None:
        wanted = role_name.strip().lower()
        if not wanted:
            await ctx.send("Tell me which role, e.g. `!addrole Gamers`")
            return None
        role = discord.utils.find(lambda r: r.name.lower() == wanted, ctx.guild.roles)
        if role is None:
            await ctx.send(f"I couldn't find a role called `{role_name.strip()}`")
            return None
        if not _self_assignable(role):
            await ctx.send(f"`{role.name}` isn't a role I can hand out")
            return None
        return role

    @bot.command(name="utc")
    async def utc(ctx: commands.Context):
        await ctx.send(format_utc_now())

    @bot.command(name="bigemoji")
    async def bigemoji(ctx: commands.Context, emoji: str = ""):
        url = big_emoji_url(emoji)
        if url is None:
            await ctx.send("Usage: `!bigemoji <custom emoji>` (only server emoji can be made big)")
            return
        await ctx.send(url)

    @bot.command(name="suggestion")
    async def suggestion(ctx: commands.Context, *, text: str = ""):
        if not text.strip():
            await ctx.send("Usage: `!suggestion <your idea>`")
            return
        if not deps.admin_user_ids:
            await ctx.send("Nobody has been set up to receive suggestions, sorry")
            return

        body = f"You've had a suggestion from {ctx.author}: {text.strip()}"
        delivered = 0
        for admin_id in sorted(deps.admin_user_ids):
            try:
                user = bot.get_user(int(admin_id)) or await bot.fetch_user(int(admin_id))
                await user.send(body)
                delivered += 1
            except discord.HTTPException as e:
                print(f"[Suggestions] could not DM admin {admin_id}: {e}")
        if delivered:
            await ctx.send("Thanks! I've passed your suggestion on")
        else:
            await ctx.send("I couldn't deliver your suggestion, please try again later")

    @bot.command(name="addrole")
    @commands.guild_only()
    async def addrole(ctx: commands.Context, *, role_name: str = ""):
        role = await _find_role(ctx, role_name)
        if role is None:
            return
        if role in getattr(ctx.author, "roles", []):
            await ctx.send(f"You already have `{role.name}`")
            return
        try:
            await ctx.author.add_roles(role, reason="self-assigned via !addrole")
        except discord.HTTPException as e:
            print(f"[Roles] add role={role.id} user={ctx.author.id} failed: {e}")
            await ctx.send(f"I wasn't able to give you `{role.name}`")
            return
        await ctx.send(f"Gave you `{role.name}`")

    @bot.command(name="removerole")
    @commands.guild_only()
    async def removerole(ctx: commands.Context, *, role_name: str = ""):
        role = await _find_role(ctx, role_name)
        if role is None:
            return
        if role not in getattr(ctx.author, "roles", []):
            await ctx.send(f"You don't have `{role.name}`")
            return
        try:
            await ctx.author.remove_roles(role, reason="self-removed via !removerole")
        except discord.HTTPException as e:
            print(f"[Roles] remove role={role.id} user={ctx.author.id} failed: {e}")
            await ctx.send(f"I wasn't able to take `{role.name}` off you")
            return
        await ctx.send(f"Removed `{role.name}`")
