from __future__ import annotations

import discord


def _candidate_channel_ids(channel) -> list[int]:
    ids = [int(getattr(channel, "id", 0) or 0)]
    if isinstance(channel, discord.Thread) and channel.parent:
        ids.append(int(channel.parent.id))
    return ids


def message_in_allowed_channels(message: discord.Message, allowed_channel_ids: set[int]) -> bool:
    """Commands run everywhere when no allowlist is set; DMs always pass; threads inherit their parent."""
    if not allowed_channel_ids:
        return True
    if getattr(message, "guild", None) is None:
        return True
    return any(cid in allowed_channel_ids for cid in _candidate_channel_ids(message.channel))
