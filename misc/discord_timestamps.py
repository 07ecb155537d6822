
"""Builds Discord <t:...> timestamp tags so clients render times in each reader's own timezone."""

from __future__ import annotations

from datetime import datetime


DISCORD_TIMESTAMP_STYLES = {"t", "T", "d", "D", "f", "F", "R"}


def _validate_style(style: str) -> str:
    clean = str(style or "").strip() or "f"
    if clean not in DISCORD_TIMESTAMP_STYLES:
        raise ValueError(f"Invalid Discord timestamp style: {clean}")
    return clean


def _require_aware_datetime(value: datetime, *, arg_name: str) -> datetime:
    if not isinstance(value, datetime):
        raise ValueError(f"{arg_name} must be a datetime")
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{arg_name} must be timezone-aware")
    return value


def format_discord_timestamp(dt: datetime, style: str = "f") -> str:
    aware = _require_aware_datetime(dt, arg_name="dt")
    style_clean = _validate_style(style)
    return f"<t:{int(aware.timestamp())}:{style_clean}>"


def format_due_time(dt: datetime) -> str:
    """Absolute and relative tags side by side, e.g. "<t:..:f> (<t:..:R>)"."""
    return f"{format_discord_timestamp(dt, 'f')} ({format_discord_timestamp(dt, 'R')})"
