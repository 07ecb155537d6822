from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

from misc.errors import FormatError


OFFSET_FORMAT_HINT = "Example: 5d3h30m for a reminder in 5 days, 3 1/2 hours"

_DAY_PREFIX_RE = re.compile(r"[+-]?\d+")
# Unit alternation order matters: "ms" must be tried before "m".
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_short_duration(raw: str) -> timedelta:
    """
    Parse a compact duration such as "3h30m", "90s" or "-1.5h".

    Accepts an optional sign followed by one or more <number><unit> parts,
    units being h, m, s, ms, us/µs and ns. A bare "0" is zero.
    """
    text = str(raw or "")
    if text in {"0", "+0", "-0"}:
        return timedelta(0)

    sign = 1
    body = text
    if body[:1] in {"+", "-"}:
        sign = -1 if body[0] == "-" else 1
        body = body[1:]
    if not body:
        raise FormatError(f"Invalid duration: {text!r}")

    total = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART_RE.match(body, pos)
        if not match:
            raise FormatError(f"Invalid duration: {text!r}")
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        pos = match.end()
    try:
        return timedelta(seconds=sign * total)
    except OverflowError as exc:
        raise FormatError(f"Duration is out of range: {text!r}") from exc


def parse_offset(raw: str) -> timedelta:
    """
    Parse a reminder offset of the form [<int>d][<duration>].

    "5d3h30m", "2d", "45m" and "-10m" are all valid. An empty remainder
    after the day component adds nothing. A non-integer day prefix or an
    unparseable remainder raises FormatError.
    """
    text = str(raw or "").strip()
    if not text:
        raise FormatError("Missing reminder offset")

    days = 0
    rest = text
    if "d" in text:
        head, rest = text.split("d", 1)
        if not _DAY_PREFIX_RE.fullmatch(head):
            raise FormatError(f"Invalid day count: {head!r}")
        days = int(head)

    extra = parse_short_duration(rest) if rest else timedelta(0)
    try:
        return timedelta(days=days) + extra
    except OverflowError as exc:
        raise FormatError(f"Reminder offset is out of range: {text!r}") from exc


def resolve_due_at(raw: str, *, now: datetime | None = None) -> datetime:
    base = now or datetime.now(timezone.utc)
    if base.tzinfo is None:
        base = base.replace(tzinfo=timezone.utc)
    offset = parse_offset(raw)
    try:
        return base + offset
    except OverflowError as exc:
        raise FormatError(f"Reminder offset is out of range: {raw!r}") from exc
