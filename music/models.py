from __future__ import annotations

import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from misc.errors import FormatError


MONTH_DOCUMENT_EXAMPLE = '{"start_time": "2024-01-01T00:00:00Z", "days": [{"day": 1, "prompt": "Favorite song"}]}'
# fromisoformat on 3.10 only takes 3 or 6 fractional digits
_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d{2}:\d{2}$)")


@dataclass(frozen=True, slots=True)
class MonthDay:
    day: int
    prompt: str


@dataclass(frozen=True, slots=True)
class MusicMonth:
    start_time: datetime
    days: tuple[MonthDay, ...]
    label: str
    id: int | None = None

    def prompt_for(self, day: int) -> str | None:
        for entry in self.days:
            if entry.day == int(day):
                return entry.prompt
        return None


def month_label(dt: datetime) -> str:
    """Human key shared by submissions and playlists, e.g. "Jan 2024"."""
    return f"{dt.strftime('%b')} {dt.year}"


def pretty_date(dt: datetime) -> str:
    return f"{dt.strftime('%B')} {dt.day}, {dt.year}"


def parse_rfc3339(raw: str) -> datetime:
    text = str(raw or "").strip()
    if not text:
        raise FormatError("start_time is missing")
    if text[-1:] in {"Z", "z"}:
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise FormatError(f"start_time is not an RFC3339 timestamp: {raw!r}") from exc
    if parsed.tzinfo is None:
        raise FormatError(f"start_time needs a timezone offset: {raw!r}")
    return parsed.astimezone(timezone.utc)


def _parse_day(item: Any, index: int) -> MonthDay:
    if not isinstance(item, dict):
        raise FormatError(f"days[{index}] must be an object")
    day = item.get("day")
    prompt = item.get("prompt")
    # bool is an int subclass; reject it explicitly
    if isinstance(day, bool) or not isinstance(day, int) or day <= 0:
        raise FormatError(f"days[{index}].day must be a positive integer")
    if not isinstance(prompt, str):
        raise FormatError(f"days[{index}].prompt must be a string")
    return MonthDay(day=day, prompt=prompt.strip())


def parse_month_document(raw: str | bytes | dict[str, Any]) -> MusicMonth:
    if isinstance(raw, dict):
        payload = raw
    else:
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise FormatError("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise FormatError("Month document must be a JSON object")

    start_time = parse_rfc3339(payload.get("start_time"))
    raw_days = payload.get("days")
    if not isinstance(raw_days, list) or not raw_days:
        raise FormatError("days must be a non-empty list")

    days = [_parse_day(item, idx) for idx, item in enumerate(raw_days)]
    seen: set[int] = set()
    for entry in days:
        if entry.day in seen:
            raise FormatError(f"day {entry.day} appears more than once")
        seen.add(entry.day)

    return MusicMonth(
        start_time=start_time,
        days=tuple(sorted(days, key=lambda d: d.day)),
        label=month_label(start_time),
    )


def days_to_json(days: tuple[MonthDay, ...]) -> str:
    return json.dumps([{"day": d.day, "prompt": d.prompt} for d in days], ensure_ascii=False)


def days_from_json(raw: str) -> tuple[MonthDay, ...]:
    try:
        items = json.loads(raw or "[]")
    except ValueError:
        return tuple()
    out: list[MonthDay] = []
    for item in items if isinstance(items, list) else []:
        if isinstance(item, dict) and isinstance(item.get("day"), int):
            out.append(MonthDay(day=int(item["day"]), prompt=str(item.get("prompt") or "")))
    return tuple(out)
