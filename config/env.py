from __future__ import annotations

import os
import re


def parse_id_set(raw: str | None) -> set[int]:
    if not raw:
        return set()
    out: set[int] = set()
    for tok in re.split(r"[\s,;]+", raw.strip()):
        if not tok:
            continue
        if re.fullmatch(r"\d{8,22}", tok):
            out.add(int(tok))
    return out


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        print(f"[CFG] {name}={raw!r} is not an integer; using {default}")
        return default
    if minimum is not None and value < minimum:
        print(f"[CFG] {name}={value} is below {minimum}; using {minimum}")
        return minimum
    return value


def env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    if raw not in choices:
        print(f"[CFG] {name}={raw!r} not in {sorted(choices)}; using {default}")
        return default
    return raw
