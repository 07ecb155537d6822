from __future__ import annotations

from dataclasses import dataclass
from typing import Callable


@dataclass(frozen=True)
class RuntimeBootDeps:
    allowed_channel_ids: set[int]
    reminder_enabled: bool
    reminder_loop_func: Callable
