from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Callable


def _default_false(*args, **kwargs) -> bool:
    return False


@dataclass(frozen=True)
class CommandDeps:
    # Output
    send_chunked: Callable | None = None

    # Services
    reminder_service: Any = None
    music_service: Any = None

    # Community
    admin_user_ids: set[int] = field(default_factory=set)


@dataclass(frozen=True)
class CommandGates:
    user_is_owner: Callable[[Any], bool] = _default_false
