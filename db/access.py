from __future__ import annotations

import asyncio
import sqlite3
from typing import Any, Callable

from misc.errors import StoreError


async def run_db(db_lock, func: Callable[..., Any], *args, **kwargs) -> Any:
    """Run one *_sync store call off the event loop under the shared connection lock."""
    try:
        async with db_lock:
            return await asyncio.to_thread(func, *args, **kwargs)
    except sqlite3.Error as e:
        raise StoreError(f"{getattr(func, '__name__', 'store call')} failed: {e}") from e
