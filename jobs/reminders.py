from __future__ import annotations

import asyncio


async def reminder_loop(
    *,
    bot,
    reminder_service,
    interval_seconds: int = 60,
) -> None:
    while True:
        try:
            await reminder_service.run_tick(bot)
        except Exception as e:
            print(f"[Reminders] loop error: {e}")
        await asyncio.sleep(max(10, int(interval_seconds)))
