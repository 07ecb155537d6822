from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from db.access import run_db
from misc.discord_timestamps import format_due_time
from misc.errors import FormatError
from misc.errors import StoreError
from reminders.duration import OFFSET_FORMAT_HINT
from reminders.duration import resolve_due_at
from reminders.store import delete_reminder_sync
from reminders.store import fetch_due_reminders_sync
from reminders.store import insert_reminder_sync


NOT_SET_UP_REPLY = "I haven't been set up to allow reminders, please moan at whoever set me up"
STORE_FAILURE_REPLY = "Something went wrong at my end so I didn't save your reminder"
DELIVERY_TEMPLATE = "Hi there! You asked me to remind you about {text} - this is that reminder!"


@dataclass(slots=True)
class ReminderTickReport:
    due: int = 0
    delivered: int = 0
    failed: int = 0
    deleted: int = 0
    aborted: bool = False


async def send_direct_message(bot, user_id: str, text: str) -> None:
    uid = int(user_id)
    user = bot.get_user(uid)
    if user is None:
        user = await bot.fetch_user(uid)
    await user.send(text)


class ReminderService:
    """
    Creates reminders and delivers the ones that have come due.

    Delivery is at-most-once: a due reminder is deleted after the delivery
    attempt whether or not the DM went through, so a failed send is logged
    and dropped rather than retried on every later tick.
    """

    def __init__(self, *, db_lock, db_conn, deliver=send_direct_message) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.deliver = deliver

    def disabled_reason(self) -> str | None:
        if self.db_conn is None:
            return "reminder store is not configured"
        return None

    async def create_reminder(
        self,
        *,
        user_id: str,
        text: str,
        offset: str,
        now: datetime | None = None,
    ) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, NOT_SET_UP_REPLY)

        reminder_text = str(text or "").strip()
        if not reminder_text:
            return (False, "Tell me what to remind you about. Usage: `!reminder 5d3h30m <thing>`")

        try:
            due_at = resolve_due_at(offset, now=now)
        except FormatError:
            return (False, f"That's not the right date or time format. {OFFSET_FORMAT_HINT}")

        try:
            reminder_id = await run_db(
                self.db_lock,
                insert_reminder_sync,
                self.db_conn,
                user_id=str(user_id),
                reminder_text=reminder_text,
                due_at=due_at,
            )
        except StoreError as e:
            print(f"[Reminders] action=create result=error user={user_id} err={e}")
            return (False, STORE_FAILURE_REPLY)

        print(f"[Reminders] action=create result=ok id={reminder_id} user={user_id} due={due_at.isoformat()}")
        return (
            True,
            f"Okay, I've set a reminder up to remind you of {reminder_text}, due {format_due_time(due_at)}",
        )

    async def _deliver_one(self, bot, reminder: dict[str, Any], report: ReminderTickReport) -> None:
        try:
            await self.deliver(bot, reminder["user_id"], DELIVERY_TEMPLATE.format(text=reminder["reminder_text"]))
            report.delivered += 1
        except Exception as e:
            report.failed += 1
            print(
                f"[Reminders] action=deliver result=error id={reminder['id']} "
                f"user={reminder['user_id']} err={str(e)[:200]}"
            )

        try:
            if await run_db(self.db_lock, delete_reminder_sync, self.db_conn, reminder["id"]):
                report.deleted += 1
        except StoreError as e:
            print(f"[Reminders] action=delete result=error id={reminder['id']} err={e}")

    async def run_tick(self, bot, *, now: datetime | None = None) -> ReminderTickReport:
        report = ReminderTickReport()
        if self.disabled_reason():
            report.aborted = True
            return report

        tick_now = now or datetime.now(timezone.utc)
        try:
            due = await run_db(self.db_lock, fetch_due_reminders_sync, self.db_conn, tick_now)
        except StoreError as e:
            print(f"[Reminders] tick aborted: {e}")
            report.aborted = True
            return report

        report.due = len(due)
        for reminder in due:
            await self._deliver_one(bot, reminder, report)

        if report.due:
            print(
                f"[Reminders] tick due={report.due} delivered={report.delivered} "
                f"failed={report.failed} deleted={report.deleted}"
            )
        return report
