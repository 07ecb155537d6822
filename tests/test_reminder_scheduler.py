from __future__ import annotations

import asyncio
import sqlite3
import unittest
from datetime import datetime
from datetime import timedelta
from datetime import timezone
from pathlib import Path

from db.migrate import apply_sqlite_migrations
from reminders.service import NOT_SET_UP_REPLY
from reminders.service import STORE_FAILURE_REPLY
from reminders.service import ReminderService
from reminders.store import insert_reminder_sync


NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _migrations_dir() -> str:
    return str(Path(__file__).resolve().parents[1] / "migrations")


class _FakeUser:
    def __init__(self, user_id: int, *, fail: bool = False):
        self.id = int(user_id)
        self.fail = fail
        self.sent: list[str] = []

    async def send(self, text: str):
        if self.fail:
            raise RuntimeError("Cannot send messages to this user")
        self.sent.append(text)


class _FakeBot:
    def __init__(self, users: list[_FakeUser], *, cached: bool = True):
        self._users = {u.id: u for u in users}
        self.cached = cached
        self.fetched: list[int] = []

    def get_user(self, user_id: int):
        return self._users.get(int(user_id)) if self.cached else None

    async def fetch_user(self, user_id: int):
        self.fetched.append(int(user_id))
        return self._users[int(user_id)]


class ReminderSchedulerTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, _migrations_dir())
        self.service = ReminderService(db_lock=asyncio.Lock(), db_conn=self.conn)

    async def asyncTearDown(self):
        try:
            self.conn.close()
        except sqlite3.Error:
            pass

    def _add(self, user_id: int, text: str, due_at: datetime) -> int:
        return insert_reminder_sync(self.conn, user_id=str(user_id), reminder_text=text, due_at=due_at)

    def _remaining_texts(self) -> list[str]:
        cur = self.conn.cursor()
        cur.execute("SELECT reminder_text FROM reminders ORDER BY id")
        return [row[0] for row in cur.fetchall()]

    async def test_tick_delivers_due_and_leaves_future_untouched(self):
        user = _FakeUser(111)
        for i in range(3):
            self._add(111, f"due {i}", NOW - timedelta(minutes=i + 1))
        self._add(111, "later", NOW + timedelta(minutes=5))
        self._add(111, "exactly now", NOW)

        report = await self.service.run_tick(_FakeBot([user]), now=NOW)

        self.assertEqual((report.due, report.delivered, report.deleted, report.failed), (3, 3, 3, 0))
        self.assertEqual(
            sorted(user.sent),
            sorted(f"Hi there! You asked me to remind you about due {i} - this is that reminder!" for i in range(3)),
        )
        self.assertEqual(self._remaining_texts(), ["later", "exactly now"])

    async def test_failed_delivery_is_deleted_and_never_retried(self):
        flaky = _FakeUser(222, fail=True)
        fine = _FakeUser(333)
        self._add(222, "lost", NOW - timedelta(minutes=1))
        self._add(333, "kept going", NOW - timedelta(minutes=1))
        bot = _FakeBot([flaky, fine])

        first = await self.service.run_tick(bot, now=NOW)
        self.assertEqual((first.due, first.delivered, first.failed, first.deleted), (2, 1, 1, 2))
        self.assertEqual(len(fine.sent), 1)

        flaky.fail = False
        second = await self.service.run_tick(bot, now=NOW + timedelta(minutes=1))
        self.assertEqual(second.due, 0)
        self.assertEqual(flaky.sent, [])
        self.assertEqual(len(fine.sent), 1)

    async def test_uncached_user_is_fetched(self):
        user = _FakeUser(444)
        self._add(444, "fetch me", NOW - timedelta(seconds=1))
        bot = _FakeBot([user], cached=False)

        await self.service.run_tick(bot, now=NOW)

        self.assertEqual(bot.fetched, [444])
        self.assertEqual(len(user.sent), 1)

    async def test_negative_offset_is_delivered_on_next_tick(self):
        ok, _ = await self.service.create_reminder(user_id="555", text="already late", offset="-10m", now=NOW)
        self.assertTrue(ok)
        user = _FakeUser(555)

        report = await self.service.run_tick(_FakeBot([user]), now=NOW)

        self.assertEqual(report.delivered, 1)
        self.assertIn("already late", user.sent[0])

    async def test_store_read_failure_aborts_tick(self):
        self.conn.close()
        report = await self.service.run_tick(_FakeBot([]), now=NOW)
        self.assertTrue(report.aborted)
        self.assertEqual(report.due, 0)


class ReminderCreateTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, _migrations_dir())
        self.service = ReminderService(db_lock=asyncio.Lock(), db_conn=self.conn)

    async def asyncTearDown(self):
        self.conn.close()

    async def test_create_stores_resolved_due_time(self):
        ok, msg = await self.service.create_reminder(user_id="42", text="stretch", offset="1d2h", now=NOW)
        self.assertTrue(ok)
        due = NOW + timedelta(days=1, hours=2)
        self.assertIn("Okay, I've set a reminder up to remind you of stretch", msg)
        self.assertIn(f"<t:{int(due.timestamp())}:R>", msg)

        cur = self.conn.cursor()
        cur.execute("SELECT user_id, reminder_text, due_ts FROM reminders")
        self.assertEqual(cur.fetchall(), [("42", "stretch", due.timestamp())])

    async def test_bad_offset_explains_format(self):
        ok, msg = await self.service.create_reminder(user_id="42", text="stretch", offset="soon", now=NOW)
        self.assertFalse(ok)
        self.assertEqual(
            msg,
            "That's not the right date or time format. Example: 5d3h30m for a reminder in 5 days, 3 1/2 hours",
        )

    async def test_multiline_text_is_stored_verbatim(self):
        ok, msg = await self.service.create_reminder(user_id="42", text="line one\n  line two", offset="1h", now=NOW)
        self.assertTrue(ok)
        cur = self.conn.cursor()
        cur.execute("SELECT reminder_text FROM reminders")
        self.assertEqual(cur.fetchall(), [("line one\n  line two",)])

    async def test_store_failure_gets_generic_apology(self):
        self.conn.close()
        ok, msg = await self.service.create_reminder(user_id="42", text="stretch", offset="1h", now=NOW)
        self.assertFalse(ok)
        self.assertEqual(msg, STORE_FAILURE_REPLY)

    async def test_missing_store_is_not_set_up(self):
        service = ReminderService(db_lock=asyncio.Lock(), db_conn=None)
        ok, msg = await service.create_reminder(user_id="42", text="stretch", offset="1h", now=NOW)
        self.assertFalse(ok)
        self.assertEqual(msg, NOT_SET_UP_REPLY)
        report = await service.run_tick(_FakeBot([]), now=NOW)
        self.assertTrue(report.aborted)


if __name__ == "__main__":
    unittest.main()
