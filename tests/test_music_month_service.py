from __future__ import annotations

import asyncio
import json
import sqlite3
import unittest
from datetime import datetime
from datetime import timezone
from pathlib import Path
from unittest import mock

import httpx

from db.migrate import apply_sqlite_migrations
from misc.errors import FormatError
from music.models import parse_month_document
from music.models import parse_rfc3339
from music.playlists import PlaylistReconciler
from music.service import MONTH_NOT_SET_UP_REPLY
from music.service import PLAYLIST_NOT_SET_UP_REPLY
from music.service import STORE_FAILURE_REPLY
from music.service import MusicMonthService
from tests.fakes import FakePlaylistProvider


SCENARIO_DOC = {"start_time": "2024-01-01T00:00:00Z", "days": [{"day": 1, "prompt": "Favorite song"}]}
TWO_DAY_DOC = {
    "start_time": "2024-01-01T00:00:00Z",
    "days": [{"day": 2, "prompt": "A cover"}, {"day": 1, "prompt": "Favorite song"}],
}
MID_JAN = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)
SONG_A = "https://www.youtube.com/watch?v=AAAAAAAAAAA"
SONG_B = "https://youtu.be/BBBBBBBBBBB"


def _migrations_dir() -> str:
    return str(Path(__file__).resolve().parents[1] / "migrations")


def _fetcher(payload):
    async def _fetch(url: str) -> bytes:
        if isinstance(payload, Exception):
            raise payload
        if isinstance(payload, (bytes, str)):
            return payload if isinstance(payload, bytes) else payload.encode("utf-8")
        return json.dumps(payload).encode("utf-8")

    return _fetch


class MonthDocumentTests(unittest.TestCase):
    def test_parses_and_sorts_days(self):
        month = parse_month_document(json.dumps(TWO_DAY_DOC))
        self.assertEqual(month.start_time, datetime(2024, 1, 1, tzinfo=timezone.utc))
        self.assertEqual(month.label, "Jan 2024")
        self.assertEqual([d.day for d in month.days], [1, 2])
        self.assertEqual(month.prompt_for(2), "A cover")
        self.assertIsNone(month.prompt_for(3))

    def test_offset_start_time_is_normalised_to_utc(self):
        month = parse_month_document({"start_time": "2024-02-01T01:00:00+02:00", "days": [{"day": 1, "prompt": "x"}]})
        self.assertEqual(month.start_time, datetime(2024, 1, 31, 23, 0, tzinfo=timezone.utc))
        self.assertEqual(month.label, "Jan 2024")

    def test_fractional_seconds_of_any_precision(self):
        for raw, micros in (
            ("2024-01-01T00:00:00.5Z", 500000),
            ("2024-01-01T00:00:00.123456789Z", 123456),
            ("2024-01-01T00:00:00.25+00:00", 250000),
        ):
            with self.subTest(raw=raw):
                self.assertEqual(parse_rfc3339(raw), datetime(2024, 1, 1, 0, 0, 0, micros, tzinfo=timezone.utc))

    def test_rejects_bad_documents(self):
        bad = [
            "not json",
            "[]",
            json.dumps({"start_time": "yesterday", "days": [{"day": 1, "prompt": "x"}]}),
            json.dumps({"start_time": "2024-01-01T00:00:00", "days": [{"day": 1, "prompt": "x"}]}),
            json.dumps({"start_time": "2024-01-01T00:00:00Z", "days": []}),
            json.dumps({"start_time": "2024-01-01T00:00:00Z", "days": [{"day": 0, "prompt": "x"}]}),
            json.dumps({"start_time": "2024-01-01T00:00:00Z", "days": [{"day": True, "prompt": "x"}]}),
            json.dumps({"start_time": "2024-01-01T00:00:00Z", "days": [{"day": 1, "prompt": 5}]}),
            json.dumps({"start_time": "2024-01-01T00:00:00Z", "days": [{"day": 1, "prompt": "x"}, {"day": 1, "prompt": "y"}]}),
        ]
        for raw in bad:
            with self.subTest(raw=raw):
                with self.assertRaises(FormatError):
                    parse_month_document(raw)


class MusicMonthServiceTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.conn = sqlite3.connect(":memory:", check_same_thread=False)
        apply_sqlite_migrations(self.conn, _migrations_dir())
        self.lock = asyncio.Lock()
        self.provider = FakePlaylistProvider()

    async def asyncTearDown(self):
        self.conn.close()

    def _service(self, payload=TWO_DAY_DOC, *, with_playlists: bool = True) -> MusicMonthService:
        reconciler = None
        if with_playlists:
            reconciler = PlaylistReconciler(db_lock=self.lock, db_conn=self.conn, provider=self.provider)
        return MusicMonthService(
            db_lock=self.lock,
            db_conn=self.conn,
            reconciler=reconciler,
            fetch_document=_fetcher(payload),
        )

    async def _setup(self, service: MusicMonthService) -> None:
        ok, msg = await service.setup_month(url="https://example.com/month.json", actor_user_id=1)
        self.assertTrue(ok, msg)

    async def test_setup_then_month_overview(self):
        service = self._service(SCENARIO_DOC)
        ok, msg = await service.setup_month(url="https://example.com/month.json", actor_user_id=1)
        self.assertTrue(ok)
        self.assertEqual(msg, "Okay, I've set up a music month beginning on January 1, 2024")

        ok, text = await service.month_overview_text(now=MID_JAN)
        self.assertTrue(ok)
        self.assertIn("Current music month", text)
        self.assertIn("January 1: Favorite song", text.splitlines())

    async def test_overview_reports_upcoming_and_missing_months(self):
        service = self._service(SCENARIO_DOC)
        ok, text = await service.month_overview_text(now=MID_JAN)
        self.assertEqual(text, "No music month planned")

        await self._setup(service)
        ok, text = await service.month_overview_text(now=datetime(2023, 12, 10, tzinfo=timezone.utc))
        self.assertTrue(text.startswith("There's no current music month; the next begins on January 1, 2024"))

    async def test_setup_rejections(self):
        ok, msg = await self._service().setup_month(url="https://example.com/month.txt", actor_user_id=1)
        self.assertFalse(ok)
        self.assertIn(".json", msg)

        ok, msg = await self._service("{nope").setup_month(url="https://example.com/m.json", actor_user_id=1)
        self.assertFalse(ok)
        self.assertTrue(msg.startswith("Invalid JSON"))

        failing = self._service(httpx.ConnectError("connection refused"))
        ok, msg = await failing.setup_month(url="https://example.com/m.json", actor_user_id=1)
        self.assertFalse(ok)
        self.assertEqual(msg, "I couldn't download that file")

    async def test_prompt_lookup(self):
        service = self._service()
        ok, msg = await service.prompt_text(now=MID_JAN)
        self.assertEqual(msg, "No currently active music month")

        await self._setup(service)
        ok, msg = await service.prompt_text(day=2, now=MID_JAN)
        self.assertEqual(msg, "Prompt for day 2: A cover")
        ok, msg = await service.prompt_text(now=datetime(2024, 1, 1, 9, tzinfo=timezone.utc))
        self.assertEqual(msg, "Prompt for day 1: Favorite song")
        ok, msg = await service.prompt_text(day=9, now=MID_JAN)
        self.assertFalse(ok)
        self.assertEqual(msg, "No prompt found for day 9")

    async def test_submission_replace_keeps_one_row_and_names_old_song(self):
        service = self._service()
        await self._setup(service)

        ok, msg = await service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN)
        self.assertTrue(ok)
        self.assertEqual(msg, f"Submitting {SONG_A} for day 1")

        ok, msg = await service.submit_song(user_id=5, song=SONG_B, day=1, now=MID_JAN)
        self.assertTrue(ok)
        self.assertEqual(msg, f"Replacing your old pick of {SONG_A}\nSubmitting {SONG_B} for day 1")

        cur = self.conn.cursor()
        cur.execute("SELECT song FROM music_submissions WHERE user_id = '5' AND month_label = 'Jan 2024' AND day = 1")
        self.assertEqual(cur.fetchall(), [(SONG_B,)])

    async def test_submission_needs_current_month_and_known_day(self):
        service = self._service()
        ok, msg = await service.submit_song(user_id=5, song=SONG_A, now=MID_JAN)
        self.assertEqual(msg, "No currently active music month")

        await self._setup(service)
        ok, msg = await service.submit_song(user_id=5, song=SONG_A, now=MID_JAN)
        self.assertFalse(ok)
        self.assertEqual(msg, "No prompt found for day 15")

        ok, msg = await service.submit_song(user_id=5, song="Some song by some band", day=2, now=MID_JAN)
        self.assertTrue(ok)
        self.assertIn("won't show up in playlists", msg)

    async def test_playlist_for_everyone(self):
        service = self._service()
        await self._setup(service)
        await service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN)
        await service.submit_song(user_id=6, song=SONG_B, day=2, now=MID_JAN)

        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN)
        self.assertTrue(ok)
        self.assertEqual(msg, "Playlist for Jan 2024: https://youtube.com/playlist?list=PL1")
        self.assertEqual(self.provider.video_ids("PL1"), ["AAAAAAAAAAA", "BBBBBBBBBBB"])

        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, day=2, now=MID_JAN)
        self.assertEqual(msg, "Playlist for Jan 2024 Day 2: https://youtube.com/playlist?list=PL2")

        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=True, now=MID_JAN)
        self.assertEqual(msg, "Playlist for Jan 2024 (yours): https://youtube.com/playlist?list=PL3")
        self.assertEqual(self.provider.video_ids("PL3"), ["AAAAAAAAAAA"])
        self.assertIn("Ann's picks", self.provider.titles["PL3"])

    async def test_playlist_mine_with_day_shows_pick(self):
        service = self._service()
        await self._setup(service)
        await service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN)

        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=True, day=1, now=MID_JAN)
        self.assertEqual(msg, f"Your pick for day 1 of Jan 2024 was {SONG_A}")
        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=True, day=2, now=MID_JAN)
        self.assertEqual(msg, "I have no pick saved for you for day 2 of Jan 2024")
        self.assertEqual(self.provider.calls, [])

    async def test_playlist_edge_replies(self):
        service = self._service()
        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN)
        self.assertEqual(msg, "No music month past or present found")

        await self._setup(service)
        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, day=2, now=MID_JAN)
        self.assertEqual(msg, "No-one has submitted any songs for Jan 2024 day 2")
        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=True, now=MID_JAN)
        self.assertEqual(msg, "You haven't submitted any songs for Jan 2024")
        self.assertEqual(self.provider.calls, [])

    async def test_provider_failure_gets_one_apology(self):
        service = self._service()
        await self._setup(service)
        await service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN)
        self.provider.fail_on.add("create")

        ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN)
        self.assertFalse(ok)
        self.assertIn("Error updating a playlist", msg)

    async def test_month_starting_at_window_end_counts_as_current(self):
        doc = {"start_time": "2024-01-30T12:00:00Z", "days": [{"day": 30, "prompt": "Closing track"}]}
        service = self._service(doc)
        await self._setup(service)
        ok, text = await service.month_overview_text(now=MID_JAN)
        self.assertTrue(ok)
        self.assertEqual(text.splitlines()[0], "Current music month:")

    async def test_store_failures_get_generic_apology(self):
        service = self._service()
        await self._setup(service)
        self.conn.close()
        for call in (
            service.setup_month(url="https://example.com/month.json", actor_user_id=1),
            service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN),
        ):
            ok, msg = await call
            self.assertFalse(ok)
            self.assertEqual(msg, STORE_FAILURE_REPLY)

    async def test_unbound_new_playlist_gets_generic_apology(self):
        service = self._service()
        await self._setup(service)
        await service.submit_song(user_id=5, song=SONG_A, day=1, now=MID_JAN)
        with mock.patch(
            "music.playlists.insert_playlist_binding_sync",
            side_effect=sqlite3.OperationalError("database is locked"),
        ):
            ok, msg = await service.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN)
        self.assertFalse(ok)
        self.assertEqual(msg, STORE_FAILURE_REPLY)

    async def test_unavailable_dependencies(self):
        no_playlists = self._service(with_playlists=False)
        await self._setup(no_playlists)
        ok, msg = await no_playlists.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN)
        self.assertEqual(msg, PLAYLIST_NOT_SET_UP_REPLY)

        no_store = MusicMonthService(db_lock=self.lock, db_conn=None, fetch_document=_fetcher(SCENARIO_DOC))
        for call in (
            no_store.setup_month(url="https://example.com/m.json", actor_user_id=1),
            no_store.month_overview_text(now=MID_JAN),
            no_store.prompt_text(now=MID_JAN),
            no_store.submit_song(user_id=5, song=SONG_A, now=MID_JAN),
            no_store.playlist_text(user_id=5, user_name="Ann", mine=False, now=MID_JAN),
        ):
            ok, msg = await call
            self.assertFalse(ok)
            self.assertEqual(msg, MONTH_NOT_SET_UP_REPLY)


if __name__ == "__main__":
    unittest.main()
