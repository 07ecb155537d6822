from __future__ import annotations

from datetime import datetime, timezone
from typing import Awaitable, Callable

import httpx

from db.access import run_db
from misc.errors import FormatError
from misc.errors import NotFoundError
from misc.errors import ProviderError
from misc.errors import StoreError
from music.models import MusicMonth
from music.models import parse_month_document
from music.models import pretty_date
from music.playlists import PlaylistReconciler
from music.playlists import PlaylistSelector
from music.store import fetch_current_month_sync
from music.store import fetch_latest_started_month_sync
from music.store import fetch_submission_sync
from music.store import fetch_upcoming_or_current_month_sync
from music.store import insert_month_sync
from music.store import replace_submission_sync
from music.window import month_window
from music.youtube import extract_video_id


MONTH_NOT_SET_UP_REPLY = "I haven't been set up to run music months, please moan at whoever set me up"
PLAYLIST_NOT_SET_UP_REPLY = "I haven't been set up to make playlists, please moan at whoever set me up"
STORE_FAILURE_REPLY = "Something went wrong at my end, please try again later"
PROVIDER_FAILURE_REPLY = "Error updating a playlist, please try again later"
DOWNLOAD_TIMEOUT = 15  # seconds


async def download_document(url: str) -> bytes:
    async with httpx.AsyncClient(timeout=httpx.Timeout(DOWNLOAD_TIMEOUT), follow_redirects=True) as client:
        response = await client.get(url)
        response.raise_for_status()
        return response.content


def _utc_now(now: datetime | None) -> datetime:
    out = now or datetime.now(timezone.utc)
    if out.tzinfo is None:
        out = out.replace(tzinfo=timezone.utc)
    return out.astimezone(timezone.utc)


def _day_lines(month: MusicMonth) -> str:
    month_name = month.start_time.strftime("%B")
    return "\n".join(f"{month_name} {entry.day}: {entry.prompt}" for entry in month.days)


class MusicMonthService:
    def __init__(
        self,
        *,
        db_lock,
        db_conn,
        reconciler: PlaylistReconciler | None = None,
        fetch_document: Callable[[str], Awaitable[bytes]] = download_document,
    ) -> None:
        self.db_lock = db_lock
        self.db_conn = db_conn
        self.reconciler = reconciler
        self.fetch_document = fetch_document

    def disabled_reason(self) -> str | None:
        if self.db_conn is None:
            return "music month store is not configured"
        return None

    def playlists_disabled_reason(self) -> str | None:
        reason = self.disabled_reason()
        if reason:
            return reason
        if self.reconciler is None or self.reconciler.provider is None:
            return "YouTube playlist provider is not configured"
        return None

    async def setup_month(self, *, url: str, actor_user_id: int) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, MONTH_NOT_SET_UP_REPLY)

        source_url = str(url or "").strip().strip("<>")
        if not source_url.lower().endswith(".json"):
            return (False, "Give me a link to a .json file, e.g. `!musicsetup https://example.com/month.json`")

        try:
            raw = await self.fetch_document(source_url)
        except httpx.HTTPError as e:
            print(f"[MUSIC] action=setup result=download_error url={source_url} err={e}")
            return (False, "I couldn't download that file")

        try:
            month = parse_month_document(raw)
        except FormatError as e:
            return (False, f"Invalid JSON: {e}")

        try:
            month_id = await run_db(
                self.db_lock,
                insert_month_sync,
                self.db_conn,
                month=month,
                source_url=source_url,
                created_by_user_id=str(actor_user_id),
            )
        except StoreError as e:
            print(f"[MUSIC] action=setup result=store_error err={e}")
            return (False, STORE_FAILURE_REPLY)

        print(f"[MUSIC] action=setup result=ok id={month_id} label={month.label} days={len(month.days)}")
        return (True, f"Okay, I've set up a music month beginning on {pretty_date(month.start_time)}")

    async def month_overview_text(self, *, now: datetime | None = None) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, MONTH_NOT_SET_UP_REPLY)
        window = month_window(_utc_now(now))
        try:
            month = await run_db(self.db_lock, fetch_upcoming_or_current_month_sync, self.db_conn, window)
        except StoreError as e:
            print(f"[MUSIC] action=overview result=store_error err={e}")
            return (False, STORE_FAILURE_REPLY)
        if month is None:
            return (True, "No music month planned")

        if month.start_time > window.end:
            header = f"There's no current music month; the next begins on {pretty_date(month.start_time)}"
        else:
            header = "Current music month:"
        return (True, f"{header}\n```\n{_day_lines(month)}\n```")

    async def _current_month(self, now: datetime) -> MusicMonth:
        month = await run_db(self.db_lock, fetch_current_month_sync, self.db_conn, month_window(now))
        if month is None:
            raise NotFoundError("No currently active music month")
        return month

    @staticmethod
    def _require_day(month: MusicMonth, day: int) -> str:
        prompt = month.prompt_for(day)
        if prompt is None:
            raise NotFoundError(f"No prompt found for day {day}")
        return prompt

    async def prompt_text(self, *, day: int | None = None, now: datetime | None = None) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, MONTH_NOT_SET_UP_REPLY)
        current = _utc_now(now)
        target_day = int(day) if day is not None else current.day
        try:
            month = await self._current_month(current)
            prompt = self._require_day(month, target_day)
        except NotFoundError as e:
            return (False, str(e))
        except StoreError as e:
            print(f"[MUSIC] action=prompt result=store_error err={e}")
            return (False, STORE_FAILURE_REPLY)
        return (True, f"Prompt for day {target_day}: {prompt}")

    async def submit_song(
        self,
        *,
        user_id: int,
        song: str,
        day: int | None = None,
        now: datetime | None = None,
    ) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, MONTH_NOT_SET_UP_REPLY)
        clean_song = str(song or "").strip()
        if not clean_song:
            return (False, "Usage: `!music <song link> [day]`")

        current = _utc_now(now)
        target_day = int(day) if day is not None else current.day
        try:
            month = await self._current_month(current)
            self._require_day(month, target_day)
            previous = await run_db(
                self.db_lock,
                replace_submission_sync,
                self.db_conn,
                user_id=str(user_id),
                month_label=month.label,
                day=target_day,
                song=clean_song,
            )
        except NotFoundError as e:
            return (False, str(e))
        except StoreError as e:
            print(f"[MUSIC] action=submit result=store_error user={user_id} err={e}")
            return (False, STORE_FAILURE_REPLY)

        print(f"[MUSIC] action=submit result=ok user={user_id} label={month.label} day={target_day} replaced={previous is not None}")
        lines: list[str] = []
        if previous is not None:
            lines.append(f"Replacing your old pick of {previous}")
        lines.append(f"Submitting {clean_song} for day {target_day}")
        if extract_video_id(clean_song) is None:
            lines.append("I couldn't spot a YouTube link in that, so it won't show up in playlists")
        return (True, "\n".join(lines))

    async def playlist_text(
        self,
        *,
        user_id: int,
        user_name: str,
        mine: bool,
        day: int | None = None,
        now: datetime | None = None,
    ) -> tuple[bool, str]:
        if self.disabled_reason():
            return (False, MONTH_NOT_SET_UP_REPLY)
        try:
            month = await run_db(self.db_lock, fetch_latest_started_month_sync, self.db_conn, _utc_now(now))
        except StoreError as e:
            print(f"[MUSIC] action=playlist result=store_error err={e}")
            return (False, STORE_FAILURE_REPLY)
        if month is None:
            return (False, "No music month past or present found")

        label = month.label
        if mine and day:
            try:
                pick = await run_db(
                    self.db_lock,
                    fetch_submission_sync,
                    self.db_conn,
                    user_id=str(user_id),
                    month_label=label,
                    day=int(day),
                )
            except StoreError as e:
                print(f"[MUSIC] action=playlist result=store_error err={e}")
                return (False, STORE_FAILURE_REPLY)
            if pick is None:
                return (False, f"I have no pick saved for you for day {day} of {label}")
            return (True, f"Your pick for day {day} of {label} was {pick}")

        if self.playlists_disabled_reason():
            return (False, PLAYLIST_NOT_SET_UP_REPLY)

        selector = PlaylistSelector(
            month_label=label,
            day=int(day or 0),
            user_id=str(user_id) if mine else "",
            owner_name=str(user_name or "") if mine else "",
        )
        try:
            result = await self.reconciler.reconcile(selector)
        except StoreError as e:
            print(f"[MUSIC] action=reconcile result=store_error label={label} err={e}")
            return (False, STORE_FAILURE_REPLY)
        except ProviderError as e:
            print(f"[MUSIC] action=reconcile result=provider_error label={label} status={e.status_code} err={e}")
            return (False, PROVIDER_FAILURE_REPLY)

        day_part = f" day {selector.day}" if selector.day else ""
        if result.empty:
            if mine:
                return (False, f"You haven't submitted any songs for {label}{day_part}")
            return (False, f"No-one has submitted any songs for {label}{day_part}")

        heading = f"Playlist for {label}"
        if selector.day:
            heading += f" Day {selector.day}"
        if mine:
            heading += " (yours)"
        lines = [f"{heading}: {result.url}"]
        if result.unmatched_songs:
            lines.append(f"{len(result.unmatched_songs)} pick(s) had no YouTube link and were left out")
        return (True, "\n".join(lines))
