from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any

from music.models import MusicMonth
from music.models import days_from_json
from music.models import days_to_json
from music.window import MonthWindow


_MONTH_COLUMNS = "id, start_time_utc, label, days_json"


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _row_to_month(row: tuple[Any, ...] | None) -> MusicMonth | None:
    if row is None:
        return None
    return MusicMonth(
        id=int(row[0]),
        start_time=_as_utc(datetime.fromisoformat(str(row[1]))),
        label=str(row[2]),
        days=days_from_json(row[3]),
    )


def insert_month_sync(
    conn: sqlite3.Connection,
    *,
    month: MusicMonth,
    source_url: str | None = None,
    created_by_user_id: str | None = None,
) -> int:
    start = _as_utc(month.start_time)
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO music_months (
            start_time_utc, start_ts, label, days_json, source_url, created_by_user_id, created_at_utc
        )
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            start.isoformat(),
            start.timestamp(),
            month.label,
            days_to_json(month.days),
            source_url,
            str(created_by_user_id) if created_by_user_id is not None else None,
            _utc_now_iso(),
        ),
    )
    conn.commit()
    return int(cur.lastrowid)


def fetch_upcoming_or_current_month_sync(conn: sqlite3.Connection, window: MonthWindow) -> MusicMonth | None:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_MONTH_COLUMNS}
        FROM music_months
        WHERE start_ts > ?
        ORDER BY start_ts ASC, id ASC
        LIMIT 1
        """,
        (window.start.timestamp(),),
    )
    return _row_to_month(cur.fetchone())


def fetch_current_month_sync(conn: sqlite3.Connection, window: MonthWindow) -> MusicMonth | None:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_MONTH_COLUMNS}
        FROM music_months
        WHERE start_ts > ? AND start_ts < ?
        ORDER BY start_ts ASC, id ASC
        LIMIT 1
        """,
        (window.start.timestamp(), window.end.timestamp()),
    )
    return _row_to_month(cur.fetchone())


def fetch_latest_started_month_sync(conn: sqlite3.Connection, now: datetime) -> MusicMonth | None:
    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT {_MONTH_COLUMNS}
        FROM music_months
        WHERE start_ts < ?
        ORDER BY start_ts DESC, id DESC
        LIMIT 1
        """,
        (_as_utc(now).timestamp(),),
    )
    return _row_to_month(cur.fetchone())


def fetch_submission_sync(conn: sqlite3.Connection, *, user_id: str, month_label: str, day: int) -> str | None:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT song FROM music_submissions
        WHERE user_id = ? AND month_label = ? AND day = ?
        ORDER BY id ASC
        LIMIT 1
        """,
        (str(user_id), str(month_label), int(day)),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None


def replace_submission_sync(
    conn: sqlite3.Connection,
    *,
    user_id: str,
    month_label: str,
    day: int,
    song: str,
) -> str | None:
    """Store a pick, dropping any earlier pick for the same key. Returns the previous song, if any."""
    previous = fetch_submission_sync(conn, user_id=user_id, month_label=month_label, day=day)
    cur = conn.cursor()
    if previous is not None:
        cur.execute(
            "DELETE FROM music_submissions WHERE user_id = ? AND month_label = ? AND day = ?",
            (str(user_id), str(month_label), int(day)),
        )
        conn.commit()
    cur.execute(
        """
        INSERT INTO music_submissions (user_id, month_label, day, song, submitted_at_utc)
        VALUES (?, ?, ?, ?, ?)
        """,
        (str(user_id), str(month_label), int(day), str(song), _utc_now_iso()),
    )
    conn.commit()
    return previous


def fetch_submissions_sync(
    conn: sqlite3.Connection,
    *,
    month_label: str,
    user_id: str | None = None,
    day: int | None = None,
) -> list[dict[str, Any]]:
    clauses = ["month_label = ?"]
    params: list[Any] = [str(month_label)]
    if user_id:
        clauses.append("user_id = ?")
        params.append(str(user_id))
    if day:
        clauses.append("day = ?")
        params.append(int(day))

    cur = conn.cursor()
    cur.execute(
        f"""
        SELECT id, user_id, month_label, day, song, submitted_at_utc
        FROM music_submissions
        WHERE {' AND '.join(clauses)}
        ORDER BY day ASC, id ASC
        """,
        tuple(params),
    )
    return [
        {
            "id": int(row[0]),
            "user_id": str(row[1]),
            "month_label": str(row[2]),
            "day": int(row[3]),
            "song": str(row[4]),
            "submitted_at_utc": row[5],
        }
        for row in cur.fetchall()
    ]


def fetch_playlist_binding_sync(conn: sqlite3.Connection, *, month_label: str, day: int, user_id: str) -> str | None:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT playlist_id FROM music_playlists
        WHERE month_label = ? AND day = ? AND user_id = ?
        LIMIT 1
        """,
        (str(month_label), int(day or 0), str(user_id or "")),
    )
    row = cur.fetchone()
    return str(row[0]) if row else None


def insert_playlist_binding_sync(
    conn: sqlite3.Connection,
    *,
    month_label: str,
    day: int,
    user_id: str,
    playlist_id: str,
) -> str:
    """
    Persist a binding and return the playlist id that is bound afterwards.

    If another writer already bound this key, the stored id wins and is
    returned instead of ``playlist_id``.
    """
    cur = conn.cursor()
    try:
        cur.execute(
            """
            INSERT INTO music_playlists (user_id, month_label, day, playlist_id, created_at_utc)
            VALUES (?, ?, ?, ?, ?)
            """,
            (str(user_id or ""), str(month_label), int(day or 0), str(playlist_id), _utc_now_iso()),
        )
        conn.commit()
    except sqlite3.IntegrityError:
        conn.rollback()
        existing = fetch_playlist_binding_sync(conn, month_label=month_label, day=day, user_id=user_id)
        if existing is None:
            raise
        return existing
    return str(playlist_id)
