from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import Any


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _row_to_reminder(row: tuple[Any, ...]) -> dict[str, Any]:
    return {
        "id": int(row[0]),
        "user_id": str(row[1]),
        "reminder_text": row[2],
        "due_at_utc": row[3],
        "due_ts": float(row[4]),
        "created_at_utc": row[5],
    }


def insert_reminder_sync(conn: sqlite3.Connection, *, user_id: str, reminder_text: str, due_at: datetime) -> int:
    due = _as_utc(due_at)
    cur = conn.cursor()
    cur.execute(
        """
        INSERT INTO reminders (user_id, reminder_text, due_at_utc, due_ts, created_at_utc)
        VALUES (?, ?, ?, ?, ?)
        """,
        (str(user_id), str(reminder_text or ""), due.isoformat(), due.timestamp(), _utc_now_iso()),
    )
    conn.commit()
    return int(cur.lastrowid)


def fetch_due_reminders_sync(conn: sqlite3.Connection, now: datetime) -> list[dict[str, Any]]:
    cur = conn.cursor()
    cur.execute(
        """
        SELECT id, user_id, reminder_text, due_at_utc, due_ts, created_at_utc
        FROM reminders
        WHERE due_ts < ?
        """,
        (_as_utc(now).timestamp(),),
    )
    return [_row_to_reminder(row) for row in cur.fetchall()]


def delete_reminder_sync(conn: sqlite3.Connection, reminder_id: int) -> bool:
    cur = conn.cursor()
    cur.execute("DELETE FROM reminders WHERE id = ?", (int(reminder_id),))
    conn.commit()
    return cur.rowcount > 0
