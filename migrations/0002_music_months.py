from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS music_months (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            start_time_utc TEXT NOT NULL,
            start_ts REAL NOT NULL,
            label TEXT NOT NULL,
            days_json TEXT NOT NULL DEFAULT '[]',
            source_url TEXT,
            created_by_user_id TEXT,
            created_at_utc TEXT NOT NULL
        )
        """
    )
    cur.execute("CREATE INDEX IF NOT EXISTS idx_music_months_start_ts ON music_months(start_ts)")

    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS music_submissions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL,
            month_label TEXT NOT NULL,
            day INTEGER NOT NULL,
            song TEXT NOT NULL,
            submitted_at_utc TEXT NOT NULL
        )
        """
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_music_submissions_month_day ON music_submissions(month_label, day)"
    )
    cur.execute(
        "CREATE INDEX IF NOT EXISTS idx_music_submissions_user ON music_submissions(user_id, month_label, day)"
    )
    conn.commit()
