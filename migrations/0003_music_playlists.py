from __future__ import annotations

import sqlite3


def upgrade(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS music_playlists (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id TEXT NOT NULL DEFAULT '',
            month_label TEXT NOT NULL,
            day INTEGER NOT NULL DEFAULT 0,
            playlist_id TEXT NOT NULL,
            created_at_utc TEXT NOT NULL
        )
        """
    )
    # One binding per (month, day, scope); day 0 means every day, empty user_id the whole server.
    cur.execute(
        """
        CREATE UNIQUE INDEX IF NOT EXISTS idx_music_playlists_key
        ON music_playlists(month_label, day, user_id)
        """
    )
    conn.commit()
