from __future__ import annotations

import hashlib
import importlib.util
import os
import re
import sqlite3
from datetime import datetime, timezone
from pathlib import Path


MIGRATION_RE = re.compile(r"^(\d{4})_([a-zA-Z0-9_]+)\.py$")

REQUIRED_COLUMNS: dict[str, list[str]] = {
    "reminders": ["user_id", "reminder_text", "due_at_utc", "due_ts"],
    "music_months": ["start_time_utc", "start_ts", "label", "days_json"],
    "music_submissions": ["user_id", "month_label", "day", "song"],
    "music_playlists": ["user_id", "month_label", "day", "playlist_id"],
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _checksum_file(path: Path) -> str:
    return hashlib.sha256(path.read_bytes()).hexdigest()


def default_migrations_dir() -> str:
    repo_root = Path(__file__).resolve().parents[1]
    return os.path.join(repo_root, "migrations")


def _ensure_migration_table(conn: sqlite3.Connection) -> None:
    cur = conn.cursor()
    cur.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
            version TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            checksum TEXT NOT NULL,
            applied_at_utc TEXT NOT NULL
        )
        """
    )
    conn.commit()


def _load_applied(conn: sqlite3.Connection) -> dict[str, tuple[str, str]]:
    cur = conn.cursor()
    cur.execute("SELECT version, name, checksum FROM schema_migrations")
    return {str(version): (str(name), str(checksum)) for version, name, checksum in cur.fetchall()}


def _run_migration(conn: sqlite3.Connection, path: Path) -> None:
    spec = importlib.util.spec_from_file_location(f"birdbot_migration_{path.stem}", str(path))
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Could not load migration module: {path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    upgrade = getattr(module, "upgrade", None)
    if not callable(upgrade):
        raise RuntimeError(f"Migration missing upgrade(conn): {path}")
    upgrade(conn)


def apply_sqlite_migrations(conn: sqlite3.Connection, migrations_dir: str | None = None) -> list[str]:
    """Apply pending migrations in version order and return the names that ran."""
    _ensure_migration_table(conn)
    applied = _load_applied(conn)
    base = Path(migrations_dir or default_migrations_dir())
    if not base.exists():
        raise RuntimeError(f"Migrations directory not found: {base}")

    ran: list[str] = []
    cur = conn.cursor()
    for path in sorted(p for p in base.iterdir() if p.is_file()):
        match = MIGRATION_RE.match(path.name)
        if not match:
            continue
        version, name = match.group(1), match.group(2)
        checksum = _checksum_file(path)
        existing = applied.get(version)
        if existing:
            if existing != (name, checksum):
                raise RuntimeError(
                    f"Migration version {version} already applied with different content "
                    f"(existing name={existing[0]}, file name={name})."
                )
            continue

        print(f"[DB] Applying migration {path.name}")
        _run_migration(conn, path)
        cur.execute(
            """
            INSERT INTO schema_migrations (version, name, checksum, applied_at_utc)
            VALUES (?, ?, ?, ?)
            """,
            (version, name, checksum, _utc_now_iso()),
        )
        conn.commit()
        ran.append(f"{version}_{name}")
    return ran


def missing_columns(conn: sqlite3.Connection, table: str, required: list[str]) -> list[str]:
    cur = conn.cursor()
    cur.execute(f"PRAGMA table_info({table})")
    cols = {str(row[1]) for row in cur.fetchall()}
    return [c for c in required if c not in cols]


def open_database(db_path: str, migrations_dir: str | None = None) -> sqlite3.Connection:
    # check_same_thread=False because calls hop onto worker threads via asyncio.to_thread
    conn = sqlite3.connect(db_path, check_same_thread=False)
    cur = conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    apply_sqlite_migrations(conn, migrations_dir)

    for table, required in REQUIRED_COLUMNS.items():
        missing = missing_columns(conn, table, required)
        print(f"[DB] {table} schema OK={not missing} missing={missing}")
    conn.commit()
    return conn
