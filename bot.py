import os
import sqlite3
import asyncio
import discord
from discord.ext import commands
from config.defaults import COMMAND_PREFIX
from config.defaults import DEFAULT_ALLOWED_CHANNEL_IDS
from config.defaults import DEFAULT_COMMUNITY_NAME
from config.defaults import DEFAULT_DB_PATH
from config.defaults import DEFAULT_PLAYLIST_PRIVACY
from config.defaults import DEFAULT_REMINDER_TICK_SECONDS
from config.defaults import DEFAULT_YOUTUBE_CLIENT_SECRET_PATH
from config.defaults import DEFAULT_YOUTUBE_TOKEN_PATH
from config.defaults import PLAYLIST_PRIVACY_STATUSES
from config.env import env_choice
from config.env import env_int
from config.env import parse_id_set
from db.migrate import open_database
from jobs.reminders import reminder_loop as reminder_loop_service
from misc.runtime_wiring import wire_bot_runtime
from music.playlists import PlaylistReconciler
from music.service import MusicMonthService
from music.youtube import YouTubePlaylistClient
from reminders.service import ReminderService

# =========================
# ENV
# =========================
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN")

if not DISCORD_TOKEN:
    raise RuntimeError("Missing DISCORD_TOKEN env var")

DB_PATH = os.getenv("BIRDBOT_DB_PATH", DEFAULT_DB_PATH)
ADMIN_USER_IDS = parse_id_set(os.getenv("BIRDBOT_ADMIN_USER_IDS"))
ALLOWED_CHANNEL_IDS = parse_id_set(os.getenv("BIRDBOT_ALLOWED_CHANNEL_IDS")) or set(DEFAULT_ALLOWED_CHANNEL_IDS)
REMINDER_TICK_SECONDS = env_int("BIRDBOT_REMINDER_TICK_SECONDS", DEFAULT_REMINDER_TICK_SECONDS, minimum=10)

# =========================
# MUSIC MONTH / YOUTUBE
# =========================
COMMUNITY_NAME = os.getenv("BIRDBOT_COMMUNITY_NAME", DEFAULT_COMMUNITY_NAME).strip() or DEFAULT_COMMUNITY_NAME
PLAYLIST_PRIVACY = env_choice("BIRDBOT_PLAYLIST_PRIVACY", DEFAULT_PLAYLIST_PRIVACY, PLAYLIST_PRIVACY_STATUSES)
YOUTUBE_CLIENT_SECRET_PATH = os.getenv("BIRDBOT_YOUTUBE_CLIENT_SECRET", DEFAULT_YOUTUBE_CLIENT_SECRET_PATH)
YOUTUBE_TOKEN_PATH = os.getenv("BIRDBOT_YOUTUBE_TOKEN_FILE", DEFAULT_YOUTUBE_TOKEN_PATH)
YOUTUBE_REFRESH_TOKEN = os.getenv("BIRDBOT_YOUTUBE_REFRESH_TOKEN", "").strip()

print(
    f"[CFG] db_path={DB_PATH} admins={len(ADMIN_USER_IDS)} "
    f"allowed_channels={len(ALLOWED_CHANNEL_IDS) or '(all)'} reminder_tick={REMINDER_TICK_SECONDS}s "
    f"community={COMMUNITY_NAME!r} playlist_privacy={PLAYLIST_PRIVACY}"
)

DISCORD_MAX_MESSAGE_LEN = 1900  # keep under 2000 hard limit


def chunk_text(text: str, limit: int = DISCORD_MAX_MESSAGE_LEN) -> list[str]:
    text = text or ""
    if len(text) <= limit:
        return [text]

    chunks = []
    remaining = text

    while len(remaining) > limit:
        # Prefer splitting on paragraph, then newline, then space
        split_at = remaining.rfind("\n\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind("\n", 0, limit)
        if split_at == -1:
            split_at = remaining.rfind(" ", 0, limit)
        if split_at == -1:
            split_at = limit

        chunk = remaining[:split_at].strip()
        if chunk:
            chunks.append(chunk)

        remaining = remaining[split_at:].strip()

    if remaining:
        chunks.append(remaining)

    return chunks


async def send_chunked(channel: discord.abc.Messageable, text: str) -> None:
    for part in chunk_text(text, DISCORD_MAX_MESSAGE_LEN):
        await channel.send(part)


def user_is_owner(user: discord.abc.User) -> bool:
    uid = int(getattr(user, "id", 0) or 0)
    return bool(uid) and uid in ADMIN_USER_IDS


# =========================
# DB
# =========================
db_lock = asyncio.Lock()
try:
    db_conn = open_database(DB_PATH)
except (sqlite3.Error, RuntimeError) as e:
    # Reminders and music months answer "not set up" instead of crashing the bot.
    print(f"[DB] could not open {DB_PATH}: {e}")
    db_conn = None

# =========================
# SERVICES
# =========================
youtube_client = YouTubePlaylistClient.from_files(
    client_secret_path=YOUTUBE_CLIENT_SECRET_PATH,
    token_path=YOUTUBE_TOKEN_PATH,
    refresh_token=YOUTUBE_REFRESH_TOKEN or None,
    privacy_status=PLAYLIST_PRIVACY,
)
print(f"[YouTube] playlists enabled={youtube_client is not None}")

reminder_service = ReminderService(db_lock=db_lock, db_conn=db_conn)
playlist_reconciler = PlaylistReconciler(
    db_lock=db_lock,
    db_conn=db_conn,
    provider=youtube_client,
    community_name=COMMUNITY_NAME,
)
music_service = MusicMonthService(
    db_lock=db_lock,
    db_conn=db_conn,
    reconciler=playlist_reconciler if youtube_client is not None else None,
)

intents = discord.Intents.default()
intents.message_content = True
intents.members = True

bot = commands.Bot(command_prefix=COMMAND_PREFIX, intents=intents)


async def reminder_loop() -> None:
    return await reminder_loop_service(
        bot=bot,
        reminder_service=reminder_service,
        interval_seconds=REMINDER_TICK_SECONDS,
    )


wire_bot_runtime(
    bot,
    allowed_channel_ids=ALLOWED_CHANNEL_IDS,
    user_is_owner=user_is_owner,
    admin_user_ids=ADMIN_USER_IDS,
    send_chunked=send_chunked,
    reminder_service=reminder_service,
    reminder_loop_func=reminder_loop,
    music_service=music_service,
    shutdown_closers=[youtube_client.close] if youtube_client is not None else [],
)


bot.run(DISCORD_TOKEN)
