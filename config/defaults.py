DEFAULT_DB_PATH = "birdbot.db"
DEFAULT_REMINDER_TICK_SECONDS = 60
DEFAULT_COMMUNITY_NAME = "Speedfriends"
DEFAULT_PLAYLIST_PRIVACY = "unlisted"
PLAYLIST_PRIVACY_STATUSES = {"public", "unlisted", "private"}
DEFAULT_YOUTUBE_CLIENT_SECRET_PATH = "client_secret.json"
DEFAULT_YOUTUBE_TOKEN_PATH = "youtube_token.json"
DEFAULT_ALLOWED_CHANNEL_IDS: set[int] = set()
COMMAND_PREFIX = "!"
