# app/config.py
import os
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: tuple) -> tuple:
    raw = os.getenv(name)
    if raw is None:
        return default
    return tuple(x.strip() for x in raw.split(",") if x.strip())


API_ID = int(os.getenv("API_ID", "0"))
API_HASH = os.getenv("API_HASH", "")
SESSION = os.getenv("SESSION_NAME", "tg_session")
BOT_TOKEN = os.getenv("BOT_TOKEN", "")

CONTROL_PEER = os.getenv("CONTROL_CHAT", "")
# чати, де відстежуємо посилання (порожньо = усі)
WATCH_CHATS = _env_list("WATCH_CHATS", ())

DB_PATH = os.getenv("DB_PATH", "link_resharing.sqlite3")

PLUGINS_PACKAGE = "app.plugins"

# link tracking
LINK_TTL_SECONDS        = int(os.getenv("LINK_TTL_SECONDS", str(7 * 24 * 60 * 60)))
RECENT_SHARE_WINDOW_SEC = float(os.getenv("RECENT_SHARE_WINDOW_SEC", "5"))
NOTIFY_SELF_RESHARE     = _env_bool("NOTIFY_SELF_RESHARE", True)
NOTICE_PREFIX           = os.getenv("NOTICE_PREFIX", "👋")
# як часто чистити прострочені записи (0 = лише при старті)
PURGE_INTERVAL_SEC      = int(os.getenv("PURGE_INTERVAL_SEC", "3600"))

# Хости (або host+path), для яких не пишемо «це вже було»
ALLOWLISTED_HOSTS = _env_list("ALLOWLISTED_HOSTS", (
    "apple.com",
    "developer.apple.com",
    "iosdevelopers.slack.com",
    "iosfolks.com",
    "mlb.tv",
    "youtube.com/watch?v=dQw4w9WgXcQ",
))

# logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
