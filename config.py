# Settings from .env / environment, plus app-wide limits.
import os
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env")

APP_NAME = "Gratitude Grove"
TAGLINE = "Write down three things you are grateful for, and share them."

PER_PAGE = 9
FEED_LIMIT = 50
MAX_LINES = 3
MAX_LINE_LENGTH = 100
NICKNAME_MAX = 6
PASSWORD_MIN = 8
INDEX_WINDOW_DAYS = 365
GRID_MONTHS = 6
PREVIEW_LENGTH = 20


def _flag(name: str) -> bool:
    return (os.environ.get(name) or "").strip().lower() in ("1", "true", "yes", "on")


def _timeout(name: str) -> float | None:
    raw = (os.environ.get(name) or "").strip()
    try:
        return float(raw) if raw else None
    except ValueError:
        return None


SUPABASE_URL = (os.environ.get("SUPABASE_URL") or "").strip() or None
SUPABASE_ANON_KEY = (os.environ.get("SUPABASE_ANON_KEY") or "").strip() or None
USE_IN_MEMORY_BACKEND = _flag("GROVE_USE_IN_MEMORY_BACKEND")
SESSION_DIR = Path(os.environ.get("GROVE_SESSION_DIR") or BASE_DIR / ".sessions")
SESSION_DAYS = 30
TIMEZONE = os.environ.get("GROVE_TIMEZONE") or "Asia/Seoul"
# None leaves requests' own behaviour in place.
REQUEST_TIMEOUT = _timeout("GROVE_REQUEST_TIMEOUT")
LOG_LEVEL = (os.environ.get("GROVE_LOG_LEVEL") or "INFO").upper()
