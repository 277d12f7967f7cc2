import os
import logging
from datetime import time

# ------------------------------------------------------------------------------
# Environment Variables / Config
# ------------------------------------------------------------------------------
ACCESS_TOKEN = os.environ.get("ACCESS_TOKEN", "")         # LINE channel access token
SECRET_CHANNEL = os.environ.get("SECRET_CHANNEL", "")     # LINE channel secret
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")     # OpenAI API key
OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4o")

# Ledger: Apps Script web app wins when set, otherwise the SQL table is used
GOOGLE_APPS_SCRIPT_URL = os.environ.get("GOOGLE_APPS_SCRIPT_URL", "")
DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./daily_totals.db")

FLUSH_TIME = os.environ.get("FLUSH_TIME", "00:00")        # daily auto-save, local time
MEDIA_TIMEOUT = float(os.environ.get("MEDIA_TIMEOUT", 15))
OPENAI_TIMEOUT = float(os.environ.get("OPENAI_TIMEOUT", 60))
PORT = int(os.environ.get("PORT", 8080))


def parse_flush_time(raw: str) -> time:
    """
    Parses an "HH:MM" string into a time of day.

    :raises ValueError: if the value is not a valid 24h clock time.
    """
    hours, sep, minutes = raw.strip().partition(":")
    if not sep or not hours.isdigit() or not minutes.isdigit():
        raise ValueError(f"Invalid FLUSH_TIME {raw!r} (expected HH:MM)")
    return time(int(hours), int(minutes))


def warn_missing():
    if not ACCESS_TOKEN or not SECRET_CHANNEL:
        logging.warning("Warning: ACCESS_TOKEN or SECRET_CHANNEL is not set.")

    if not OPENAI_API_KEY:
        logging.warning("Warning: OPENAI_API_KEY is not set.")
