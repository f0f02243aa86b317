import os
from dotenv import load_dotenv

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./forum_engine.db")
SECRET_KEY = os.getenv("SECRET_KEY")
ALGORITHM = os.getenv("ALGORITHM", "HS256")

# Postgres keeps everything under one schema; sqlite has no schemas
DB_SCHEMA = os.getenv(
    "DB_SCHEMA",
    "forum_engine" if DATABASE_URL.startswith("postgres") else "",
) or None

REDIS_URL = os.getenv("REDIS_URL")
VIEW_DEDUP_TTL_SECONDS = int(os.getenv("VIEW_DEDUP_TTL_SECONDS", "86400"))

SLUG_MAX_ATTEMPTS = int(os.getenv("SLUG_MAX_ATTEMPTS", "20"))
SLUG_FALLBACK = os.getenv("SLUG_FALLBACK", "censored-title")
SLUG_MAX_LENGTH = int(os.getenv("SLUG_MAX_LENGTH", "80"))

NOTIFY_EXCERPT_CHARS = int(os.getenv("NOTIFY_EXCERPT_CHARS", "30"))

DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "20"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "100"))

FLOW_MAX_CHARS = int(os.getenv("FLOW_MAX_CHARS", "500"))
POST_TITLE_MAX_CHARS = int(os.getenv("POST_TITLE_MAX_CHARS", "200"))
READING_WPM = int(os.getenv("READING_WPM", "200"))

FLOW_WRITE_RATE = os.getenv("FLOW_WRITE_RATE", "10/minute;200/day")
POST_WRITE_RATE = os.getenv("POST_WRITE_RATE", "6/minute;40/hour;150/day")
CONTACT_RATE = os.getenv("CONTACT_RATE", "3/minute;20/day")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() in ("1", "true", "yes")
