import os
import logging
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- CONFIGURATION ---
DB_PATH = os.environ.get("MT_DB_PATH", "media_tracker.db")

# Logging
LOG_LEVEL_STR = os.environ.get("MT_LOG_LEVEL", "INFO").upper()
LOG_LEVEL = getattr(logging, LOG_LEVEL_STR, logging.INFO)
LOG_FILE = os.environ.get("MT_LOG_FILE", "media_tracker.log")

MT_ENV = os.environ.get("MT_ENV", "development").lower()

# Pagination
MEDIA_PAGE_SIZE = int(os.environ.get("MT_MEDIA_PAGE_SIZE", "20"))
CHARACTER_PAGE_SIZE = int(os.environ.get("MT_CHARACTER_PAGE_SIZE", "20"))
LIBRARY_PAGE_SIZE = int(os.environ.get("MT_LIBRARY_PAGE_SIZE", "20"))

# Sessions
SESSION_HOURS = int(os.environ.get("MT_SESSION_HOURS", "720"))  # 30 days
COOKIE_SECURE = os.environ.get("MT_COOKIE_SECURE", "false").lower() == "true"

# Default admin account, created on first start
ADMIN_USER = os.environ.get("MT_ADMIN_USER", "admin")
ADMIN_PASS = os.environ.get("MT_ADMIN_PASS", "admin123")

# Production guard: refuse to start with the well-known admin password
if MT_ENV == "production" and ADMIN_PASS.strip() in ("", "admin123", "changeme", "password"):
    raise RuntimeError(
        "FATAL: Running in production mode but MT_ADMIN_PASS is not set or is using a weak default value.\n"
        "Set a strong admin password:\n"
        "  export MT_ADMIN_PASS=$(python -c 'import secrets; print(secrets.token_urlsafe(16))')\n"
        "Then restart the application."
    )

# Base URL used by the search client
API_URL = os.environ.get("MT_API_URL", "http://localhost:8501")
