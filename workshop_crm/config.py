import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./workshop_crm.db")

# JWT Configuration - CRITICAL: No default secret in production
JWT_SECRET = os.getenv("JWT_SECRET")
if not JWT_SECRET:
    import warnings

    warnings.warn(
        "JWT_SECRET not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    JWT_SECRET = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_HOURS = int(os.getenv("ACCESS_TOKEN_EXPIRE_HOURS", "24"))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))

# Redis is optional - theme lookups fall back to the in-process cache only
REDIS_URL = os.getenv("REDIS_URL")

# Allowed dashboard origins (comma separated)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",") if o.strip()]

# Internal/test phone numbers never shown on the dashboard
TEST_PHONE_NUMBERS = frozenset(
    n.strip()
    for n in os.getenv("TEST_PHONE_NUMBERS", "9426052435,9571209434,9997386442").split(",")
    if n.strip()
)

# Display timezone for booking timestamps
DISPLAY_TIMEZONE = os.getenv("DISPLAY_TIMEZONE", "Asia/Kolkata")

# Pagination
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", "50"))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", "500"))

# Read caches
OTP_CACHE_TTL_SECONDS = int(os.getenv("OTP_CACHE_TTL_SECONDS", "60"))
WORKSHOP_THEME_CACHE_TTL = int(os.getenv("WORKSHOP_THEME_CACHE_TTL", "3600"))

# Welcome-call tracker cache
TRACKER_MAX_ENTRIES = int(os.getenv("TRACKER_MAX_ENTRIES", "10000"))
TRACKER_RETENTION_DAYS = int(os.getenv("TRACKER_RETENTION_DAYS", "30"))
TRACKER_BATCH_SIZE = int(os.getenv("TRACKER_BATCH_SIZE", "50"))
TRACKER_SAVE_DEBOUNCE_SECONDS = float(os.getenv("TRACKER_SAVE_DEBOUNCE_SECONDS", "1.0"))
TRACKER_CLEANUP_INTERVAL_SECONDS = int(os.getenv("TRACKER_CLEANUP_INTERVAL_SECONDS", "3600"))
TRACKER_MAX_SAVE_FAILURES = int(os.getenv("TRACKER_MAX_SAVE_FAILURES", "5"))

# Bulk writes fail as a whole if the store does not answer in time
BULK_WRITE_TIMEOUT_SECONDS = float(os.getenv("BULK_WRITE_TIMEOUT_SECONDS", "30"))
