import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./telecare.db")

# Identity provider: the authenticating gateway forwards the verified subject in this header
IDENTITY_HEADER = os.getenv("IDENTITY_HEADER", "X-Account-Subject")

# Scheduling
CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "UTC")
SLOT_MINUTES = int(os.getenv("SLOT_MINUTES", "30"))
AVAILABILITY_WINDOW_DAYS = int(os.getenv("AVAILABILITY_WINDOW_DAYS", "4"))
DEFAULT_DAY_START = os.getenv("DEFAULT_DAY_START", "09:00")
DEFAULT_DAY_END = os.getenv("DEFAULT_DAY_END", "17:00")

# Credits
APPOINTMENT_CREDIT_COST = int(os.getenv("APPOINTMENT_CREDIT_COST", "2"))
CREDIT_DISPLAY_PRICE_USD = 10  # reporting only

# Video hosting (OpenTok-compatible REST API)
VIDEO_API_URL = os.getenv("VIDEO_API_URL", "https://api.opentok.com").rstrip("/")
VIDEO_API_KEY = os.getenv("VIDEO_API_KEY")
VIDEO_API_SECRET = os.getenv("VIDEO_API_SECRET")
VIDEO_AUTH_HEADER = os.getenv("VIDEO_AUTH_HEADER", "X-AUTH")
VIDEO_API_TIMEOUT = float(os.getenv("VIDEO_API_TIMEOUT", "10"))
# Join tokens stay valid this long after the appointment ends
VIDEO_TOKEN_GRACE_SECONDS = int(os.getenv("VIDEO_TOKEN_GRACE_SECONDS", "3600"))
# Interval between runs of the session backfill worker
VIDEO_BACKFILL_INTERVAL = int(os.getenv("VIDEO_BACKFILL_INTERVAL", "300"))

# Cache (doctor profiles)
DOCTOR_PROFILE_CACHE_TTL = int(os.getenv("DOCTOR_PROFILE_CACHE_TTL", "300"))
DOCTOR_LIST_CACHE_TTL = int(os.getenv("DOCTOR_LIST_CACHE_TTL", "300"))

# Store transactions
DB_LOCK_TIMEOUT_MS = int(os.getenv("DB_LOCK_TIMEOUT_MS", "5000"))
DB_RETRY_BACKOFF = float(os.getenv("DB_RETRY_BACKOFF", "0.2"))
