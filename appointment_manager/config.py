import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./appointment_manager.db")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Operator API tokens, comma separated "email:token" pairs
# e.g. API_TOKENS="frontdesk@clinic.test:abc123,manager@clinic.test:def456"
API_TOKENS = os.getenv("API_TOKENS", "")

# CORS origins for the booking frontend
ALLOWED_ORIGINS = os.getenv(
    "ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173"
).split(",")

# Per-staff serialization of assignment decisions
# "memory" is enough for a single worker process; use "redis" when running several workers
SCHEDULING_LOCK_BACKEND = os.getenv("SCHEDULING_LOCK_BACKEND", "memory").lower()
SCHEDULING_LOCK_TIMEOUT_SECONDS = float(os.getenv("SCHEDULING_LOCK_TIMEOUT_SECONDS", "30"))
SCHEDULING_LOCK_WAIT_SECONDS = float(os.getenv("SCHEDULING_LOCK_WAIT_SECONDS", "10"))

# Redis (only used by the redis lock backend)
REDIS_URL = os.getenv("REDIS_URL")

# Scheduling rules
VALID_DURATIONS = (15, 30, 45, 60, 90, 120)
DEFAULT_DAILY_CAPACITY = int(os.getenv("DEFAULT_DAILY_CAPACITY", "5"))

# Number of activity entries returned when no limit is given
ACTIVITY_LOG_LIMIT = int(os.getenv("ACTIVITY_LOG_LIMIT", "10"))
