"""Runtime configuration for the ride scheduler."""
import os
from dotenv import load_dotenv

# Load environment variables from a local .env if present
load_dotenv()

DATABASE_URL = os.environ.get("DATABASE_URL", "sqlite:///./ride_scheduler.db")

# Rolling window for eager materialization (days)
DEFAULT_HORIZON_DAYS = int(os.environ.get("RECURRING_HORIZON_DAYS", "30"))
MAX_HORIZON_DAYS = int(os.environ.get("RECURRING_MAX_HORIZON_DAYS", "365"))

# Upper bound for a single persistence call
PERSISTENCE_TIMEOUT_SECONDS = float(os.environ.get("PERSISTENCE_TIMEOUT_SECONDS", "10"))

# Timezone applied to the wall-clock departure time of generated rides
RIDE_TIMEZONE = os.environ.get("RIDE_TIMEZONE", "UTC")

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# Pattern limits
MAX_DAY_OF_MONTH = 28
MAX_OCCURRENCES = 100
LOOKAHEAD_DAYS = 731
