"""Application configuration."""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).parent
DATA_DIR = BASE_DIR / "data"
DATABASE_PATH = DATA_DIR / "pgc_leaderboard.db"

# Database - Uses fastsql with SQLAlchemy connection strings
# Local development: SQLite (no DATABASE_URL set)
# Production: PostgreSQL (set DATABASE_URL env var)
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATABASE_PATH}")
DB_POOL_RECYCLE_SECONDS = int(os.getenv("DB_POOL_RECYCLE_SECONDS", 300))

# Leaderboard data source: "store" reads the database, "fetch" reads the JSON API
LEADERBOARD_SOURCE = os.getenv("LEADERBOARD_SOURCE", "store")
LEADERBOARD_API_URL = os.getenv("LEADERBOARD_API_URL", "http://localhost:8000")

# Freshness policy
REFRESH_INTERVAL_SECONDS = int(os.getenv("REFRESH_INTERVAL_SECONDS", 120))
STALE_AFTER_SECONDS = int(os.getenv("STALE_AFTER_SECONDS", 300))
VIEW_IDLE_SECONDS = int(os.getenv("VIEW_IDLE_SECONDS", 600))  # Release a view nobody has requested for this long
REFRESH_TIMEOUT_SECONDS = float(os.getenv("REFRESH_TIMEOUT_SECONDS", 30))
REFRESH_COOLDOWN_SECONDS = float(os.getenv("REFRESH_COOLDOWN_SECONDS", 0.5))
SCHEDULER_TIMEZONE = os.getenv("SCHEDULER_TIMEZONE", "America/New_York")

# App settings
APP_NAME = "PGC Leaderboard"
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-in-production")
