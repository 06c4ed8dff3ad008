"""
Configuration - Environment-driven settings for the curriculum seeder
"""

import os
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# --- Database ---
DATABASE_URL = os.getenv("DATABASE_URL")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = int(os.getenv("DB_PORT", "5432"))
DB_NAME = os.getenv("DB_NAME", "interview_prep")
DB_USER = os.getenv("DB_USER", "postgres")
DB_PASS = os.getenv("DB_PASS", os.getenv("DB_PASSWORD", ""))

# Seconds to wait for a connection (driver connect and pool checkout)
DB_CONNECT_TIMEOUT = float(os.getenv("DB_CONNECT_TIMEOUT", "5"))

# --- Seeding ---
CONTENT_DIR = os.getenv("CONTENT_DIR", os.path.join(BASE_DIR, "data", "content"))

_bundle_timeout = os.getenv("SEED_BUNDLE_TIMEOUT")
SEED_BUNDLE_TIMEOUT = float(_bundle_timeout) if _bundle_timeout else None

SEED_LOG_LEVEL = os.getenv("SEED_LOG_LEVEL", "info").strip().lower()

TRUTHY_VALUES = {"1", "true", "yes", "on"}


def is_truthy(value) -> bool:
    """Interpret an environment string as a boolean flag."""
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY_VALUES


SEED_DRY_RUN = is_truthy(os.getenv("SEED_DRY_RUN"))

# --- Logging ---
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'
LOG_LEVELS = ("silent", "info", "debug")

# --- Status API ---
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
