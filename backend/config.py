"""Configuration module for HisaabKitaab"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).resolve().parent.parent
SCHEMA_PATH = BASE_DIR / "backend" / "schema.sql"

APP_ENV = os.environ.get("APP_ENV", "development")

# Database configuration - PostgreSQL only.
# Checked lazily by get_db() so the app can be imported without a database.
DATABASE_URL = os.environ.get("DATABASE_URL", "")

# Some providers hand out postgres://, but psycopg2 needs postgresql://
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql://", 1)

DB_TIMEZONE = os.environ.get("DB_TIMEZONE", "Asia/Karachi")

# LLM
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
LLM_MODEL = os.environ.get("LLM_MODEL", "gpt-4o-mini")
LLM_VISION_MODEL = os.environ.get("LLM_VISION_MODEL", "gpt-4o")
LLM_MAX_RETRIES = int(os.environ.get("LLM_MAX_RETRIES", "2"))

# Identity provider (Clerk)
CLERK_SECRET_KEY = os.environ.get("CLERK_SECRET_KEY", "")
CLERK_API_URL = os.environ.get("CLERK_API_URL", "https://api.clerk.com/v1")
CLERK_JWKS_URL = os.environ.get("CLERK_JWKS_URL", f"{CLERK_API_URL}/jwks")
CLERK_ISSUER = os.environ.get("CLERK_ISSUER")
CLERK_WEBHOOK_SECRET = os.environ.get("CLERK_WEBHOOK_SECRET", "")

# Telephony (Twilio)
TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER")

APP_URL = os.environ.get("APP_URL", "http://localhost:8000").rstrip("/")
CRON_SECRET = os.environ.get("CRON_SECRET", "")

# Flask config
FLASK_CONFIG = {
    "SECRET_KEY": os.environ.get("SECRET_KEY", "dev-secret-key"),
}


def is_production() -> bool:
    return APP_ENV.lower() == "production"
