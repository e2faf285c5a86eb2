"""
Application Configuration Module (config.py)
--------------------------------------------

Centralized runtime configuration for the sandbox service, sourced from environment
variables and `.env` files.

Highlights:
- Supplies `DATABASE_URL` for the fragment store. Separate PG* variables build an
  asyncpg URL; otherwise a local SQLite file is used.
- Content length limit enforced by the page API.
- Sentry, logging and CORS settings consumed by `utils.bootstrap` and `main`.

All settings are exposed via the `settings` object.
"""

import os
from dotenv import load_dotenv
from pathlib import Path
from urllib.parse import quote_plus

env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)


class Settings:
    """
    Runtime configuration, read once at import time.
    """

    APP_VERSION = os.getenv("APP_VERSION", "0.1.0")
    APP_NAME = os.getenv("APP_NAME", "noforum-sandbox")

    # Debug/Environment
    DEBUG = os.getenv("DEBUG", "False").lower() == "true"
    ENV = os.getenv("ENV", "development")

    # Sentry (optional)
    SENTRY_DSN = os.getenv("SENTRY_DSN", "")
    SENTRY_ENABLED = os.getenv("SENTRY_ENABLED", "False").lower() == "true"
    # Polling views generate a steady stream of GETs; sample lightly.
    SENTRY_TRACES_SAMPLE_RATE = float(
        os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1" if ENV == "production" else "0.02")
    )

    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FILE = os.getenv("LOG_FILE", "")

    # PostgreSQL connection: either full URL or separate PG* variables
    PGHOST = os.getenv("PGHOST", "")
    PGPORT = os.getenv("PGPORT", "5432")
    PGDATABASE = os.getenv("PGDATABASE", "")
    PGUSER = os.getenv("PGUSER", "")
    PGPASSWORD = os.getenv("PGPASSWORD", "")
    PGSSLMODE = os.getenv("PGSSLMODE", "prefer")

    if PGHOST and PGDATABASE and PGUSER and PGPASSWORD:
        _pwd = quote_plus(PGPASSWORD)
        DATABASE_URL = (
            f"postgresql+asyncpg://{PGUSER}:{_pwd}@{PGHOST}:{PGPORT}/{PGDATABASE}"
            f"?ssl={PGSSLMODE}"
        )
    else:
        DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./sandbox.db")

    # Sandbox content rules
    MAX_USER_CONTENT_LENGTH = int(os.getenv("MAX_USER_CONTENT_LENGTH", "1000"))

    # CORS: comma separated list; empty means same-origin only
    CORS_ORIGINS = [
        o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()
    ]


settings = Settings()

__all__ = ["settings"]
