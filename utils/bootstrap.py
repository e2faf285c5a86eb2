"""
utils/bootstrap.py
------------------
Telemetry start-up for the sandbox service: logging first, then Sentry, so
Sentry's logging integration wraps the final handler setup.

Called once from `main` at import time, before the database and routes are
imported and start logging.
"""

import logging

from config import Settings, settings as default_settings
from utils.logging_config import init_structured_logging
from utils.sentry_utils import configure_sentry


def sentry_release(config: Settings) -> str:
    """``name@version``, the release string Sentry groups events under."""
    return f"{config.APP_NAME}@{config.APP_VERSION}"


def init_telemetry(config: Settings = default_settings) -> bool:
    """
    Configure logging and Sentry from ``config``.

    Returns:
        True when Sentry was enabled.
    """
    init_structured_logging(level=config.LOG_LEVEL, log_file=config.LOG_FILE)

    sentry_enabled = configure_sentry(
        dsn=config.SENTRY_DSN,
        environment=config.ENV,
        release=sentry_release(config),
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
    )

    logging.getLogger(__name__).info(
        "%s %s starting (env=%s, sentry=%s)",
        config.APP_NAME,
        config.APP_VERSION,
        config.ENV,
        "on" if sentry_enabled else "off",
    )
    return sentry_enabled
