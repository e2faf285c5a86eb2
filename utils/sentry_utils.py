"""
utils/sentry_utils.py
─────────────────────────────────────────────────────────────────────────
Sentry configuration and helpers for the sandbox service.

Usage
=====
• Call `configure_sentry()` once at application start-up **after**
  `init_structured_logging()` (from utils.logging_config); `utils.bootstrap`
  does both in order.
• Use `capture_breadcrumb()` / `report_exception()` anywhere; both are no-ops
  while Sentry is not initialised.

This file purposefully contains **no** top-level Sentry initialisation
side-effects; everything happens inside `configure_sentry()`.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional, Set

import sentry_sdk
from sentry_sdk.integrations import Integration
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration, ignore_logger
from sentry_sdk.types import Event, Hint

from utils.logging_config import request_id_var

__all__ = [
    "configure_sentry",
    "filter_sensitive_event",
    "capture_breadcrumb",
    "report_exception",
]

# ------------------------------------------------------------------------- #
# Constants                                                                 #
# ------------------------------------------------------------------------- #
NOISY_LOGGERS: Set[str] = {
    "uvicorn.access",
    "uvicorn.error",
    "fastapi",
    "asyncio",
    "sqlalchemy.engine.Engine",
    "sqlalchemy.pool",
}
SENSITIVE_KEYS: Set[str] = {
    "password",
    "token",
    "secret",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "session",
}
IGNORED_TRANSACTIONS: Set[str] = {
    "/health",
    "/favicon.ico",
    "/robots.txt",
    "/static/",
}

# ------------------------------------------------------------------------- #
# Helper – filter sensitive data                                            #
# ------------------------------------------------------------------------- #


def _is_sensitive(key: str) -> bool:
    return any(s in key.lower() for s in SENSITIVE_KEYS)


def _filter_request_data(request_data: dict[str, Any]) -> None:
    """In-place redaction of headers / body keys marked sensitive."""
    if isinstance((payload := request_data.get("data")), dict):
        for k in list(payload):
            if _is_sensitive(k):
                payload[k] = "[FILTERED]"

    if isinstance((headers := request_data.get("headers")), dict):
        request_data["headers"] = {
            k: ("[FILTERED]" if _is_sensitive(k) else v) for k, v in headers.items()
        }


def filter_sensitive_event(
    event: Event, _hint: Optional[Hint] = None
) -> Optional[Event]:
    """
    Main `before_send` hook.
    • Rejects noisy transactions.
    • Scrubs sensitive request fields.
    """
    if event.get("type") == "transaction":
        url = str(event.get("request", {}).get("url", ""))
        if any(p in url for p in IGNORED_TRANSACTIONS):
            return None

    if "request" in event:
        _filter_request_data(event["request"])  # type: ignore[arg-type]
    return event


# ------------------------------------------------------------------------- #
# Public bootstrap                                                          #
# ------------------------------------------------------------------------- #
def configure_sentry(
    *,
    dsn: str,
    environment: str = "production",
    release: str | None = None,
    traces_sample_rate: float = 0.2,
) -> bool:
    """
    Initialise Sentry – call ONCE at start-up.

    Env flags respected
    -------------------
    • SENTRY_ENABLED (default: False)
    • SENTRY_DEBUG   (default: False)

    Returns True when the SDK was initialised.
    """
    if str(os.getenv("SENTRY_ENABLED", "")).lower() not in {"1", "true", "yes"}:
        logging.info("Sentry disabled via env flag; skipping initialisation.")
        return False
    if not dsn:
        logging.warning("SENTRY_ENABLED is set but SENTRY_DSN is empty; skipping.")
        return False

    integrations: list[Integration] = [
        LoggingIntegration(
            level=logging.INFO,  # Breadcrumbs ≥ INFO
            event_level=logging.ERROR,  # Errors ≥ ERROR become events
        ),
        FastApiIntegration(transaction_style="endpoint"),
        AsyncioIntegration(),
    ]

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        release=release,
        traces_sample_rate=traces_sample_rate,
        integrations=integrations,
        before_send=filter_sensitive_event,
        debug=str(os.getenv("SENTRY_DEBUG", "")).lower() in {"1", "true", "yes"},
        send_default_pii=False,
    )

    for logger_name in NOISY_LOGGERS:
        ignore_logger(logger_name)
    logging.info("Sentry initialised (%s)", environment)
    return True


# ------------------------------------------------------------------------- #
# Convenience helpers                                                       #
# ------------------------------------------------------------------------- #
def capture_breadcrumb(
    category: str, message: str, level: str = "info", data: dict | None = None
) -> None:
    """
    Record a custom Sentry breadcrumb with optional extra data.
    """
    sentry_sdk.add_breadcrumb(
        category=category,
        message=message,
        level=level,
        data=data or {},
    )


def report_exception(
    exc: BaseException,
    *,
    path: str,
    request_id: str | None = None,
    status_code: int | None = None,
) -> None:
    """Send ``exc`` to Sentry tagged with the request id (context var when not given)."""
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("request_id", request_id or request_id_var.get() or "n/a")
        if status_code is not None:
            scope.set_tag("http_status", status_code)
        scope.set_extra("path", path)
        sentry_sdk.capture_exception(exc)
