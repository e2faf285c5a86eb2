"""
test_telemetry.py
-----------------
Tests for logging filters/formatters, Sentry event scrubbing and the schema
bootstrap helpers.
"""

import json
import logging

import pytest

import models  # noqa: F401
from config import settings
from db.schema_manager import SchemaManager
from utils.bootstrap import sentry_release
from utils.logging_config import (
    ContextFilter,
    CustomJsonFormatter,
    RateLimitingFilter,
    request_id_var,
)
from utils.sentry_utils import configure_sentry, filter_sensitive_event


def make_record(msg="hello", name="test.logger"):
    return logging.LogRecord(name, logging.INFO, __file__, 1, msg, None, None)


# -------------------------------------------------------------
# Logging
# -------------------------------------------------------------

def test_context_filter_attaches_request_id():
    token = request_id_var.set("req-42")
    try:
        record = make_record()
        assert ContextFilter().filter(record)
    finally:
        request_id_var.reset(token)

    assert record.request_id == "req-42"
    assert ContextFilter().filter(record)
    assert record.request_id is None


def test_json_formatter_includes_context_and_extras():
    record = make_record("page saved")
    record.request_id = "req-7"
    record.page_id = "team/alpha"

    payload = json.loads(CustomJsonFormatter().format(record))

    assert payload["message"] == "page saved"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["request_id"] == "req-7"
    assert payload["page_id"] == "team/alpha"
    assert "fragment_id" not in payload
    assert "lineno" not in payload


def test_rate_limiting_filter_drops_duplicates(monkeypatch):
    monkeypatch.setenv("LOG_DUP_MAX", "2")
    rate_filter = RateLimitingFilter()
    results = [rate_filter.filter(make_record("dup message for rate test")) for _ in range(4)]
    assert results == [True, True, False, False]


def test_rate_limiting_filter_forgets_expired_windows():
    rate_filter = RateLimitingFilter()
    old = make_record("GET /api/p/old -> 200 (1.0 ms)")
    old.created -= 3600
    rate_filter.filter(old)

    for n in range(RateLimitingFilter.MAX_TRACKED + 1):
        rate_filter.filter(make_record(f"GET /api/p/x -> 200 ({n}.0 ms)"))

    assert ("test.logger", old.getMessage()) not in rate_filter._windows


def test_rate_limiting_filter_is_bounded():
    rate_filter = RateLimitingFilter()
    for n in range(5000):
        rate_filter.filter(make_record(f"GET /api/p/{n} -> 200 (0.{n} ms)"))

    assert len(rate_filter._windows) <= RateLimitingFilter.MAX_TRACKED


# -------------------------------------------------------------
# Sentry
# -------------------------------------------------------------

def test_filter_sensitive_event_scrubs_headers():
    event = {
        "request": {
            "url": "http://testserver/api/p/x",
            "headers": {"Cookie": "a=b", "Content-Type": "text/html"},
            "data": {"session_id": "abc", "html": "<p>x</p>"},
        }
    }
    filtered = filter_sensitive_event(event)

    assert filtered["request"]["headers"] == {
        "Cookie": "[FILTERED]",
        "Content-Type": "text/html",
    }
    assert filtered["request"]["data"] == {"session_id": "[FILTERED]", "html": "<p>x</p>"}


def test_filter_sensitive_event_drops_health_transactions():
    event = {"type": "transaction", "request": {"url": "http://testserver/health"}}
    assert filter_sensitive_event(event) is None


def test_sentry_release_names_app_and_version():
    assert sentry_release(settings) == f"{settings.APP_NAME}@{settings.APP_VERSION}"


def test_configure_sentry_respects_disabled_flag(monkeypatch):
    monkeypatch.setenv("SENTRY_ENABLED", "false")
    assert configure_sentry(dsn="https://key@example.invalid/1") is False


# -------------------------------------------------------------
# Schema bootstrap
# -------------------------------------------------------------

@pytest.mark.asyncio
async def test_schema_manager_reports_no_issues_after_init():
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import StaticPool

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    manager = SchemaManager(engine)
    try:
        assert "Missing table: pages" in await manager.validate_schema()
        await manager.initialize_database()
        assert await manager.validate_schema() == []
    finally:
        await engine.dispose()
