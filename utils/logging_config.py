"""
utils/logging_config.py
-----------------------
Logging setup for the sandbox service.

- Every record carries the id of the request it was emitted under
  (`request_id_var`, bound by `utils.middlewares.RequestContextMiddleware`).
- Identical messages are capped per minute so a misbehaving poller cannot
  flood the console.
- Console output is colourised text; `LOG_FILE` adds a rotating JSON-lines
  file with a fixed field set plus page/fragment/request context.
"""

import json
import logging
import os
import sys
import time
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from typing import Any, Dict, Optional, Tuple

from colorama import init as _c_init, Fore, Style

_c_init()

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# Extras that page routes, the store and the access log attach via `extra=`.
CONTEXT_FIELDS = (
    "page_id",
    "fragment_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
)

# Third-party loggers that repeat what the access log already says.
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


class ContextFilter(logging.Filter):
    """Stamp each record with the current request id (None outside requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class RateLimitingFilter(logging.Filter):
    """
    Drop a message once it has been seen more than ``LOG_DUP_MAX`` times
    (default 50) within a one minute window.

    The window table is per instance and bounded: expired windows are pruned
    whenever it grows past ``MAX_TRACKED``, and if every window is still live
    the oldest half is forgotten.
    """

    WINDOW_SECONDS = 60.0
    MAX_TRACKED = 1024

    def __init__(self, name: str = "") -> None:
        super().__init__(name)
        self.max_repeats = int(os.getenv("LOG_DUP_MAX", "50"))
        self._windows: Dict[Tuple[str, str], Tuple[int, float]] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        key = (record.name, record.getMessage())
        count, started = self._windows.get(key, (0, record.created))
        if record.created - started > self.WINDOW_SECONDS:
            count, started = 0, record.created
        self._windows[key] = (count + 1, started)

        if len(self._windows) > self.MAX_TRACKED:
            self._prune(record.created)
        return count + 1 <= self.max_repeats

    def _prune(self, now: float) -> None:
        self._windows = {
            key: window
            for key, window in self._windows.items()
            if now - window[1] <= self.WINDOW_SECONDS
        }
        if len(self._windows) > self.MAX_TRACKED:
            newest = sorted(self._windows.items(), key=lambda item: item[1][1])
            self._windows = dict(newest[-(self.MAX_TRACKED // 2):])


class CustomJsonFormatter(logging.Formatter):
    """One JSON object per line: fixed keys, then whichever context fields are set."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": time.strftime(
                "%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)
            ) + f".{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                entry[field] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ColoredTextFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL [request] logger: message`` with the level colourised."""

    _LEVEL_COLOURS = {
        logging.DEBUG: Fore.CYAN,
        logging.INFO: Fore.GREEN,
        logging.WARNING: Fore.YELLOW + Style.BRIGHT,
        logging.ERROR: Fore.RED + Style.BRIGHT,
        logging.CRITICAL: Fore.MAGENTA + Style.BRIGHT,
    }

    def format(self, record: logging.LogRecord) -> str:
        colour = self._LEVEL_COLOURS.get(record.levelno, "")
        request_id = getattr(record, "request_id", None)
        text = "{ts} {colour}{level:<8}{reset} {rid}{name}: {msg}".format(
            ts=time.strftime("%H:%M:%S", time.localtime(record.created)),
            colour=colour,
            level=record.levelname,
            reset=Style.RESET_ALL,
            rid=f"[{request_id[:8]}] " if request_id else "",
            name=record.name,
            msg=record.getMessage(),
        )
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def init_structured_logging(level: str = "INFO", log_file: str = "") -> None:
    """
    Install the console handler (and the JSON file handler when ``log_file``
    is set) on the root logger, replacing whatever was there.
    """
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()

    ctx_filter = ContextFilter()
    rate_filter = RateLimitingFilter()

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(ColoredTextFormatter())
    console.addFilter(ctx_filter)
    console.addFilter(rate_filter)
    root.addHandler(console)

    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=3
        )
        file_handler.setFormatter(CustomJsonFormatter())
        file_handler.addFilter(ctx_filter)
        file_handler.addFilter(rate_filter)
        root.addHandler(file_handler)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    logging.getLogger(__name__).debug(
        "Logging ready (level=%s, file=%s)", level, log_file or "-"
    )
