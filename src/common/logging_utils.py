"""Logging helpers shared across modules.

Provides one-shot configuration for the CLI plus the small helpers used to
emit structured DEBUG traces:

- ``extra_context`` builds the ``extra=`` mapping for a log call
- ``is_debug_enabled`` guards expensive trace construction
- ``Timer`` measures durations for request/phase logs
- ``safe_url`` strips credentials and query strings from logged URLs
"""
from __future__ import annotations

import logging
import sys
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

# LogRecord attributes that must not be overwritten through ``extra``.
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}

_CONTEXT_KEYS = (
    "event",
    "component",
    "action",
    "outcome",
    "target",
    "package_id",
    "package_version",
    "count",
    "status_code",
    "attempt",
    "duration_ms",
)


class ContextFormatter(logging.Formatter):
    """Formatter that appends structured context fields at DEBUG level."""

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if record.levelno > logging.DEBUG:
            return base
        fields = [
            f"{key}={getattr(record, key)}"
            for key in _CONTEXT_KEYS
            if getattr(record, key, None) is not None
        ]
        if not fields:
            return base
        return f"{base} [{' '.join(fields)}]"


def configure_logging(
    level: str = "INFO",
    logfile: Optional[str] = None,
    quiet: bool = False,
) -> None:
    """Configure the root logger once for CLI use.

    Args:
        level: Log level name (DEBUG, INFO, ...)
        logfile: Optional file to log into instead of stderr
        quiet: Suppress console output entirely (file logging still applies)
    """
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handlers = []
    if logfile:
        handlers.append(logging.FileHandler(logfile, encoding="utf-8"))
    elif not quiet:
        handlers.append(logging.StreamHandler(sys.stderr))
    else:
        handlers.append(logging.NullHandler())

    formatter = ContextFormatter(Constants.LOG_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    # urllib3 is chatty at DEBUG and would drown out our own traces
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def extra_context(**kwargs: Any) -> Dict[str, Any]:
    """Build an ``extra=`` mapping, dropping None values and reserved names."""
    ctx: Dict[str, Any] = {}
    for key, value in kwargs.items():
        if value is None:
            continue
        if key in _RESERVED_ATTRS:
            key = f"ctx_{key}"
        ctx[key] = value
    return ctx


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when the logger would emit DEBUG records."""
    return logger.isEnabledFor(logging.DEBUG)


def safe_url(url: str) -> str:
    """Return a URL safe for logs: no userinfo, no query, no fragment."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return "<invalid-url>"
    netloc = parts.hostname or ""
    if parts.port:
        netloc = f"{netloc}:{parts.port}"
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class Timer:
    """Context manager measuring elapsed wall time."""

    def __init__(self) -> None:
        self._start: float = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        self._end = None
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._end = time.perf_counter()

    def duration_ms(self) -> int:
        """Elapsed milliseconds so far (or total once the block exited)."""
        end = self._end if self._end is not None else time.perf_counter()
        return int((end - self._start) * 1000)
