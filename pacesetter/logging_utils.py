"""Centralized logging configuration for Pacesetter.

Provides helpers to set up console and rotating file handlers with a
consistent format. Intended to be called from the CLI (cli.py) and early in
GUI startup.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import time
from enum import Enum
from pathlib import Path
from typing import Optional

from .platform_paths import get_user_data_dir


DEFAULT_LOG_FILENAME = "pacesetter.log"


class LogMode(str, Enum):
    """Logging presets that affect verbosity targets."""

    QUIET = "quiet"
    NORMAL = "normal"
    PERF = "perf"


_LOG_MODE: LogMode = LogMode.NORMAL
_BEAT_TRACE_FLAG = "PACESETTER_BEAT_TRACE"
BEAT_TRACE_TAG = "[cadence.beat]"


def get_default_log_dir() -> Path:
    """Return a suitable per-user log directory.

    Uses the per-user data directory; falls back to cwd if it is not writable.
    """
    p = get_user_data_dir()
    try:
        p.mkdir(parents=True, exist_ok=True)
        return p
    except Exception:
        return Path.cwd()


def get_default_log_path() -> Path:
    """Default full path to the log file."""
    return get_default_log_dir() / DEFAULT_LOG_FILENAME


def _parse_log_mode(mode: LogMode | str | None) -> LogMode:
    if mode is None:
        return LogMode.NORMAL
    if isinstance(mode, LogMode):
        return mode
    try:
        return LogMode(mode.lower())
    except Exception:
        return LogMode.NORMAL


def set_log_mode(mode: LogMode | str | None) -> LogMode:
    """Persist the active log mode for other modules to query later."""

    global _LOG_MODE
    _LOG_MODE = _parse_log_mode(mode)
    return _LOG_MODE


def get_log_mode() -> LogMode:
    return _LOG_MODE


def is_perf_logging_enabled() -> bool:
    return _LOG_MODE is LogMode.PERF


def _beat_trace_allowed() -> bool:
    raw = os.environ.get(_BEAT_TRACE_FLAG, "")
    if raw.strip().lower() in {"1", "true", "yes", "on"}:
        return True
    return is_perf_logging_enabled()


class _BeatTraceFilter(logging.Filter):
    """Drops per-beat chatter unless explicitly enabled."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        try:
            message = record.getMessage()
        except Exception:
            return True
        if BEAT_TRACE_TAG in message and not _beat_trace_allowed():
            return False
        return True


_BEAT_TRACE_FILTER = _BeatTraceFilter()


def _ensure_parent(path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
    except Exception:
        pass


def _resolve_level(level: str | int) -> int:
    if isinstance(level, str):
        normalized = level.upper()
        return getattr(logging, normalized, logging.INFO)
    return int(level)


def setup_logging(
    *,
    level: str | int = "INFO",
    log_file: Optional[str | Path] = None,
    json_format: bool = False,
    logger_name: Optional[str] = None,
    log_mode: LogMode | str | None = None,
    add_console: bool = True,
) -> logging.Logger:
    """Configure logging for the application.

    - level: str or int (DEBUG/INFO/WARNING/ERROR)
    - log_file: path for rotating file handler (default: per-user dir)
    - json_format: if True, use a key=value single-line format
    - logger_name: root logger by default; can scope to a sub-logger
    - log_mode: optional preset (quiet/normal/perf) that adjusts verbosity targets
    - add_console: add a console StreamHandler in addition to file handler
    """
    resolved_level = _resolve_level(level)
    mode = set_log_mode(log_mode) if log_mode is not None else get_log_mode()
    if mode is LogMode.PERF and resolved_level > logging.DEBUG:
        resolved_level = logging.DEBUG
    console_level = resolved_level
    if mode is LogMode.QUIET:
        console_level = max(logging.WARNING, resolved_level)

    logger = logging.getLogger(logger_name) if logger_name else logging.getLogger()
    if all(not isinstance(f, _BeatTraceFilter) for f in logger.filters):
        logger.addFilter(_BEAT_TRACE_FILTER)

    # Avoid duplicating handlers if called multiple times
    if not logger.handlers:
        logger.setLevel(resolved_level)

        if json_format:
            fmt = "%(asctime)s %(levelname)s %(name)s %(message)s"
        else:
            fmt = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
        datefmt = "%H:%M:%S"
        formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

        log_path = Path(log_file) if log_file else get_default_log_path()
        _ensure_parent(log_path)
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8"
            )
            file_handler.setLevel(resolved_level)
            file_handler.setFormatter(formatter)
            file_handler.addFilter(_BEAT_TRACE_FILTER)
            logger.addHandler(file_handler)
        except Exception:
            # If file handler fails (e.g., permissions), continue with console only
            pass

        if add_console:
            console = logging.StreamHandler()
            console.setLevel(console_level)
            console.setFormatter(formatter)
            console.addFilter(_BEAT_TRACE_FILTER)
            logger.addHandler(console)
    else:
        # If handlers already exist, just adjust levels
        logger.setLevel(resolved_level)
        for handler in logger.handlers:
            if isinstance(handler, (logging.handlers.RotatingFileHandler, logging.FileHandler)):
                handler.setLevel(resolved_level)
            elif isinstance(handler, logging.StreamHandler):
                handler.setLevel(console_level)
            else:
                handler.setLevel(resolved_level)

    return logger


class BurstSampler:
    """Small helper that coalesces bursts of identical log events.

    Call :meth:`record` for every event. When the configured interval elapses,
    the sampler returns the number of events that occurred within that window
    so callers can emit a single summary line instead of one line per beat.
    """

    def __init__(self, interval_s: float = 2.0) -> None:
        self.interval_s = max(0.1, float(interval_s))
        self._next_flush = time.monotonic() + self.interval_s
        self._count = 0

    def record(self, amount: int = 1) -> Optional[int]:
        """Register *amount* events; return the total if window elapsed."""

        self._count += max(0, amount)
        now = time.monotonic()
        if now >= self._next_flush:
            total = self._count
            self._count = 0
            self._next_flush = now + self.interval_s
            return total
        return None

    def flush(self) -> int:
        """Force-flush and return the accumulated count."""

        total = self._count
        self._count = 0
        self._next_flush = time.monotonic() + self.interval_s
        return total
