"""Environment-variable-based configuration."""

import logging
import os
import sys

from sqlite_handles.errors import ErrorPolicy


def get_error_policy() -> ErrorPolicy:
    """Return the error propagation policy from SQLITE_HANDLES_ERROR_POLICY."""
    raw = os.environ.get("SQLITE_HANDLES_ERROR_POLICY", "raise").strip().lower()
    return ErrorPolicy(raw)


def get_busy_timeout() -> float:
    """Return the busy timeout in seconds from SQLITE_HANDLES_BUSY_TIMEOUT."""
    return float(os.environ.get("SQLITE_HANDLES_BUSY_TIMEOUT", "5.0"))


def get_journal_mode() -> str | None:
    """Return the journal mode from SQLITE_HANDLES_JOURNAL_MODE, or None to keep the default."""
    raw = os.environ.get("SQLITE_HANDLES_JOURNAL_MODE", "").strip()
    return raw.upper() or None


def get_log_level() -> str:
    """Return the logging level from SQLITE_HANDLES_LOG_LEVEL."""
    return os.environ.get("SQLITE_HANDLES_LOG_LEVEL", "WARNING")


def configure_logging() -> None:
    """Send library logs to stderr at the configured level."""
    logging.basicConfig(
        level=getattr(logging, get_log_level().upper()),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
