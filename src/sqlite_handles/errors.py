"""Uniform error type and SQLite status-code tables.

Every failure in this package surfaces as :class:`Error`. The message is
built the way the engine's C API reports problems: the generic text for the
status code (``sqlite3_errstr``) joined with the connection's detailed
message (``sqlite3_errmsg``), e.g. ``SQL logic error: no such table: t``.
"""

from __future__ import annotations

import sqlite3
from enum import StrEnum

SQLITE_OK = 0
SQLITE_ERROR = 1
SQLITE_INTERNAL = 2
SQLITE_PERM = 3
SQLITE_ABORT = 4
SQLITE_BUSY = 5
SQLITE_LOCKED = 6
SQLITE_NOMEM = 7
SQLITE_READONLY = 8
SQLITE_INTERRUPT = 9
SQLITE_IOERR = 10
SQLITE_CORRUPT = 11
SQLITE_NOTFOUND = 12
SQLITE_FULL = 13
SQLITE_CANTOPEN = 14
SQLITE_PROTOCOL = 15
SQLITE_EMPTY = 16
SQLITE_SCHEMA = 17
SQLITE_TOOBIG = 18
SQLITE_CONSTRAINT = 19
SQLITE_MISMATCH = 20
SQLITE_MISUSE = 21
SQLITE_NOLFS = 22
SQLITE_AUTH = 23
SQLITE_FORMAT = 24
SQLITE_RANGE = 25
SQLITE_NOTADB = 26
SQLITE_NOTICE = 27
SQLITE_WARNING = 28
SQLITE_ROW = 100
SQLITE_DONE = 101

_NAMES = {
    value: name
    for name, value in list(globals().items())
    if name.startswith("SQLITE_") and isinstance(value, int)
}

# Mirrors sqlite3ErrStr(); codes without a message fall back to "unknown error".
_ERRSTR = {
    SQLITE_OK: "not an error",
    SQLITE_ERROR: "SQL logic error",
    SQLITE_PERM: "access permission denied",
    SQLITE_ABORT: "query aborted",
    SQLITE_BUSY: "database is locked",
    SQLITE_LOCKED: "database table is locked",
    SQLITE_NOMEM: "out of memory",
    SQLITE_READONLY: "attempt to write a readonly database",
    SQLITE_INTERRUPT: "interrupted",
    SQLITE_IOERR: "disk I/O error",
    SQLITE_CORRUPT: "database disk image is malformed",
    SQLITE_NOTFOUND: "unknown operation",
    SQLITE_FULL: "database or disk is full",
    SQLITE_CANTOPEN: "unable to open database file",
    SQLITE_PROTOCOL: "locking protocol",
    SQLITE_SCHEMA: "database schema has changed",
    SQLITE_TOOBIG: "string or blob too big",
    SQLITE_CONSTRAINT: "constraint failed",
    SQLITE_MISMATCH: "datatype mismatch",
    SQLITE_MISUSE: "bad parameter or other API misuse",
    SQLITE_AUTH: "authorization denied",
    SQLITE_RANGE: "column index out of range",
    SQLITE_NOTADB: "file is not a database",
    SQLITE_NOTICE: "notification message",
    SQLITE_WARNING: "warning message",
    SQLITE_ROW: "another row available",
    SQLITE_DONE: "no more rows available",
}


class ErrorPolicy(StrEnum):
    """How fallible operations report failure."""

    RAISE = "raise"
    RETURN = "return"


def errstr(code: int) -> str:
    """Return the engine's generic English text for a result code."""
    return _ERRSTR.get(code & 0xFF, "unknown error")


def status_name(code: int) -> str:
    """Return the symbolic name of a primary result code, e.g. ``SQLITE_BUSY``."""
    return _NAMES.get(code & 0xFF, f"SQLITE_UNKNOWN({code})")


class Error(Exception):
    """The single error kind raised by this package."""

    def __init__(
        self,
        message: str,
        code: int | None = None,
        name: str | None = None,
        *,
        extended_code: int | None = None,
        extended_name: str | None = None,
    ) -> None:
        """Initialize with a message and an optional engine status code."""
        super().__init__(message)
        self.message = message
        self.code = code
        self.extended_code = extended_code if extended_code is not None else code
        if name is None and code is not None:
            name = status_name(code)
        self.name = name
        self.extended_name = extended_name or name

    @classmethod
    def from_code(cls, code: int, detail: str | None = None) -> Error:
        """Build an error for ``code`` the way ``CheckError`` reports it."""
        message = errstr(code)
        if detail:
            message = f"{message}: {detail}"
        return cls(message, code & 0xFF, extended_code=code)

    def __str__(self) -> str:
        if self.name:
            return f"{self.message} ({self.name})"
        return self.message

    def __repr__(self) -> str:
        return f"Error({self.message!r}, code={self.code!r}, name={self.name!r})"


def from_sqlite_error(exc: sqlite3.Error | sqlite3.Warning) -> Error:
    """Convert an exception from the ``sqlite3`` module into :class:`Error`.

    Engine-originated exceptions carry ``sqlite_errorcode``; errors raised by
    the module itself (closed database, wrong statement count, ...) do not
    and are reported as API misuse.
    """
    detail = str(exc)
    extended = getattr(exc, "sqlite_errorcode", None)
    if extended is None:
        return Error.from_code(SQLITE_MISUSE, detail)
    error = Error.from_code(extended, detail)
    engine_name = getattr(exc, "sqlite_errorname", None)
    if engine_name:
        error.extended_name = engine_name
    return error
