"""Prepared statements with positional parameter binding."""

from __future__ import annotations

import logging
import re
import sqlite3
from typing import TYPE_CHECKING, Any

from sqlite_handles.errors import SQLITE_MISUSE, SQLITE_RANGE, Error, from_sqlite_error
from sqlite_handles.handle import DatabaseHandle
from sqlite_handles.values import to_parameter

if TYPE_CHECKING:
    from sqlite_handles.connection import Connection

logger = logging.getLogger(__name__)

_EXPLAIN_RE = re.compile(r"(?:\s|--[^\n]*|/\*.*?\*/)*EXPLAIN\b", re.IGNORECASE | re.DOTALL)
_TRAILING_RE = re.compile(r"[\s;]+$")
# Raised by the sqlite3 module after a successful prepare when too few values are bound.
_BINDING_COUNT_RE = re.compile(r"statement uses (\d+), and there (?:are|is) \d+ supplied")


class Statement:
    """A compiled command tied to one database handle.

    The command is compiled when the Statement is created, so syntax errors
    and unknown tables surface here rather than on the first step. Bound
    values are kept per 1-based position and survive :meth:`reset`, as they
    do for ``sqlite3_stmt``. Positions never bound are NULL.

    The owning connection must stay open while the Statement is in use;
    afterwards every call fails with ``SQLITE_MISUSE``.
    """

    def __init__(self, connection: Connection | DatabaseHandle, command: str) -> None:
        """Compile ``command`` against ``connection``. Raises :class:`Error` on failure."""
        self._finalized = True
        self._cursor: sqlite3.Cursor | None = None
        self._row: tuple[Any, ...] | None = None
        self._description: tuple[tuple[Any, ...], ...] | None = None
        self._bindings: dict[int, Any] = {}
        self._rows_stepped = 0
        self._pending_error: sqlite3.Error | sqlite3.Warning | None = None

        if isinstance(connection, DatabaseHandle):
            self._handle = connection
        else:
            self._handle = connection.handle
        if not isinstance(command, str):
            raise Error.from_code(SQLITE_MISUSE, "command must be a str")
        self.command = command
        self.parameter_count = self._compile()

        self._finalized = False
        self._handle.register(self)

    def _compile(self) -> int | None:
        """Prepare the command without running it and return its parameter count."""
        probe = self.command if _EXPLAIN_RE.match(self.command) else f"EXPLAIN {self.command}"
        cursor = self._handle.raw.cursor()
        try:
            cursor.execute(probe)
        except sqlite3.ProgrammingError as exc:
            match = _BINDING_COUNT_RE.search(str(exc))
            if match is None:
                raise from_sqlite_error(exc) from exc
            return int(match.group(1))
        except (sqlite3.Error, sqlite3.Warning) as exc:
            raise from_sqlite_error(exc) from exc
        finally:
            cursor.close()
        return 0

    # -- state --

    @property
    def handle(self) -> DatabaseHandle:
        """The database handle this statement was compiled on."""
        return self._handle

    @property
    def is_finalized(self) -> bool:
        """True once the compiled form has been released."""
        return self._finalized

    @property
    def is_active(self) -> bool:
        """True while execution is in progress (between first step and completion)."""
        return self._cursor is not None

    @property
    def row(self) -> tuple[Any, ...] | None:
        """The current result row, or None when no row is available."""
        return self._row

    @property
    def column_names(self) -> list[str]:
        """Column names of the last execution; empty before the first step."""
        if not self._description:
            return []
        return [col[0] for col in self._description]

    def _check_usable(self) -> sqlite3.Connection:
        if self._finalized:
            raise Error.from_code(SQLITE_MISUSE, "statement has been finalized")
        return self._handle.raw

    # -- binding --

    def bind(self, position: int, value: Any) -> bool:
        """Bind ``value`` to the 1-based parameter ``position``.

        Accepts Int32, int, Float32, float, str, Blob, NOBlob, bytes-like
        objects, bool and None. Anything else fails with ``SQLITE_MISMATCH``.
        """
        try:
            self._bind(position, value)
        except Error as error:
            return self._handle.fail(error)
        return True

    def _bind(self, position: int, value: Any) -> None:
        self._check_usable()
        if self._cursor is not None:
            raise Error.from_code(SQLITE_MISUSE, "cannot bind while the statement is executing")
        if position < 1 or (self.parameter_count is not None and position > self.parameter_count):
            raise Error.from_code(SQLITE_RANGE, f"no parameter at position {position}")
        self._bindings[position] = to_parameter(value)

    def bind_all(self, *values: Any) -> bool:
        """Reset, clear every binding, then bind ``values`` from position 1."""
        try:
            self._check_usable()
            self.reset()
            self._bindings.clear()
            for position, value in enumerate(values, start=1):
                self._bind(position, value)
        except Error as error:
            return self._handle.fail(error)
        return True

    def clear_bindings(self) -> None:
        """Set every parameter back to NULL."""
        self._bindings.clear()

    def _parameters(self) -> list[Any]:
        count = self.parameter_count
        if count is None:
            count = max(self._bindings, default=0)
        return [self._bindings.get(position) for position in range(1, count + 1)]

    # -- execution --

    def evaluate(self) -> bool:
        """Run one step.

        Returns True when a row is available and False when execution has
        completed. Completion resets the statement, so the next call runs it
        again from the start.
        """
        try:
            return self.step()
        except Error as error:
            return self._handle.fail(error)

    def step(self) -> bool:
        """Run one step like :meth:`evaluate`, but always raise :class:`Error` on failure.

        A row followed by a failing step is still returned; the failure is
        raised by the next call.
        """
        raw = self._check_usable()
        if self._pending_error is not None:
            exc = self._pending_error
            self.reset()
            raise from_sqlite_error(exc) from exc
        try:
            if self._cursor is None:
                cursor = raw.cursor()
                self._cursor = cursor
                cursor.execute(self.command, self._parameters())
                self._description = cursor.description
        except (sqlite3.Error, sqlite3.Warning) as exc:
            self.reset()
            raise from_sqlite_error(exc) from exc
        try:
            row = self._cursor.fetchone()
        except (sqlite3.Error, sqlite3.Warning) as exc:
            row = self._recover_row(raw, exc)
            if row is None:
                self.reset()
                raise from_sqlite_error(exc) from exc
            # The step after this row failed; report it on the next call.
            self._pending_error = exc
        if row is None:
            self.reset()
            return False
        self._rows_stepped += 1
        self._row = tuple(row)
        return True

    def _recover_row(
        self, raw: sqlite3.Connection, exc: sqlite3.Error | sqlite3.Warning
    ) -> Any:
        """Re-read the row the cursor fetched before its read-ahead step failed.

        ``fetchone()`` builds the current row and then steps to the next one,
        discarding the row when that step fails. Running the command again
        limited to that one row returns it without reaching the failing row.
        Commands that cannot be wrapped in a subquery yield None.
        """
        if getattr(exc, "sqlite_errorcode", None) is None:
            return None
        command = _TRAILING_RE.sub("", self.command)
        sql = f"SELECT * FROM ({command}\n) LIMIT 1 OFFSET {self._rows_stepped}"
        cursor = raw.cursor()
        try:
            return cursor.execute(sql, self._parameters()).fetchone()
        except (sqlite3.Error, sqlite3.Warning):
            logger.debug("Could not re-read row %d of %r", self._rows_stepped + 1, self.command)
            return None
        finally:
            cursor.close()

    def execute(self) -> bool:
        """Step until completion, discarding any rows."""
        try:
            while self.step():
                pass
        except Error as error:
            return self._handle.fail(error)
        return True

    def reset(self) -> None:
        """Discard the cursor position; bindings and the compiled form remain."""
        cursor, self._cursor = self._cursor, None
        self._row = None
        self._rows_stepped = 0
        self._pending_error = None
        if cursor is None:
            return
        try:
            cursor.close()
        except sqlite3.ProgrammingError:
            # Connection already closed; the engine reset the statement itself.
            logger.debug("Cursor for %r outlived its connection", self.command)

    def finalize(self) -> None:
        """Release the compiled form. Safe to call more than once."""
        if self._finalized:
            return
        self.reset()
        self._bindings.clear()
        self._finalized = True
        self._handle.unregister(self)
        logger.debug("Finalized statement %r", self.command)

    # -- lifecycle --

    def __enter__(self) -> Statement:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.finalize()

    def __del__(self) -> None:
        try:
            self.finalize()
        except Exception:
            logger.debug("Error finalizing statement during teardown", exc_info=True)

    def __copy__(self) -> Statement:
        raise TypeError("Statement objects cannot be copied")

    def __deepcopy__(self, memo: dict[int, Any]) -> Statement:
        raise TypeError("Statement objects cannot be copied")

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "active" if self.is_active else "ready"
        return f"Statement({self.command!r}, {state})"
