"""Row cursor over a statement's execution with typed column extraction."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from sqlite_handles.errors import SQLITE_MISUSE, SQLITE_RANGE, Error
from sqlite_handles.statement import Statement
from sqlite_handles.values import convert_column, resolve_kind

logger = logging.getLogger(__name__)


class Result:
    """Advances a statement row by row and reads typed column values.

    Columns are read either by explicit index or sequentially: each
    ``get(kind)`` without an index reads the next column and the offset
    returns to 0 whenever the cursor moves to another row.

    ``owns_statement`` decides whether :meth:`close` finalizes the wrapped
    statement. A borrowed statement is only reset, leaving its owner free
    to run it again.
    """

    def __init__(self, statement: Statement, *, owns_statement: bool = True) -> None:
        """Wrap ``statement``; ownership must be stated, never inferred."""
        self._statement = statement
        self._owns_statement = owns_statement
        self._column = 0
        self._rows_read = 0
        self._closed = False

    @property
    def statement(self) -> Statement:
        """The wrapped statement."""
        return self._statement

    @property
    def owns_statement(self) -> bool:
        """True when closing this Result finalizes the statement."""
        return self._owns_statement

    @property
    def has_row(self) -> bool:
        """True while a current row is available."""
        return self._statement.row is not None

    def next(self) -> bool:
        """Advance to the next row.

        Returns False at exhaustion; the statement has then been reset and a
        further call starts again from the first row.
        """
        self._column = 0
        try:
            advanced = self._statement.step()
        except Error as error:
            self._rows_read = 0
            return self._statement.handle.fail(error)
        self._rows_read = self._rows_read + 1 if advanced else 0
        return advanced

    def column_count(self) -> int:
        """Count the columns a row of this result exposes (0 for no rows).

        Probes by resetting, stepping once and resetting again, then replays
        the rows already consumed so the caller's position is unchanged.
        Each probe re-runs the command, so use it on queries only.
        """
        rows_read, column = self._rows_read, self._column
        statement = self._statement
        try:
            statement.reset()
            count = len(statement.row) if statement.step() else 0
            statement.reset()
            for _ in range(rows_read):
                if not statement.step():
                    break
        except Error as error:
            self._rows_read = 0
            statement.handle.fail(error)
            return 0
        self._column = column
        return count

    def column_names(self) -> list[str]:
        """Names of the result columns, available after the first advance."""
        return self._statement.column_names

    def row(self) -> tuple[Any, ...]:
        """The current row's raw values."""
        row = self._statement.row
        if row is None:
            raise Error.from_code(SQLITE_MISUSE, "no current row")
        return row

    def get(self, kind: Any, index: int | None = None) -> Any:
        """Read a column of the current row converted to ``kind``.

        ``kind`` is a :class:`~sqlite_handles.values.ColumnType` or one of
        ``Int32``, ``int``, ``Float32``, ``float``, ``str``, ``bytes`` or
        ``Blob``. With ``index=None`` the next sequential column is read.
        NULL and empty TEXT/BLOB cells read as 0, ``""`` or an empty Blob.
        """
        try:
            target = resolve_kind(kind)
            row = self.row()
            position = self._column if index is None else index
            if not 0 <= position < len(row):
                raise Error.from_code(SQLITE_RANGE, f"no column at index {position}")
            value = convert_column(row[position], target)
        except Error as error:
            self._statement.handle.fail(error)
            return None
        if index is None:
            self._column += 1
        return value

    def __iter__(self) -> Iterator[tuple[Any, ...]]:
        while self.next():
            yield self.row()

    # -- lifecycle --

    def close(self) -> None:
        """Release the statement if owned, otherwise just reset it."""
        if self._closed:
            return
        self._closed = True
        if self._owns_statement:
            self._statement.finalize()
        else:
            self._statement.reset()

    def __enter__(self) -> Result:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def __del__(self) -> None:
        # A borrowed statement belongs to someone else; leave it untouched.
        if getattr(self, "_owns_statement", False):
            try:
                self._statement.finalize()
            except Exception:
                logger.debug("Error finalizing result during teardown", exc_info=True)

    def __repr__(self) -> str:
        ownership = "owned" if self._owns_statement else "borrowed"
        return f"Result({self._statement.command!r}, {ownership})"
