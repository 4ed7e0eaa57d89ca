"""Shared state behind a Connection: native handle, policy, live statements.

Statements and Results hold the :class:`DatabaseHandle`, not the
:class:`~sqlite_handles.connection.Connection`, so moving a Connection
with ``transfer()`` leaves every derived object pointing at the same
native handle.
"""

from __future__ import annotations

import logging
import sqlite3
import weakref
from typing import TYPE_CHECKING

from sqlite_handles.errors import SQLITE_MISUSE, Error, ErrorPolicy

if TYPE_CHECKING:
    from sqlite_handles.statement import Statement

logger = logging.getLogger(__name__)


class DatabaseHandle:
    """One open ``sqlite3.Connection`` plus the bookkeeping around it."""

    def __init__(self, conn: sqlite3.Connection, path: str, policy: ErrorPolicy) -> None:
        """Initialize with an already-open engine connection."""
        self._conn: sqlite3.Connection | None = conn
        self.path = path
        self.policy = policy
        self.last_error: Error | None = None
        self._statements: weakref.WeakSet[Statement] = weakref.WeakSet()

    @property
    def is_open(self) -> bool:
        """True until :meth:`close` succeeds."""
        return self._conn is not None

    @property
    def raw(self) -> sqlite3.Connection:
        """The engine connection; raises :class:`Error` once closed."""
        if self._conn is None:
            raise Error.from_code(SQLITE_MISUSE, "database connection is closed")
        return self._conn

    def register(self, statement: Statement) -> None:
        """Track a statement so close() can refuse while it is live."""
        self._statements.add(statement)

    def unregister(self, statement: Statement) -> None:
        """Stop tracking a finalized statement."""
        self._statements.discard(statement)

    def pending_statements(self) -> list[Statement]:
        """Statements created on this handle that are not yet finalized."""
        return [s for s in self._statements if not s.is_finalized]

    def fail(self, error: Error) -> bool:
        """Report ``error`` according to the policy.

        Raises under ``ErrorPolicy.RAISE``. Otherwise records and logs the
        error and returns False so callers can ``return self._handle.fail(...)``.
        """
        self.last_error = error
        if self.policy is ErrorPolicy.RAISE:
            raise error
        logger.warning("sqlite error suppressed: %s", error)
        return False

    def close(self) -> None:
        """Close the engine connection. Callers check pending statements first."""
        if self._conn is None:
            return
        conn, self._conn = self._conn, None
        try:
            conn.close()
        except sqlite3.Error:
            self._conn = conn
            raise
        logger.debug("Closed database %s", self.path)
