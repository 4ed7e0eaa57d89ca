"""Database connections: open/close lifecycle, backup, one-shot helpers."""

from __future__ import annotations

import logging
import os
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlite_handles.errors import (
    SQLITE_BUSY,
    SQLITE_MISUSE,
    Error,
    ErrorPolicy,
    from_sqlite_error,
)
from sqlite_handles.handle import DatabaseHandle
from sqlite_handles.models.options import ConnectionOptions
from sqlite_handles.result import Result
from sqlite_handles.statement import Statement

logger = logging.getLogger(__name__)

PathLike = str | os.PathLike[str]


def _fspath(path: Any) -> str:
    """Return ``path`` as a str, or raise :class:`Error` for non-path values."""
    try:
        target = os.fspath(path)
    except TypeError:
        raise Error.from_code(SQLITE_MISUSE, f"invalid database path {path!r}") from None
    if isinstance(target, bytes):
        target = os.fsdecode(target)
    if not target:
        raise Error.from_code(SQLITE_MISUSE, "empty database path")
    return target


class Connection:
    """Exclusive owner of one open database handle.

    A Connection cannot be copied. :meth:`transfer` moves the handle into a
    new Connection and leaves this one empty. The handle is closed by
    :meth:`close`, on ``with`` exit, or when the Connection is garbage
    collected. Teardown never raises.

    Every Statement and Result created from a Connection must be finished
    before the Connection closes; ``close()`` refuses with ``SQLITE_BUSY``
    while any are still live.

    Writes are autocommitted unless they run inside :meth:`transaction`.
    """

    def __init__(
        self,
        path: PathLike | None = None,
        options: ConnectionOptions | None = None,
    ) -> None:
        """Create a Connection, opening ``path`` immediately when given."""
        self.options = options or ConnectionOptions()
        self._handle: DatabaseHandle | None = None
        self._last_error: Error | None = None
        if path is not None:
            self.open(path)

    # -- state --

    @property
    def is_open(self) -> bool:
        """True while a handle is held."""
        return self._handle is not None and self._handle.is_open

    @property
    def path(self) -> str | None:
        """Path of the open database, or None."""
        return self._handle.path if self._handle is not None else None

    @property
    def handle(self) -> DatabaseHandle:
        """The open handle; raises :class:`Error` when nothing is open."""
        if self._handle is None:
            raise Error.from_code(SQLITE_MISUSE, "no open database")
        return self._handle

    @property
    def raw(self) -> sqlite3.Connection:
        """The underlying ``sqlite3.Connection`` (PRAGMAs, extension loading)."""
        return self.handle.raw

    @property
    def last_error(self) -> Error | None:
        """The most recent failure reported through this connection."""
        if self._handle is not None and self._handle.last_error is not None:
            return self._handle.last_error
        return self._last_error

    def _fail(self, error: Error) -> bool:
        if self._handle is not None:
            return self._handle.fail(error)
        self._last_error = error
        if self.options.error_policy is ErrorPolicy.RAISE:
            raise error
        logger.warning("sqlite error suppressed: %s", error)
        return False

    # -- lifecycle --

    def open(self, path: PathLike) -> bool:
        """Open or create the database at ``path`` (``":memory:"`` for in-memory).

        A handle that is already open is closed first.
        """
        if self._handle is not None and not self.close():
            return False
        try:
            target = _fspath(path)
        except Error as error:
            return self._fail(error)

        try:
            conn = sqlite3.connect(
                target,
                timeout=self.options.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            return self._fail(from_sqlite_error(exc))

        try:
            if self.options.foreign_keys:
                conn.execute("PRAGMA foreign_keys=ON")
            if self.options.journal_mode:
                conn.execute(f"PRAGMA journal_mode={self.options.journal_mode}")
        except sqlite3.Error as exc:
            conn.close()
            return self._fail(from_sqlite_error(exc))

        self._handle = DatabaseHandle(conn, target, self.options.error_policy)
        logger.debug("Opened database %s", target)
        return True

    def close(self, force: bool = False) -> bool:
        """Release the handle. Harmless when nothing is open.

        Fails with ``SQLITE_BUSY`` while statements are still live, unless
        ``force`` is set, in which case they are finalized first.
        """
        handle = self._handle
        if handle is None:
            return True
        pending = handle.pending_statements()
        if pending:
            if not force:
                return self._fail(
                    Error.from_code(
                        SQLITE_BUSY,
                        "unable to close due to unfinalized statements or unfinished backups",
                    )
                )
            logger.debug("Finalizing %d pending statement(s) on close", len(pending))
            for statement in pending:
                statement.finalize()
        try:
            handle.close()
        except sqlite3.Error as exc:
            return self._fail(from_sqlite_error(exc))
        self._last_error = handle.last_error or self._last_error
        self._handle = None
        return True

    def transfer(self) -> Connection:
        """Move the handle into a new Connection, leaving this one empty."""
        moved = type(self)(options=self.options)
        moved._handle, self._handle = self._handle, None
        moved._last_error = self._last_error
        return moved

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close(force=True)

    def __del__(self) -> None:
        if getattr(self, "_handle", None) is None:
            return
        try:
            self.close(force=True)
        except Exception:
            logger.debug("Error closing connection during teardown", exc_info=True)

    def __copy__(self) -> Connection:
        raise TypeError("Connection objects cannot be copied; use transfer()")

    def __deepcopy__(self, memo: dict[int, Any]) -> Connection:
        raise TypeError("Connection objects cannot be copied; use transfer()")

    def __reduce__(self) -> Any:
        raise TypeError("Connection objects cannot be pickled")

    def __repr__(self) -> str:
        return f"Connection({self.path!r})"

    # -- commands --

    def prepare(self, command: str) -> Statement | None:
        """Compile ``command`` into a Statement owned by the caller."""
        try:
            return Statement(self.handle, command)
        except Error as error:
            self._fail(error)
            return None

    def statement(self, command: str, *args: Any) -> bool:
        """Prepare, bind ``args`` from position 1 and run to completion.

        Any result rows are discarded. The compiled form is always released.
        """
        try:
            statement = Statement(self.handle, command)
        except Error as error:
            return self._fail(error)
        with statement:
            return statement.bind_all(*args) and statement.execute()

    def query(self, command: str, *args: Any) -> Result | None:
        """Prepare and bind ``command``, returning a Result that owns it.

        No row is fetched until ``Result.next()``.
        """
        statement = self.prepare(command)
        if statement is None:
            return None
        try:
            bound = statement.bind_all(*args)
        except Error:
            statement.finalize()
            raise
        if not bound:
            statement.finalize()
            return None
        return Result(statement, owns_statement=True)

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Run the block in a transaction: COMMIT on success, ROLLBACK on error.

        Always raises on failure, whatever the error policy.
        """
        raw = self.raw
        try:
            raw.execute("BEGIN")
        except sqlite3.Error as exc:
            raise from_sqlite_error(exc) from exc
        try:
            yield self
        except Exception:
            try:
                raw.execute("ROLLBACK")
            except sqlite3.Error:
                logger.warning("ROLLBACK failed", exc_info=True)
            raise
        try:
            raw.execute("COMMIT")
        except sqlite3.Error as exc:
            raise from_sqlite_error(exc) from exc

    def last_insert_rowid(self) -> int | None:
        """Rowid of the most recent successful INSERT on this connection."""
        return self._scalar("SELECT last_insert_rowid()")

    def changes(self) -> int | None:
        """Rows modified by the most recently completed INSERT, UPDATE or DELETE."""
        return self._scalar("SELECT changes()")

    def _scalar(self, sql: str) -> Any:
        try:
            row = self.raw.execute(sql).fetchone()
        except Error as error:
            self._fail(error)
            return None
        except sqlite3.Error as exc:
            self._fail(from_sqlite_error(exc))
            return None
        return row[0]

    # -- backup --

    def backup(self, target: PathLike | Connection) -> bool:
        """Copy this whole database into ``target`` in one blocking call.

        ``target`` is a file path (created or overwritten) or another open
        Connection.
        """
        try:
            source = self.raw
            if isinstance(target, Connection):
                dest, owns_dest = target.raw, False
            else:
                dest, owns_dest = sqlite3.connect(_fspath(target), isolation_level=None), True
        except Error as error:
            return self._fail(error)
        except sqlite3.Error as exc:
            return self._fail(from_sqlite_error(exc))
        try:
            return self._backup_into(source, dest)
        finally:
            if owns_dest:
                dest.close()

    def _backup_into(self, source: sqlite3.Connection, dest: sqlite3.Connection) -> bool:
        try:
            source.backup(dest)
        except sqlite3.Error as exc:
            return self._fail(from_sqlite_error(exc))
        except ValueError as exc:
            return self._fail(Error.from_code(SQLITE_MISUSE, str(exc)))
        logger.debug("Backed up %s", self.path)
        return True
