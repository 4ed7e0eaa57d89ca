"""Tests for connection lifecycle, one-shot helpers and backup."""

import copy
import logging
import math
import pickle

import pytest

from sqlite_handles import Connection, ConnectionOptions, Error, ErrorPolicy, Statement
from sqlite_handles.errors import SQLITE_BUSY, SQLITE_CANTOPEN, SQLITE_ERROR, SQLITE_MISUSE


class TestOpenClose:
    def test_open_creates_file(self, db_path):
        conn = Connection(db_path)
        try:
            assert conn.is_open
            assert conn.path == str(db_path)
            conn.statement("CREATE TABLE t (a)")
        finally:
            conn.close()
        assert db_path.exists()

    def test_empty_connection(self):
        conn = Connection()
        assert not conn.is_open
        assert conn.path is None
        assert conn.close() is True

    def test_open_unreachable_path(self, tmp_path):
        with pytest.raises(Error) as excinfo:
            Connection(tmp_path / "missing" / "dir" / "x.db")
        assert excinfo.value.code == SQLITE_CANTOPEN
        assert "unable to open database file" in str(excinfo.value)

    def test_open_invalid_path_type(self):
        conn = Connection()
        with pytest.raises(Error) as excinfo:
            conn.open(42)
        assert excinfo.value.code == SQLITE_MISUSE

    def test_close_is_idempotent(self, conn):
        assert conn.close()
        assert conn.close()
        assert not conn.is_open

    def test_reopen_after_close(self, db_path):
        conn = Connection(db_path)
        conn.statement("CREATE TABLE t (a)")
        conn.statement("INSERT INTO t VALUES (?)", "kept")
        conn.close()
        assert conn.open(db_path)
        with conn.query("SELECT a FROM t") as result:
            assert result.next()
            assert result.get(str) == "kept"
        conn.close()

    def test_open_replaces_previous_handle(self, db_path, tmp_path):
        conn = Connection(db_path)
        other = tmp_path / "other.db"
        assert conn.open(other)
        assert conn.path == str(other)
        conn.close()

    def test_close_with_live_statement_is_busy(self, conn):
        stmt = Statement(conn, "SELECT 1")
        with pytest.raises(Error) as excinfo:
            conn.close()
        assert excinfo.value.code == SQLITE_BUSY
        assert conn.is_open
        stmt.finalize()
        assert conn.close()

    def test_forced_close_finalizes_statements(self, conn):
        stmt = Statement(conn, "SELECT 1")
        assert conn.close(force=True)
        assert stmt.is_finalized

    def test_collected_statements_do_not_block_close(self, conn):
        Statement(conn, "SELECT 1")
        assert conn.close()

    def test_context_manager_closes(self, db_path):
        with Connection(db_path) as conn:
            result = conn.query("SELECT 1")
            assert result.next()
        assert not conn.is_open
        assert result.statement.is_finalized

    def test_teardown_never_raises(self, caplog):
        conn = Connection(":memory:")
        stmt = Statement(conn, "SELECT 1")
        with caplog.at_level(logging.DEBUG, logger="sqlite_handles"):
            del conn
        assert stmt.is_finalized


class TestOwnership:
    def test_cannot_copy(self, conn):
        with pytest.raises(TypeError):
            copy.copy(conn)
        with pytest.raises(TypeError):
            copy.deepcopy(conn)
        with pytest.raises(TypeError):
            pickle.dumps(conn)

    def test_transfer_moves_handle(self, conn):
        conn.statement("CREATE TABLE t (a)")
        moved = conn.transfer()
        assert not conn.is_open
        assert moved.is_open
        assert moved.statement("INSERT INTO t VALUES (1)")
        with pytest.raises(Error):
            conn.statement("SELECT 1")
        moved.close()

    def test_statements_follow_transferred_handle(self, conn):
        stmt = Statement(conn, "SELECT 7")
        moved = conn.transfer()
        assert stmt.evaluate()
        assert stmt.row == (7,)
        stmt.finalize()
        moved.close()


class TestHelpers:
    def test_statement_and_query(self, example_table):
        conn = example_table
        assert conn.statement(
            "INSERT INTO example (textData, intData, floatData) VALUES (?,?,?)",
            "Hello world",
            1234,
            5.6789,
        )
        with conn.query("SELECT textData, intData, floatData FROM example") as result:
            rows = []
            while result.next():
                rows.append((result.get(str), result.get(int), result.get(float)))
        assert len(rows) == 1
        text, number, real = rows[0]
        assert text == "Hello world"
        assert number == 1234
        assert math.isclose(real, 5.6789)

    def test_statement_discards_rows(self, conn):
        assert conn.statement("SELECT 1 UNION ALL SELECT 2")

    def test_statement_finalizes_even_on_error(self, conn):
        conn.statement("CREATE TABLE u (id INTEGER PRIMARY KEY)")
        conn.statement("INSERT INTO u VALUES (1)")
        with pytest.raises(Error):
            conn.statement("INSERT INTO u VALUES (?)", 1)
        assert conn.handle.pending_statements() == []

    def test_invalid_query(self, example_table):
        with pytest.raises(Error) as excinfo:
            example_table.query("SELECCT textData FROM example")
        assert excinfo.value.code == SQLITE_ERROR
        assert "SQLITE_ERROR" in str(excinfo.value)
        assert 'near "SELECCT": syntax error' in excinfo.value.message

    def test_prepare_returns_statement(self, conn):
        stmt = conn.prepare("SELECT ?")
        assert stmt.parameter_count == 1
        stmt.finalize()

    def test_query_bind_failure_releases_statement(self, conn):
        with pytest.raises(Error):
            conn.query("SELECT ?", object())
        assert conn.handle.pending_statements() == []

    def test_last_insert_rowid_and_changes(self, example_table):
        example_table.statement("INSERT INTO example (intData) VALUES (1)")
        example_table.statement("INSERT INTO example (intData) VALUES (2)")
        assert example_table.last_insert_rowid() == 2
        example_table.statement("UPDATE example SET intData = 0")
        assert example_table.changes() == 2

    def test_autocommit_visible_to_second_connection(self, db_path):
        with Connection(db_path) as writer, Connection(db_path) as reader:
            writer.statement("CREATE TABLE t (a)")
            writer.statement("INSERT INTO t VALUES (1)")
            with reader.query("SELECT count(*) FROM t") as result:
                assert result.next()
                assert result.get(int) == 1


class TestTransaction:
    def test_commit(self, conn):
        conn.statement("CREATE TABLE t (a)")
        with conn.transaction():
            conn.statement("INSERT INTO t VALUES (1)")
        with conn.query("SELECT count(*) FROM t") as result:
            result.next()
            assert result.get(int) == 1

    def test_rollback_on_error(self, conn):
        conn.statement("CREATE TABLE t (a)")
        with pytest.raises(RuntimeError):
            with conn.transaction():
                conn.statement("INSERT INTO t VALUES (1)")
                raise RuntimeError("boom")
        with conn.query("SELECT count(*) FROM t") as result:
            result.next()
            assert result.get(int) == 0


class TestBackup:
    def test_backup_to_path(self, example_table, tmp_path):
        example_table.statement(
            "INSERT INTO example (textData, intData, floatData) VALUES (?,?,?)",
            "Hello world",
            1234,
            5.6789,
        )
        target = tmp_path / "backup.db"
        assert example_table.backup(target)

        with Connection(target) as copy_conn:
            with copy_conn.query("SELECT textData, intData, floatData FROM example") as result:
                assert result.next()
                assert result.get(str) == "Hello world"
                assert result.get(int) == 1234
                assert math.isclose(result.get(float), 5.6789)
                assert result.next() is False

    def test_backup_to_connection(self, example_table):
        example_table.statement("INSERT INTO example (intData) VALUES (7)")
        with Connection(":memory:") as target:
            assert example_table.backup(target)
            with target.query("SELECT intData FROM example") as result:
                assert result.next()
                assert result.get(int) == 7

    def test_backup_into_itself_fails(self, conn):
        with pytest.raises(Error) as excinfo:
            conn.backup(conn)
        assert excinfo.value.code == SQLITE_MISUSE

    def test_backup_to_unreachable_path(self, conn, tmp_path):
        with pytest.raises(Error) as excinfo:
            conn.backup(tmp_path / "missing" / "backup.db")
        assert excinfo.value.code == SQLITE_CANTOPEN

    def test_backup_without_open_database(self, tmp_path):
        with pytest.raises(Error) as excinfo:
            Connection().backup(tmp_path / "backup.db")
        assert excinfo.value.code == SQLITE_MISUSE


class TestReturnPolicy:
    def test_open_failure_returns_false(self, tmp_path):
        conn = Connection(options=ConnectionOptions(error_policy=ErrorPolicy.RETURN))
        assert conn.open(tmp_path / "missing" / "x.db") is False
        assert conn.last_error.code == SQLITE_CANTOPEN

    def test_statement_returns_false(self, quiet_conn):
        assert quiet_conn.statement("SELECCT 1") is False
        assert quiet_conn.last_error.code == SQLITE_ERROR

    def test_query_and_prepare_return_none(self, quiet_conn):
        assert quiet_conn.query("SELECCT 1") is None
        assert quiet_conn.prepare("SELECCT 1") is None
        assert quiet_conn.query("SELECT ?", object()) is None

    def test_close_busy_returns_false(self, quiet_conn):
        stmt = Statement(quiet_conn, "SELECT 1")
        assert quiet_conn.close() is False
        assert quiet_conn.last_error.code == SQLITE_BUSY
        stmt.finalize()

    def test_suppressed_errors_are_logged(self, quiet_conn, caplog):
        with caplog.at_level(logging.WARNING, logger="sqlite_handles"):
            quiet_conn.statement("SELECCT 1")
        assert "sqlite error suppressed" in caplog.text
