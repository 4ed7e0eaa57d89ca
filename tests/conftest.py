"""Shared test fixtures."""

import pytest

from sqlite_handles import Connection, ConnectionOptions, ErrorPolicy


@pytest.fixture
def conn():
    """In-memory database that raises on every failure."""
    connection = Connection(":memory:", ConnectionOptions(error_policy=ErrorPolicy.RAISE))
    yield connection
    connection.close(force=True)


@pytest.fixture
def quiet_conn():
    """In-memory database using the boolean-return error policy."""
    connection = Connection(":memory:", ConnectionOptions(error_policy=ErrorPolicy.RETURN))
    yield connection
    connection.close(force=True)


@pytest.fixture
def db_path(tmp_path):
    """Path for an on-disk database that does not exist yet."""
    return tmp_path / "example.db"


@pytest.fixture
def example_table(conn):
    """The (text, integer, float) table used by the end-to-end scenarios."""
    conn.statement(
        "CREATE TABLE example ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, "
        "textData TEXT, "
        "intData INTEGER, "
        "floatData REAL)"
    )
    return conn
