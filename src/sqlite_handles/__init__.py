"""Resource-safe connections, prepared statements and typed row cursors for SQLite."""

from sqlite_handles.blob import Blob, NOBlob
from sqlite_handles.config import configure_logging
from sqlite_handles.connection import Connection
from sqlite_handles.errors import Error, ErrorPolicy
from sqlite_handles.models.options import ConnectionOptions
from sqlite_handles.result import Result
from sqlite_handles.statement import Statement
from sqlite_handles.values import ColumnType, Float32, Int32

__all__ = [
    "Blob",
    "ColumnType",
    "Connection",
    "ConnectionOptions",
    "Error",
    "ErrorPolicy",
    "Float32",
    "Int32",
    "NOBlob",
    "Result",
    "Statement",
    "configure_logging",
]
