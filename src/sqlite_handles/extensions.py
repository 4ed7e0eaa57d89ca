"""Optional SQLite extensions."""

import logging

import sqlite_vec

from sqlite_handles.connection import Connection

logger = logging.getLogger(__name__)


def load_vector_extension(connection: Connection) -> bool:
    """Load sqlite-vec into ``connection``. Returns False when it cannot be loaded.

    Vectors are bound as float32 blobs, see ``Blob.from_floats``.
    """
    raw = connection.raw
    try:
        raw.enable_load_extension(True)
        try:
            sqlite_vec.load(raw)
        finally:
            raw.enable_load_extension(False)
    except Exception:
        logger.warning("sqlite-vec extension not available; vector search disabled")
        return False
    logger.debug("sqlite-vec extension loaded")
    return True
