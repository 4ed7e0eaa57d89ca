"""Configuration models."""

from sqlite_handles.models.options import ConnectionOptions

__all__ = ["ConnectionOptions"]
