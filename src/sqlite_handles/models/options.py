"""Per-connection options."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sqlite_handles.config import get_busy_timeout, get_error_policy, get_journal_mode
from sqlite_handles.errors import ErrorPolicy

JournalMode = Literal["DELETE", "TRUNCATE", "PERSIST", "MEMORY", "WAL", "OFF"]


class ConnectionOptions(BaseModel):
    """Settings applied when a Connection opens its handle.

    Defaults come from the environment (see :mod:`sqlite_handles.config`),
    so the error policy is fixed process-wide unless a caller overrides it.
    """

    model_config = ConfigDict(validate_default=True)

    error_policy: ErrorPolicy = Field(default_factory=get_error_policy)
    timeout: float = Field(default_factory=get_busy_timeout, ge=0.0)
    journal_mode: JournalMode | None = Field(default_factory=get_journal_mode)
    foreign_keys: bool = False

    @field_validator("journal_mode", mode="before")
    @classmethod
    def _upper_journal_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.upper()
        return value
