"""Binary value types for BLOB parameters and columns."""

from __future__ import annotations

import struct
from collections.abc import Iterable
from typing import Any


class Blob:
    """An owned, fixed-size byte buffer.

    The input is always copied, so later changes to the caller's buffer
    never leak into a bound parameter or a value read from a column.
    """

    __slots__ = ("_data",)

    def __init__(self, data: bytes | bytearray | memoryview | Iterable[int] = b"") -> None:
        """Initialize with a private copy of ``data``."""
        self._data = bytearray(data)

    @classmethod
    def from_floats(cls, values: Iterable[float]) -> Blob:
        """Pack floats as little-endian float32, the layout vector extensions expect."""
        vec = list(values)
        return cls(struct.pack(f"<{len(vec)}f", *vec))

    def to_floats(self) -> list[float]:
        """Unpack a float32 vector written by :meth:`from_floats`."""
        if len(self._data) % 4:
            raise ValueError(f"blob of {len(self._data)} bytes is not a float32 vector")
        return list(struct.unpack(f"<{len(self._data) // 4}f", self._data))

    @property
    def data(self) -> bytearray:
        """The buffer itself; writes go straight into the blob."""
        return self._data

    @property
    def size(self) -> int:
        """Number of bytes held."""
        return len(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __bytes__(self) -> bytes:
        return bytes(self._data)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Blob):
            return self._data == other._data
        if isinstance(other, bytes | bytearray | memoryview):
            return self._data == bytes(other)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Blob({bytes(self._data)!r})"


class NOBlob:
    """A non-owning view of caller-managed bytes.

    Binding an NOBlob hands the engine a ``memoryview`` over the caller's
    buffer instead of a copy. The caller must keep that buffer alive and
    unchanged until every statement using the binding has been reset or
    finalized.
    """

    __slots__ = ("_view",)

    def __init__(self, buffer: Any) -> None:
        """Initialize with any object supporting the buffer protocol."""
        view = memoryview(buffer)
        if view.format != "B" or view.ndim != 1:
            view = view.cast("B")
        self._view = view

    @property
    def data(self) -> memoryview:
        """A read-only view of the referenced bytes."""
        return self._view.toreadonly()

    @property
    def size(self) -> int:
        """Number of bytes referenced."""
        return self._view.nbytes

    def __len__(self) -> int:
        return self._view.nbytes

    def __repr__(self) -> str:
        return f"NOBlob(size={self.size})"
