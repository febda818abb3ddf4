"""Forward-only cursor over a byte buffer."""

from __future__ import annotations


class OutOfDataError(ValueError):
    """Raised when a read runs past the end of the buffer."""


class SeekBuffer:
    """Sequential reader tracking a position inside ``data``.

    The cursor never moves backwards; every successful read advances it.
    """

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)
        self._position = 0

    @property
    def position(self) -> int:
        return self._position

    @property
    def remaining(self) -> int:
        return len(self._data) - self._position

    def is_finished(self) -> bool:
        return self._position >= len(self._data)

    def read_byte(self) -> int:
        if self.is_finished():
            raise OutOfDataError(f"no byte left at offset {self._position}")
        value = self._data[self._position]
        self._position += 1
        return value

    def read_bytes(self, count: int) -> bytes:
        if count < 0:
            raise ValueError("count must be non-negative")
        if count > self.remaining:
            raise OutOfDataError(
                f"wanted {count} bytes at offset {self._position}, only {self.remaining} left"
            )
        chunk = self._data[self._position : self._position + count]
        self._position += count
        return chunk
