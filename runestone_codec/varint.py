"""128-bit unsigned integers and their LEB128 varint framing.

Wide integers are plain Python ``int`` values kept inside ``[0, U128_MAX]``.
Every integer in a Runestone payload uses the same framing: seven value bits
per byte, least-significant group first, high bit set on all bytes except the
last one.
"""

from __future__ import annotations

from .seek_buffer import OutOfDataError, SeekBuffer

U128_MAX = (1 << 128) - 1
U32_LIMIT = 1 << 32


class VarIntError(ValueError):
    """Raised when a varint cannot be decoded."""


class VarIntOverflowError(VarIntError):
    """Raised when a varint carries more than 128 value bits."""


class UnterminatedVarIntError(VarIntError):
    """Raised when the buffer ends before the final varint byte."""


def saturating_add(a: int, b: int) -> int:
    """Return ``a + b`` clamped to :data:`U128_MAX`."""

    total = a + b
    if total > U128_MAX:
        return U128_MAX
    return total


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError("value must be non-negative")
    if value > U128_MAX:
        raise ValueError("value must be <= 2^128-1")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            break
    return bytes(out)


def read_varint(cursor: SeekBuffer) -> int:
    """Read one varint from ``cursor`` and return its value."""

    value = 0
    shift = 0
    while True:
        try:
            byte = cursor.read_byte()
        except OutOfDataError as exc:
            raise UnterminatedVarIntError("unterminated varint") from exc

        group = byte & 0x7F
        if (group << shift) > U128_MAX:
            raise VarIntOverflowError("varint too large")
        value |= group << shift

        if byte & 0x80 == 0:
            return value
        shift += 7
        if shift >= 7 * 19:
            # 19 groups already cover 133 bits; anything longer cannot fit.
            raise VarIntOverflowError("varint too long")


def decode_varint(data: bytes) -> tuple[int, int]:
    """Decode a varint at the start of ``data``.

    Returns the value and the number of bytes it occupied.
    """

    cursor = SeekBuffer(data)
    value = read_varint(cursor)
    return value, cursor.position
