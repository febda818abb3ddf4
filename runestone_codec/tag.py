"""Field tags used in Runestone payloads.

Tag parity is part of the protocol: an even tag that a decoder does not
understand makes the whole message a cenotaph, while an odd tag may be
skipped. New optional fields must therefore be assigned odd numbers.
"""

from __future__ import annotations

from enum import IntEnum
from typing import MutableMapping

from .varint import encode_varint


class Tag(IntEnum):
    BODY = 0
    DIVISIBILITY = 1
    FLAGS = 2
    SPACERS = 3
    RUNE = 4
    SYMBOL = 5
    LIMIT = 6
    TERM = 8
    DEADLINE = 10
    DEFAULT_OUTPUT = 12
    CLAIM = 14
    # Reserved: BURN always forces a cenotaph, NOP is always ignorable.
    BURN = 254
    NOP = 255

    @property
    def is_even(self) -> bool:
        return is_even_tag(self.value)


def is_even_tag(tag: int) -> bool:
    """Return True when an unrecognised ``tag`` must invalidate a message."""

    return tag % 2 == 0


def take(fields: MutableMapping[int, int], tag: Tag) -> int | None:
    """Remove ``tag`` from ``fields`` and return its value, if any."""

    return fields.pop(int(tag), None)


def encode(tag: Tag, value: int) -> bytes:
    return encode_varint(int(tag)) + encode_varint(value)
