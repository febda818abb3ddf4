"""Single-bit flags packed into the ``FLAGS`` field."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum


class Flag(IntEnum):
    ETCH = 0
    MINT = 1
    # Reserved bit; never consumed, so a message carrying it is a cenotaph.
    BURN = 127

    @property
    def mask(self) -> int:
        return 1 << self.value


@dataclass(frozen=True)
class FlagTake:
    """Result of :func:`take`: whether the flag was set and the remaining bits."""

    set: bool
    flags: int


def take(flags: int, flag: Flag) -> FlagTake:
    mask = flag.mask
    return FlagTake(set=bool(flags & mask), flags=flags & ~mask)


def set_flag(flags: int, flag: Flag) -> int:
    return flags | flag.mask
