"""Value types carried by a Runestone.

Everything here is an immutable dataclass. Decoding produces fresh instances
for every call, so values can be shared freely between threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .varint import U32_LIMIT, U128_MAX

MAX_DIVISIBILITY = 38
MAX_LIMIT = 1 << 64
MAX_SPACERS = 0b00000111_11111111_11111111_11111111


def _check_u128(name: str, value: int) -> None:
    if not 0 <= value <= U128_MAX:
        raise ValueError(f"{name} must be within [0, 2^128-1], got {value}")


def _check_u32(name: str, value: int | None) -> None:
    if value is not None and not 0 <= value < U32_LIMIT:
        raise ValueError(f"{name} must be within [0, 2^32-1], got {value}")


@dataclass(frozen=True)
class Rune:
    """Opaque rune identifier.

    Converting between this integer and a human readable name is left to
    other tooling.
    """

    value: int

    def __post_init__(self) -> None:
        _check_u128("rune", self.value)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Edict:
    """Transfer of ``amount`` units of rune ``id`` to output ``output``."""

    id: int
    amount: int
    output: int

    def __post_init__(self) -> None:
        _check_u128("edict id", self.id)
        _check_u128("edict amount", self.amount)
        _check_u128("edict output", self.output)

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "amount": self.amount, "output": self.output}


@dataclass(frozen=True)
class MintTerms:
    deadline: int | None = None
    limit: int | None = None
    term: int | None = None

    def __post_init__(self) -> None:
        _check_u32("deadline", self.deadline)
        _check_u32("term", self.term)
        if self.limit is not None:
            _check_u128("limit", self.limit)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.deadline is not None:
            data["deadline"] = self.deadline
        if self.limit is not None:
            data["limit"] = self.limit
        if self.term is not None:
            data["term"] = self.term
        return data


@dataclass(frozen=True)
class Etching:
    """Parameters for creating a new rune."""

    divisibility: int = 0
    rune: Rune | None = None
    spacers: int = 0
    symbol: str | None = None
    mint: MintTerms | None = None

    def __post_init__(self) -> None:
        if self.symbol is not None and len(self.symbol) != 1:
            raise ValueError("symbol must be a single code point")
        if not 0 <= self.spacers <= MAX_SPACERS:
            raise ValueError(f"spacers must be within [0, {MAX_SPACERS:#x}]")
        if not 0 <= self.divisibility <= 0xFF:
            raise ValueError(f"divisibility must be within [0, 255], got {self.divisibility}")

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"divisibility": self.divisibility, "spacers": self.spacers}
        if self.rune is not None:
            data["rune"] = self.rune.value
        if self.symbol is not None:
            data["symbol"] = self.symbol
        if self.mint is not None:
            data["mint"] = self.mint.to_dict()
        return data
