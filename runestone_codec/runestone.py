"""Runestone decoding and encoding.

A Runestone lives in the first transaction output whose script starts with
``OP_RETURN <magic>``. All byte pushes after the magic are concatenated and
read as a sequence of LEB128 varints::

    (tag value)* (BODY (id_delta amount output)*)?

Decoding is deliberately forgiving. Missing data yields ``None``, out of range
fields are dropped or clamped, and data this decoder does not understand
(unknown even tags, unknown flag bits) is kept but marks the Runestone as
``burn``. Callers decide what a burned Runestone means for balances.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from . import flag as flags_registry
from . import tag as tags_registry
from .config import DEFAULT_PROTOCOL_CONFIG, ProtocolConfig
from .flag import Flag
from .message import Message
from .model import Edict, Etching, MintTerms, Rune
from .script import OP_RETURN, compile_script, decompile_script
from .seek_buffer import SeekBuffer
from .tag import Tag
from .transaction import Transaction
from .varint import U32_LIMIT, U128_MAX, VarIntError, encode_varint, read_varint

logger = logging.getLogger(__name__)


class RunestoneError(ValueError):
    """Raised when a Runestone description cannot be turned into a Runestone."""


def _u32(value: int | None) -> int | None:
    if value is None or value >= U32_LIMIT:
        return None
    return value


def _symbol(value: int | None) -> str | None:
    if value is None or value >= U32_LIMIT:
        return None
    if value > 0x10FFFF or 0xD800 <= value <= 0xDFFF:
        return None
    return chr(value)


@dataclass(frozen=True)
class Runestone:
    burn: bool = False
    claim: int | None = None
    default_output: int | None = None
    edicts: tuple[Edict, ...] = field(default_factory=tuple)
    etching: Etching | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "edicts", tuple(self.edicts))
        if self.claim is not None and not 0 <= self.claim <= U128_MAX:
            raise RunestoneError(f"claim must be within [0, 2^128-1], got {self.claim}")
        if self.default_output is not None and not 0 <= self.default_output < U32_LIMIT:
            raise RunestoneError(
                f"default_output must be within [0, 2^32-1], got {self.default_output}"
            )

    # Decoding -----------------------------------------------------------

    @classmethod
    def from_transaction(
        cls, transaction: Transaction, config: ProtocolConfig = DEFAULT_PROTOCOL_CONFIG
    ) -> "Runestone | None":
        """Decode the Runestone carried by ``transaction``, if any.

        A payload holding a malformed varint is reported as ``None``, the same
        as a transaction without a Runestone output.
        """

        payload = cls.payload(transaction, config.magic)
        if payload is None:
            return None

        try:
            integers = cls.integers(payload)
        except VarIntError as exc:
            logger.warning("Ignoring Runestone payload with malformed varint: %s", exc)
            return None

        logger.debug("Runestone payload of %d bytes holds %d integers", len(payload), len(integers))
        return cls.from_message(Message.from_integers(integers), config)

    @classmethod
    def from_message(
        cls, message: Message, config: ProtocolConfig = DEFAULT_PROTOCOL_CONFIG
    ) -> "Runestone":
        """Interpret the fields and edicts of ``message``."""

        fields = dict(message.fields)

        claim = tags_registry.take(fields, Tag.CLAIM)
        deadline = _u32(tags_registry.take(fields, Tag.DEADLINE))
        default_output = _u32(tags_registry.take(fields, Tag.DEFAULT_OUTPUT))

        divisibility = tags_registry.take(fields, Tag.DIVISIBILITY)
        if divisibility is None or divisibility >= 256 or divisibility > config.max_divisibility:
            divisibility = 0

        limit = tags_registry.take(fields, Tag.LIMIT)
        if limit is not None:
            limit = min(limit, config.max_limit)

        rune_value = tags_registry.take(fields, Tag.RUNE)
        rune = Rune(rune_value) if rune_value is not None else None

        spacers = tags_registry.take(fields, Tag.SPACERS)
        if spacers is None or spacers >= 256 or spacers > config.max_spacers:
            spacers = 0

        symbol = _symbol(tags_registry.take(fields, Tag.SYMBOL))
        term = _u32(tags_registry.take(fields, Tag.TERM))

        flags = tags_registry.take(fields, Tag.FLAGS) or 0
        etch = flags_registry.take(flags, Flag.ETCH)
        mint = flags_registry.take(etch.flags, Flag.MINT)
        remaining_flags = mint.flags

        etching = None
        if etch.set:
            etching = Etching(
                divisibility=divisibility,
                rune=rune,
                spacers=spacers,
                symbol=symbol,
                mint=MintTerms(deadline=deadline, limit=limit, term=term) if mint.set else None,
            )

        unknown_even_tags = sorted(tag for tag in fields if tags_registry.is_even_tag(tag))
        burn = remaining_flags != 0 or bool(unknown_even_tags)
        if burn:
            logger.debug(
                "Runestone is a cenotaph: leftover flags=%#x, unknown even tags=%s",
                remaining_flags,
                unknown_even_tags,
            )

        return cls(
            burn=burn,
            claim=claim,
            default_output=default_output,
            edicts=tuple(message.edicts),
            etching=etching,
        )

    @staticmethod
    def payload(transaction: Transaction, magic: bytes = DEFAULT_PROTOCOL_CONFIG.magic) -> bytes | None:
        """Return the concatenated pushes of the first Runestone output."""

        for index, output in enumerate(transaction.outputs):
            instructions = decompile_script(output.script_pubkey)
            if not instructions or instructions[0] != OP_RETURN:
                continue
            if len(instructions) < 2 or instructions[1] != magic:
                continue

            logger.debug("Found Runestone marker in output %d", index)
            return b"".join(
                instruction for instruction in instructions[2:] if isinstance(instruction, bytes)
            )
        return None

    @staticmethod
    def integers(payload: bytes) -> list[int]:
        """Split ``payload`` into varints. Raises :class:`VarIntError` if malformed."""

        integers: list[int] = []
        cursor = SeekBuffer(payload)
        while not cursor.is_finished():
            integers.append(read_varint(cursor))
        return integers

    # Encoding -----------------------------------------------------------

    def check_encodable(self, config: ProtocolConfig = DEFAULT_PROTOCOL_CONFIG) -> None:
        """Reject etching values that ``config`` would drop or clamp on decode.

        Raises :class:`RunestoneError`; :meth:`encipher` calls this first so an
        encoded Runestone always decodes back to itself.
        """

        etching = self.etching
        if etching is None:
            return
        if etching.divisibility > config.max_divisibility:
            raise RunestoneError(
                f"divisibility {etching.divisibility} exceeds the maximum of {config.max_divisibility}"
            )
        if etching.spacers >= 256 or etching.spacers > config.max_spacers:
            raise RunestoneError(f"spacers {etching.spacers:#x} would be dropped on decode")
        if etching.mint is not None and etching.mint.limit is not None:
            if etching.mint.limit > config.max_limit:
                raise RunestoneError(
                    f"mint limit {etching.mint.limit} exceeds the maximum of {config.max_limit}"
                )

    def encipher_payload(self) -> bytes:
        """Serialize this Runestone into its varint payload."""

        payloads: list[bytes] = []

        if self.etching is not None:
            etching = self.etching
            flags = flags_registry.set_flag(0, Flag.ETCH)
            if etching.mint is not None:
                flags = flags_registry.set_flag(flags, Flag.MINT)
            payloads.append(tags_registry.encode(Tag.FLAGS, flags))

            if etching.rune is not None:
                payloads.append(tags_registry.encode(Tag.RUNE, etching.rune.value))
            if etching.divisibility != 0:
                payloads.append(tags_registry.encode(Tag.DIVISIBILITY, etching.divisibility))
            if etching.spacers != 0:
                payloads.append(tags_registry.encode(Tag.SPACERS, etching.spacers))
            if etching.symbol is not None:
                payloads.append(tags_registry.encode(Tag.SYMBOL, ord(etching.symbol)))

            if etching.mint is not None:
                mint = etching.mint
                if mint.deadline is not None:
                    payloads.append(tags_registry.encode(Tag.DEADLINE, mint.deadline))
                if mint.limit is not None:
                    payloads.append(tags_registry.encode(Tag.LIMIT, mint.limit))
                if mint.term is not None:
                    payloads.append(tags_registry.encode(Tag.TERM, mint.term))

        if self.claim is not None:
            payloads.append(tags_registry.encode(Tag.CLAIM, self.claim))

        if self.default_output is not None:
            payloads.append(tags_registry.encode(Tag.DEFAULT_OUTPUT, self.default_output))

        if self.burn:
            payloads.append(tags_registry.encode(Tag.BURN, 0))

        if self.edicts:
            payloads.append(encode_varint(Tag.BODY))
            previous_id = 0
            for edict in sorted(self.edicts, key=lambda edict: edict.id):
                payloads.append(encode_varint(edict.id - previous_id))
                payloads.append(encode_varint(edict.amount))
                payloads.append(encode_varint(edict.output))
                previous_id = edict.id

        return b"".join(payloads)

    def encipher(self, config: ProtocolConfig = DEFAULT_PROTOCOL_CONFIG) -> bytes:
        """Return the ``OP_RETURN`` output script carrying this Runestone."""

        self.check_encodable(config)
        payload = self.encipher_payload()
        size = config.max_script_element_size
        chunks = [payload[start : start + size] for start in range(0, len(payload), size)]
        return compile_script(
            [OP_RETURN, config.magic, *chunks], max_element_size=max(size, len(config.magic))
        )

    # Conversion ---------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "burn": self.burn,
            "claim": self.claim,
            "default_output": self.default_output,
            "edicts": [edict.to_dict() for edict in self.edicts],
            "etching": self.etching.to_dict() if self.etching is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Runestone":
        """Build a Runestone from a plain mapping, e.g. a YAML description."""

        if not isinstance(data, Mapping):
            raise RunestoneError("Runestone description must be a mapping")

        try:
            edicts = tuple(
                Edict(
                    id=_require_int(entry, "id"),
                    amount=_require_int(entry, "amount"),
                    output=_require_int(entry, "output"),
                )
                for entry in _require_list(data, "edicts")
            )
            etching = _etching_from_dict(data.get("etching"))
            runestone = cls(
                burn=_optional_bool(data, "burn"),
                claim=_optional_int(data, "claim", U128_MAX),
                default_output=_optional_int(data, "default_output", U32_LIMIT - 1),
                edicts=edicts,
                etching=etching,
            )
        except RunestoneError:
            raise
        except ValueError as exc:
            raise RunestoneError(str(exc)) from exc
        return runestone


def _etching_from_dict(raw: Any) -> Etching | None:
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise RunestoneError("etching must be a mapping")

    mint = None
    raw_mint = raw.get("mint")
    if raw_mint is not None:
        if not isinstance(raw_mint, Mapping):
            raise RunestoneError("etching.mint must be a mapping")
        mint = MintTerms(
            deadline=_optional_int(raw_mint, "deadline", U32_LIMIT - 1),
            limit=_optional_int(raw_mint, "limit", U128_MAX),
            term=_optional_int(raw_mint, "term", U32_LIMIT - 1),
        )

    rune_value = _optional_int(raw, "rune", U128_MAX)
    symbol = raw.get("symbol")
    if symbol is not None and not isinstance(symbol, str):
        raise RunestoneError("etching.symbol must be a string")

    return Etching(
        divisibility=_optional_int(raw, "divisibility", 255) or 0,
        rune=Rune(rune_value) if rune_value is not None else None,
        spacers=_optional_int(raw, "spacers", U32_LIMIT - 1) or 0,
        symbol=symbol,
        mint=mint,
    )


def _optional_bool(data: Mapping[str, Any], key: str) -> bool:
    raw = data.get(key, False)
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise RunestoneError(f"{key} must be true or false, got {raw!r}")
    return raw


def _require_list(data: Mapping[str, Any], key: str) -> list[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise RunestoneError(f"{key} must be a list")
    return value


def _require_int(data: Any, key: str) -> int:
    if not isinstance(data, Mapping) or key not in data:
        raise RunestoneError(f"edict is missing '{key}'")
    value = _optional_int(data, key, U128_MAX)
    if value is None:
        raise RunestoneError(f"edict '{key}' must not be null")
    return value


def _optional_int(data: Mapping[str, Any], key: str, maximum: int) -> int | None:
    raw = data.get(key)
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise RunestoneError(f"{key} must be an integer")
    try:
        value = int(raw, 0) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError) as exc:
        raise RunestoneError(f"{key} must be an integer, got {raw!r}") from exc
    if not 0 <= value <= maximum:
        raise RunestoneError(f"{key} must be within [0, {maximum}], got {value}")
    return value
