"""Read-only transaction model.

Runestones only need the ordered output scripts of a transaction, but raw
transactions from a node arrive fully serialized, so the legacy and segwit
wire formats are both parsed here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Mapping

from .seek_buffer import OutOfDataError, SeekBuffer

logger = logging.getLogger(__name__)

COIN = 100_000_000


class TransactionDecodeError(ValueError):
    """Raised when raw transaction bytes are malformed."""


@dataclass(frozen=True)
class TxIn:
    txid: str
    vout: int
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF
    witness: tuple[bytes, ...] = ()


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes


@dataclass(frozen=True)
class Transaction:
    version: int = 2
    inputs: tuple[TxIn, ...] = ()
    outputs: tuple[TxOut, ...] = field(default_factory=tuple)
    locktime: int = 0

    @classmethod
    def from_scripts(cls, scripts: Iterable[bytes], value: int = 0) -> "Transaction":
        """Build a transaction holding only the given output scripts."""

        return cls(outputs=tuple(TxOut(value=value, script_pubkey=bytes(s)) for s in scripts))

    @classmethod
    def from_hex(cls, raw_hex: str) -> "Transaction":
        try:
            raw = bytes.fromhex(raw_hex.strip())
        except ValueError as exc:
            raise TransactionDecodeError("raw transaction is not valid hex") from exc
        return cls.from_bytes(raw)

    @classmethod
    def from_bytes(cls, raw: bytes) -> "Transaction":
        cursor = SeekBuffer(raw)
        try:
            version = int.from_bytes(cursor.read_bytes(4), "little", signed=True)

            input_count = _read_compact_size(cursor)
            segwit = False
            if input_count == 0:
                flag = cursor.read_byte()
                if flag != 1:
                    raise TransactionDecodeError(f"unexpected segwit flag {flag:#04x}")
                segwit = True
                input_count = _read_compact_size(cursor)

            raw_inputs = [_read_input(cursor) for _ in range(input_count)]

            output_count = _read_compact_size(cursor)
            outputs = []
            for _ in range(output_count):
                value = int.from_bytes(cursor.read_bytes(8), "little")
                script = cursor.read_bytes(_read_compact_size(cursor))
                outputs.append(TxOut(value=value, script_pubkey=script))

            inputs = []
            for txid, vout, script_sig, sequence in raw_inputs:
                witness: tuple[bytes, ...] = ()
                if segwit:
                    items = _read_compact_size(cursor)
                    witness = tuple(
                        cursor.read_bytes(_read_compact_size(cursor)) for _ in range(items)
                    )
                inputs.append(
                    TxIn(
                        txid=txid,
                        vout=vout,
                        script_sig=script_sig,
                        sequence=sequence,
                        witness=witness,
                    )
                )

            locktime = int.from_bytes(cursor.read_bytes(4), "little")
        except OutOfDataError as exc:
            raise TransactionDecodeError(f"truncated transaction: {exc}") from exc

        if not cursor.is_finished():
            raise TransactionDecodeError(
                f"{cursor.remaining} trailing bytes after transaction locktime"
            )

        logger.debug("Parsed transaction with %d inputs and %d outputs", len(inputs), len(outputs))
        return cls(version=version, inputs=tuple(inputs), outputs=tuple(outputs), locktime=locktime)

    @classmethod
    def from_rpc_json(cls, tx_json: Mapping[str, Any]) -> "Transaction":
        """Build a transaction from a verbose ``getrawtransaction`` object.

        When the node includes the serialized ``hex`` it is parsed directly;
        otherwise outputs are rebuilt from ``vout[].scriptPubKey.hex``.
        """

        raw_hex = tx_json.get("hex")
        if isinstance(raw_hex, str) and raw_hex:
            return cls.from_hex(raw_hex)

        vouts = sorted(tx_json.get("vout", []), key=lambda vout: vout.get("n", 0))
        outputs = []
        for vout in vouts:
            script_hex = (vout.get("scriptPubKey") or {}).get("hex", "")
            try:
                script = bytes.fromhex(script_hex)
            except ValueError as exc:
                raise TransactionDecodeError(
                    f"vout {vout.get('n')} has a non-hex scriptPubKey"
                ) from exc
            value = int((Decimal(str(vout.get("value", 0))) * COIN).to_integral_value())
            outputs.append(TxOut(value=value, script_pubkey=script))

        return cls(
            version=int(tx_json.get("version", 2)),
            outputs=tuple(outputs),
            locktime=int(tx_json.get("locktime", 0)),
        )


def _read_compact_size(cursor: SeekBuffer) -> int:
    prefix = cursor.read_byte()
    if prefix < 0xFD:
        return prefix
    width = {0xFD: 2, 0xFE: 4, 0xFF: 8}[prefix]
    return int.from_bytes(cursor.read_bytes(width), "little")


def _read_input(cursor: SeekBuffer) -> tuple[str, int, bytes, int]:
    txid = cursor.read_bytes(32)[::-1].hex()
    vout = int.from_bytes(cursor.read_bytes(4), "little")
    script_sig = cursor.read_bytes(_read_compact_size(cursor))
    sequence = int.from_bytes(cursor.read_bytes(4), "little")
    return txid, vout, script_sig, sequence
