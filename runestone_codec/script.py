"""Minimal Bitcoin-style script compilation and decompilation.

Only the subset needed to carry Runestone payloads is modelled: data pushes
and bare opcodes. Scripts are never executed.
"""

from __future__ import annotations

from typing import Iterable, Union

OP_0 = 0x00
OP_PUSHDATA1 = 0x4C
OP_PUSHDATA2 = 0x4D
OP_PUSHDATA4 = 0x4E
OP_1NEGATE = 0x4F
OP_1 = 0x51
OP_16 = 0x60
OP_RETURN = 0x6A

MAX_SCRIPT_ELEMENT_SIZE = 520

Instruction = Union[int, bytes]

_OPCODE_NAMES = {
    OP_0: "OP_0",
    OP_PUSHDATA1: "OP_PUSHDATA1",
    OP_PUSHDATA2: "OP_PUSHDATA2",
    OP_PUSHDATA4: "OP_PUSHDATA4",
    OP_1NEGATE: "OP_1NEGATE",
    OP_RETURN: "OP_RETURN",
}
_OPCODE_NAMES.update({OP_1 + n - 1: f"OP_{n}" for n in range(1, 17)})


class ScriptError(ValueError):
    """Raised when a script cannot be compiled."""


def push_data(data: bytes, max_size: int = MAX_SCRIPT_ELEMENT_SIZE) -> bytes:
    """Return the push opcode(s) followed by ``data``."""

    length = len(data)
    if length > max_size:
        raise ScriptError(f"push of {length} bytes exceeds the {max_size}-byte element limit")
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, "little") + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, "little") + data


def compile_script(
    instructions: Iterable[Instruction], max_element_size: int = MAX_SCRIPT_ELEMENT_SIZE
) -> bytes:
    """Serialize opcodes and byte pushes into a script.

    Byte strings are always emitted as explicit pushes, even one-byte values
    that have a small-integer opcode, so they decompile back to bytes.
    """

    out = bytearray()
    for instruction in instructions:
        if isinstance(instruction, int):
            if not 0 <= instruction <= 0xFF:
                raise ScriptError(f"invalid opcode {instruction}")
            out.append(instruction)
        elif isinstance(instruction, (bytes, bytearray)):
            out += push_data(bytes(instruction), max_element_size)
        else:
            raise ScriptError(f"unsupported script instruction: {instruction!r}")
    return bytes(out)


def decompile_script(script: bytes) -> list[Instruction] | None:
    """Split ``script`` into opcodes and pushed byte strings.

    Returns ``None`` when a push runs past the end of the script.
    """

    instructions: list[Instruction] = []
    pos = 0
    length = len(script)
    while pos < length:
        op = script[pos]
        pos += 1

        if op == OP_0 or op > OP_PUSHDATA4:
            instructions.append(op)
            continue

        if op < OP_PUSHDATA1:
            size = op
        else:
            width = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}[op]
            if pos + width > length:
                return None
            size = int.from_bytes(script[pos : pos + width], "little")
            pos += width

        end = pos + size
        if end > length:
            return None
        instructions.append(bytes(script[pos:end]))
        pos = end

    return instructions


def script_to_asm(script: bytes) -> str:
    """Render ``script`` in the space-separated form used by node RPCs."""

    instructions = decompile_script(script)
    if instructions is None:
        return "[error]"
    parts: list[str] = []
    for instruction in instructions:
        if isinstance(instruction, bytes):
            parts.append(instruction.hex())
        else:
            parts.append(_OPCODE_NAMES.get(instruction, f"OP_UNKNOWN<{instruction:#04x}>"))
    return " ".join(parts)
