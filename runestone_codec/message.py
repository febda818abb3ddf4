"""Intermediate parse result between raw integers and a Runestone."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from .model import Edict
from .tag import Tag
from .varint import saturating_add


@dataclass(frozen=True)
class Message:
    """Tagged fields plus the edicts that follow the ``BODY`` tag.

    :meth:`Runestone.from_message` drains a copy of ``fields`` through
    :func:`runestone_codec.tag.take`; whatever is left afterwards is what the
    decoder did not recognise.
    """

    fields: dict[int, int] = field(default_factory=dict)
    edicts: tuple[Edict, ...] = field(default_factory=tuple)

    @classmethod
    def from_integers(cls, integers: Sequence[int]) -> "Message":
        """Build a message from a flat integer sequence.

        Never raises: a tag without a value ends the scan, a trailing edict
        with fewer than three integers is dropped, and repeated tags keep
        their first value.
        """

        fields: dict[int, int] = {}
        edicts: list[Edict] = []

        for index in range(0, len(integers), 2):
            tag = integers[index]

            if tag == Tag.BODY:
                edict_id = 0
                body = integers[index + 1 :]
                for start in range(0, len(body), 3):
                    chunk = body[start : start + 3]
                    if len(chunk) != 3:
                        break
                    edict_id = saturating_add(edict_id, chunk[0])
                    edicts.append(Edict(id=edict_id, amount=chunk[1], output=chunk[2]))
                break

            if index + 1 >= len(integers):
                break

            fields.setdefault(tag, integers[index + 1])

        return cls(fields=fields, edicts=tuple(edicts))
