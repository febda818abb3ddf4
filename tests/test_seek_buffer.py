from __future__ import annotations

import pytest

from runestone_codec.seek_buffer import OutOfDataError, SeekBuffer


def test_reads_bytes_in_order_until_finished() -> None:
    cursor = SeekBuffer(b"\x01\x02")

    assert not cursor.is_finished()
    assert cursor.read_byte() == 1
    assert cursor.read_byte() == 2
    assert cursor.is_finished()
    assert cursor.position == 2


def test_read_past_end_raises() -> None:
    cursor = SeekBuffer(b"")

    assert cursor.is_finished()
    with pytest.raises(OutOfDataError):
        cursor.read_byte()


def test_read_bytes_tracks_remaining() -> None:
    cursor = SeekBuffer(b"abcdef")

    assert cursor.read_bytes(4) == b"abcd"
    assert cursor.remaining == 2
    with pytest.raises(OutOfDataError):
        cursor.read_bytes(3)
    assert cursor.read_bytes(2) == b"ef"
    assert cursor.is_finished()
