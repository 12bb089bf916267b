from __future__ import annotations

import struct

import pytest

from sft.codec import Status, decode_length, decode_status, encode_length, encode_status, read_exact
from sft.errors import IoError, ProtocolViolation


def test_length_is_little_endian_8_bytes(scripted):
    s = scripted()
    encode_length(s, 5)
    assert bytes(s.written) == b"\x05\x00\x00\x00\x00\x00\x00\x00"


def test_decode_length_across_short_reads(scripted):
    s = scripted(struct.pack("<q", 1 << 40), max_read=3)
    assert decode_length(s) == 1 << 40
    assert s.reads == [3, 3, 2]


def test_decode_length_short_stream(scripted):
    s = scripted(b"\x01\x02\x03")
    with pytest.raises(IoError):
        decode_length(s)


def test_length_out_of_range():
    with pytest.raises(ValueError):
        encode_length(None, 1 << 63)  # type: ignore[arg-type]


def test_status_bytes(scripted):
    s = scripted()
    encode_status(s, Status.OK)
    encode_status(s, Status.TOO_LONG)
    assert bytes(s.written) == b"\x00\x01"


def test_decode_known_status(scripted):
    assert decode_status(scripted(b"\x01")) is Status.TOO_LONG


def test_unknown_status_is_not_success(scripted):
    with pytest.raises(ProtocolViolation) as ei:
        decode_status(scripted(b"\x07"))
    assert ei.value.value == 7


def test_decode_status_on_closed_stream(scripted):
    with pytest.raises(IoError):
        decode_status(scripted(b""))


def test_read_exact_zero(scripted):
    s = scripted(b"abc")
    assert read_exact(s, 0) == b""
    assert s.reads == []
