from __future__ import annotations

import enum
import struct

from .constants import LENGTH_FORMAT, LENGTH_SIZE, STATUS_FORMAT, STATUS_OK, STATUS_SIZE, STATUS_TOO_LONG
from .errors import IoError, ProtocolViolation
from .stream import ByteStream


class Status(enum.IntEnum):
    OK = STATUS_OK
    TOO_LONG = STATUS_TOO_LONG


def _write(stream: ByteStream, raw: bytes) -> None:
    try:
        stream.write(raw)
    except OSError as exc:
        raise IoError(f"write {len(raw)} bytes: {exc}") from exc


def read_exact(stream: ByteStream, size: int) -> bytes:
    """Read exactly ``size`` bytes, tolerating short reads along the way."""
    buf = bytearray()
    while len(buf) < size:
        try:
            chunk = stream.read(size - len(buf))
        except OSError as exc:
            raise IoError(f"read {size} bytes: {exc}", value=size) from exc
        if not chunk:
            raise IoError(f"stream closed after {len(buf)} of {size} bytes", value=size)
        buf.extend(chunk)
    return bytes(buf)


def encode_length(stream: ByteStream, value: int) -> None:
    try:
        raw = struct.pack(LENGTH_FORMAT, value)
    except struct.error as exc:
        raise ValueError(f"length {value} does not fit in a signed 64-bit field") from exc
    _write(stream, raw)


def decode_length(stream: ByteStream) -> int:
    (value,) = struct.unpack(LENGTH_FORMAT, read_exact(stream, LENGTH_SIZE))
    return value


def encode_status(stream: ByteStream, status: Status) -> None:
    _write(stream, struct.pack(STATUS_FORMAT, int(status)))


def decode_status(stream: ByteStream) -> Status:
    (raw,) = struct.unpack(STATUS_FORMAT, read_exact(stream, STATUS_SIZE))
    try:
        return Status(raw)
    except ValueError:
        raise ProtocolViolation(f"unknown status from a receiver: {raw}", value=raw) from None
