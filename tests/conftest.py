from __future__ import annotations

import socket

import pytest

from sft.stream import TcpStream


class ScriptedStream:
    """In-memory stream: serves ``incoming`` in pieces of at most ``max_read``."""

    def __init__(self, incoming: bytes = b"", max_read: int | None = None):
        self.incoming = bytearray(incoming)
        self.max_read = max_read
        self.written = bytearray()
        self.reads: list[int] = []
        self.remote_address = "scripted"
        self.closed = False

    def read(self, size: int) -> bytes:
        if self.max_read is not None:
            size = min(size, self.max_read)
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        self.reads.append(len(chunk))
        return chunk

    def write(self, data: bytes) -> None:
        self.written.extend(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def scripted():
    return ScriptedStream


@pytest.fixture
def stream_pair():
    a, b = socket.socketpair()
    left, right = TcpStream(a), TcpStream(b)
    yield left, right
    left.close()
    right.close()
