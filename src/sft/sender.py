from __future__ import annotations

import io
import logging
import os
from dataclasses import dataclass
from typing import BinaryIO

from .codec import Status, decode_status, encode_length
from .constants import DEFAULT_CHUNK_SIZE
from .errors import IoError, RejectedByPeer, step
from .stream import ByteStream


def source_size(source: BinaryIO) -> int:
    """Bytes left in ``source`` from its current position to the end."""
    pos = source.tell()
    try:
        size = os.fstat(source.fileno()).st_size
    except (AttributeError, OSError, io.UnsupportedOperation):
        size = source.seek(0, os.SEEK_END)
        source.seek(pos)
    return max(0, size - pos)


@dataclass(slots=True)
class Sender:
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def send(self, stream: ByteStream, source: BinaryIO, name: str | None = None) -> int:
        """Send ``source`` as name, content length, content. Returns content bytes sent."""
        if name is None:
            name = os.path.basename(getattr(source, "name", ""))

        with step("get file size"):
            size = source_size(source)

        with step("send name"):
            self._send_name(stream, name)

        with step("send content length"):
            self._send_len(stream, size)

        with step("send content"):
            sent = self._send_content(stream, source)

        if sent != size:
            raise IoError(f"file yielded {sent} bytes, declared {size}", step="send content", value=size)
        logging.info("sent %r (%d bytes)", name, sent)
        return sent

    def _send_len(self, stream: ByteStream, length: int) -> None:
        encode_length(stream, length)
        status = decode_status(stream)
        if status == Status.TOO_LONG:
            raise RejectedByPeer(f"too long ({length}) for a receiver", value=length)

    def _send_name(self, stream: ByteStream, name: str) -> None:
        raw = name.encode("utf-8")
        self._send_len(stream, len(raw))
        stream.write(raw)

    def _send_content(self, stream: ByteStream, source: BinaryIO) -> int:
        sent = 0
        while True:
            chunk = source.read(self.chunk_size)
            if not chunk:
                break
            stream.write(chunk)
            sent += len(chunk)
        return sent
