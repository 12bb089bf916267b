from __future__ import annotations

import enum
import logging
import os
from dataclasses import dataclass, field
from typing import BinaryIO

from .codec import Status, decode_length, encode_status, read_exact
from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_LENGTH_LIMIT,
    DEFAULT_NAME_LENGTH_LIMIT,
    LENGTH_SIZE,
)
from .errors import IoError, LimitExceeded, ProtocolViolation, StorageError, TruncatedTransfer, step
from .measure import ThroughputCounter
from .stream import ByteStream


class ReceiverState(enum.Enum):
    AWAIT_NAME_LENGTH = "await name length"
    AWAIT_NAME_BYTES = "await name bytes"
    AWAIT_CONTENT_LENGTH = "await content length"
    AWAIT_CONTENT_BYTES = "await content bytes"
    DONE = "done"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class ReceiveResult:
    name: str
    path: str
    content_length: int


@dataclass(slots=True)
class Receiver:
    directory: str
    name_length_limit: int = DEFAULT_NAME_LENGTH_LIMIT
    content_length_limit: int = DEFAULT_CONTENT_LENGTH_LIMIT
    chunk_size: int = DEFAULT_CHUNK_SIZE
    state: ReceiverState = field(default=ReceiverState.AWAIT_NAME_LENGTH, init=False)

    def receive(self, stream: ByteStream, counter: ThroughputCounter) -> ReceiveResult:
        """Run one transfer to completion; raises a ``TransferError`` on abort."""
        self.state = ReceiverState.AWAIT_NAME_LENGTH
        try:
            with step("receive name length"):
                name_len = self._receive_len(stream, self.name_length_limit, counter)

            self.state = ReceiverState.AWAIT_NAME_BYTES
            with step("receive name"):
                name = self._receive_name(stream, name_len, counter)
                path = self._destination(name)

            self.state = ReceiverState.AWAIT_CONTENT_LENGTH
            with step("receive content length"):
                content_len = self._receive_len(stream, self.content_length_limit, counter)

            self.state = ReceiverState.AWAIT_CONTENT_BYTES
            with step(f"receive content of {name!r}"):
                self._receive_content(stream, path, content_len, counter)
        except BaseException:
            self.state = ReceiverState.ABORTED
            raise

        self.state = ReceiverState.DONE
        logging.info("received %r (%d bytes) into %s", name, content_len, path)
        return ReceiveResult(name=name, path=path, content_length=content_len)

    def _receive_len(self, stream: ByteStream, limit: int, counter: ThroughputCounter) -> int:
        length = decode_length(stream)
        counter.add(LENGTH_SIZE)

        if length < 0:
            raise ProtocolViolation(f"negative length ({length})", value=length)

        if length > limit:
            encode_status(stream, Status.TOO_LONG)
            raise LimitExceeded(length, limit)

        encode_status(stream, Status.OK)
        return length

    def _receive_name(self, stream: ByteStream, length: int, counter: ThroughputCounter) -> str:
        raw = read_exact(stream, length)
        counter.add(length)
        try:
            return raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ProtocolViolation(f"name is not valid UTF-8: {exc}", value=raw) from None

    def _destination(self, name: str) -> str:
        if not name or name in (".", "..") or os.path.basename(name) != name:
            raise StorageError(f"refusing destination name {name!r}", value=name)
        return os.path.join(self.directory, name)

    def _create(self, path: str, length: int) -> BinaryIO:
        try:
            f = open(path, "wb")
        except OSError as exc:
            raise StorageError(f"create file {path}: {exc}", value=path) from exc
        try:
            # sized up front so a cut-off transfer still leaves the declared size
            f.truncate(length)
        except OSError as exc:
            f.close()
            raise StorageError(f"truncate file {path} to {length}: {exc}", value=length) from exc
        return f

    def _receive_content(self, stream: ByteStream, path: str, length: int, counter: ThroughputCounter) -> None:
        try:
            with self._create(path, length) as out:
                self._copy(stream, out, path, length, counter)
        except OSError as exc:
            # buffered bytes that fail to reach storage on close
            raise StorageError(f"flush {path}: {exc}", value=path) from exc

    def _copy(self, stream: ByteStream, out: BinaryIO, path: str, length: int, counter: ThroughputCounter) -> None:
        received = 0
        while received < length:
            want = min(self.chunk_size, length - received)
            try:
                chunk = stream.read(want)
            except OSError as exc:
                raise IoError(f"read {want} bytes after {received}: {exc}", value=received) from exc
            if not chunk:
                raise TruncatedTransfer(length, received)

            try:
                out.write(chunk)
            except OSError as exc:
                raise StorageError(f"write {len(chunk)} bytes to {path}: {exc}", value=received) from exc

            received += len(chunk)
            counter.add(len(chunk))
