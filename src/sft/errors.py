from __future__ import annotations

import contextlib
from typing import Iterator


class TransferError(Exception):
    """Base for every failure of a single transfer.

    ``step`` names the protocol step that failed (e.g. ``"receive name"``) and
    ``value`` holds the offending value when there is one.
    """

    def __init__(self, message: str, *, step: str | None = None, value: object = None):
        super().__init__(message)
        self.message = message
        self.step = step
        self.value = value

    def __str__(self) -> str:
        if self.step is None:
            return self.message
        return f"{self.step}: {self.message}"


class IoError(TransferError):
    """Transport read/write failure or premature stream closure."""


class ProtocolViolation(TransferError):
    """Unrecognized status byte or malformed frame."""


class RejectedByPeer(TransferError):
    """The receiver answered a length field with TOO_LONG."""


class LimitExceeded(TransferError):
    """A received length field is above the configured limit."""

    def __init__(self, value: int, limit: int, *, step: str | None = None):
        super().__init__(f"too long ({value}), limit is ({limit})", step=step, value=value)
        self.limit = limit


class TruncatedTransfer(TransferError):
    """The stream ended before the declared content length was received."""

    def __init__(self, expected: int, received: int, *, step: str | None = None):
        super().__init__(
            f"stream closed after {received} of {expected} content bytes",
            step=step,
            value=expected,
        )
        self.expected = expected
        self.received = received


class StorageError(TransferError):
    """Destination file creation, resize or write failure."""


@contextlib.contextmanager
def step(name: str) -> Iterator[None]:
    """Attribute failures raised inside the block to the protocol step ``name``.

    Transport ``OSError``s (resets, broken pipes, timeouts) become ``IoError``.
    """
    try:
        yield
    except TransferError as exc:
        if exc.step is None:
            exc.step = name
        raise
    except OSError as exc:
        raise IoError(str(exc) or exc.__class__.__name__, step=name) from exc
