from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from .constants import MIN_ELAPSED_S

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Sample:
    instant_speed: float  # bytes/sec since the previous sample
    average_speed: float  # bytes/sec since the counter was created
    window_bytes: int = 0
    total_bytes: int = 0


class ThroughputCounter:
    """Bytes observed on one connection, sampled into speeds.

    One writer (the copy loop) calls ``add``; one reader (the reporter) calls
    ``sample``. Both take the same lock, so every ``add`` is reflected in the
    next ``sample`` and the window is never torn.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self.created_at = clock()
        self.last_sample_at = self.created_at
        self._total_bytes = 0
        self._window_bytes = 0

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    def add(self, n: int) -> None:
        if n < 0:
            raise ValueError(f"byte count must be non-negative, got {n}")
        with self._lock:
            self._total_bytes += n
            self._window_bytes += n

    def sample(self) -> Sample:
        with self._lock:
            now = self._clock()
            window = self._window_bytes
            total = self._total_bytes

            instant_elapsed = max(now - self.last_sample_at, MIN_ELAPSED_S)
            total_elapsed = max(now - self.created_at, MIN_ELAPSED_S)

            self.last_sample_at = now
            self._window_bytes = 0

        return Sample(
            instant_speed=window / instant_elapsed,
            average_speed=total / total_elapsed,
            window_bytes=window,
            total_bytes=total,
        )


class SampleMailbox(Generic[T]):
    """Single-slot mailbox with a publish that never blocks.

    ``offer`` overwrites whatever the consumer has not taken yet, and drops the
    item outright if a consumer holds the slot at that instant. Samples can be
    lost under back-pressure; the newest one always wins otherwise.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._item: T | None = None
        self._full = False
        self._drop_lock = threading.Lock()
        self.dropped = 0

    def _count_drop(self) -> None:
        with self._drop_lock:
            self.dropped += 1

    def offer(self, item: T) -> bool:
        if not self._cond.acquire(blocking=False):
            self._count_drop()
            return False
        try:
            if self._full:
                self._count_drop()
            self._item = item
            self._full = True
            self._cond.notify()
        finally:
            self._cond.release()
        return True

    def take(self, timeout: float | None = None) -> T | None:
        with self._cond:
            if not self._cond.wait_for(lambda: self._full, timeout):
                return None
            item = self._item
            self._item = None
            self._full = False
            return item
