from __future__ import annotations

import os
import tempfile
import threading
import time
from dataclasses import dataclass
from typing import Callable

from .config import ServerConfig
from .constants import DEFAULT_CHUNK_SIZE, LENGTH_SIZE
from .errors import TransferError
from .measure import SampleMailbox
from .receiver import ReceiveResult
from .sender import Sender
from .server import Report, Server
from .stream import TcpListener, TcpStream


@dataclass(frozen=True, slots=True)
class BenchmarkResult:
    bytes_transferred: int
    duration_s: float
    throughput_mbps: float
    reports: int
    reported_bytes: int
    last_report: str = ""
    dropped_progress: int = 0


def _watch(latest: SampleMailbox[Report], done: threading.Event, on_progress: Callable[[Report], object]) -> None:
    # reports the consumer misses are superseded by the newest one
    while not done.is_set():
        report = latest.take(timeout=0.05)
        if report is not None:
            on_progress(report)
    report = latest.take(timeout=0)
    if report is not None:
        on_progress(report)


def run_benchmark(
    *,
    size_bytes: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    report_interval_s: float = 0.1,
    name: str = "bench.bin",
    on_progress: Callable[[Report], object] | None = None,
) -> BenchmarkResult:
    """Push ``size_bytes`` through sender, connection handler and receiver on loopback.

    Every report is recorded for the byte total; ``on_progress`` sees them
    through a ``SampleMailbox`` on its own thread and may miss some.
    """
    reports: list[Report] = []
    latest: SampleMailbox[Report] = SampleMailbox()
    watch_done = threading.Event()
    watcher: threading.Thread | None = None

    def collect(report: Report) -> None:
        reports.append(report)
        if watcher is not None:
            latest.offer(report)

    if on_progress is not None:
        watcher = threading.Thread(target=_watch, args=(latest, watch_done, on_progress), daemon=True)
        watcher.start()

    try:
        with tempfile.TemporaryDirectory() as tmp:
            src_path = os.path.join(tmp, "source.bin")
            out_dir = os.path.join(tmp, "out")
            os.makedirs(out_dir)
            with open(src_path, "wb") as src:
                remaining = size_bytes
                block = b"A" * (1 << 20)
                while remaining > 0:
                    src.write(block[:remaining])
                    remaining -= min(remaining, len(block))

            config = ServerConfig(
                directory=out_dir,
                host="127.0.0.1",
                port=0,
                report_interval_s=report_interval_s,
                chunk_size=chunk_size,
            )
            server = Server(config, sink=collect)
            listener = TcpListener.listening(config.host, config.port)
            host, port = listener.address

            holder: dict[str, ReceiveResult | None] = {}

            def recv_runner() -> None:
                try:
                    conn = listener.accept()
                    holder["result"] = server.handle_connection(conn)
                finally:
                    listener.close()

            t = threading.Thread(target=recv_runner, daemon=True)
            t.start()

            start = time.monotonic()
            stream = TcpStream.connect(host, port)
            try:
                with open(src_path, "rb") as src:
                    Sender(chunk_size=chunk_size).send(stream, src, name=name)
                # the handler closes its end only after the final report
                stream.read(1)
            finally:
                stream.close()

            t.join(timeout=30.0)
            elapsed = time.monotonic() - start

            result = holder.get("result")
            if result is None:
                raise TransferError("receiver did not complete", step="bench")
            actual_size = os.path.getsize(result.path)
            if actual_size != size_bytes:
                raise TransferError(f"received {actual_size} bytes, sent {size_bytes}", step="bench", value=actual_size)
    finally:
        watch_done.set()
        if watcher is not None:
            watcher.join()

    duration_s = max(0.001, elapsed)

    return BenchmarkResult(
        bytes_transferred=size_bytes,
        duration_s=duration_s,
        throughput_mbps=(size_bytes * 8 / 1_000_000) / duration_s,
        reports=len(reports),
        reported_bytes=sum(r.sample.window_bytes for r in reports) - (2 * LENGTH_SIZE + len(name.encode("utf-8"))),
        last_report=reports[-1].line() if reports else "",
        dropped_progress=latest.dropped,
    )
