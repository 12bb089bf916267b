from __future__ import annotations

import logging
import os
import socket
import threading
from dataclasses import dataclass
from typing import Callable, Tuple

from .config import ServerConfig
from .errors import IoError, TransferError
from .measure import Sample, ThroughputCounter
from .receiver import ReceiveResult, Receiver
from .stream import TcpListener, TcpStream

ACCEPT_POLL_S = 0.5


@dataclass(frozen=True, slots=True)
class Report:
    remote_address: str
    sample: Sample

    def line(self) -> str:
        return (
            f"[{self.remote_address}] Instant speed: {int(self.sample.instant_speed)} bytes/sec"
            f" | Average speed: {int(self.sample.average_speed)} bytes/sec;"
        )


ReportSink = Callable[[Report], object]


def print_report(report: Report) -> None:
    print(report.line(), flush=True)


class Reporter:
    """Samples a counter every ``interval_s`` on its own thread.

    After ``stop`` it emits exactly one more report, so the last partial
    window is never lost, then exits.
    """

    def __init__(self, counter: ThroughputCounter, remote_address: str, interval_s: float, sink: ReportSink):
        self.counter = counter
        self.remote_address = remote_address
        self.interval_s = interval_s
        self.sink = sink
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"reporter-{remote_address}", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        self._thread.join()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self._emit()
        self._emit()

    def _emit(self) -> None:
        report = Report(self.remote_address, self.counter.sample())
        try:
            self.sink(report)
        except Exception:
            logging.exception("report sink failed for %s", self.remote_address)


class Server:
    def __init__(self, config: ServerConfig, sink: ReportSink = print_report):
        self.config = config
        self.sink = sink
        self.listener: TcpListener | None = None
        self._closed = threading.Event()

    @property
    def address(self) -> Tuple[str, int]:
        if self.listener is None:
            raise RuntimeError("server is not listening")
        return self.listener.address

    def listen(self) -> None:
        os.makedirs(self.config.directory, exist_ok=True)
        self.listener = TcpListener.listening(self.config.host, self.config.port, timeout_s=ACCEPT_POLL_S)
        host, port = self.listener.address
        logging.info("listening on %s:%d; writing to %s", host, port, self.config.directory)

    def serve_forever(self) -> None:
        if self.listener is None:
            self.listen()
        assert self.listener is not None

        while not self._closed.is_set():
            try:
                stream = self.listener.accept()
            except socket.timeout:
                continue
            except OSError as exc:
                if self._closed.is_set():
                    break
                raise IoError(f"accept new connection: {exc}", step="accept") from exc

            logging.debug("connection from %s", stream.remote_address)
            t = threading.Thread(
                target=self.handle_connection,
                args=(stream,),
                name=f"conn-{stream.remote_address}",
                daemon=True,
            )
            t.start()

        logging.info("server stopped")

    def close(self) -> None:
        self._closed.set()
        if self.listener is not None:
            self.listener.close()

    def handle_connection(self, stream: TcpStream) -> ReceiveResult | None:
        """Receive one file from ``stream`` while reporting its throughput.

        Transfer failures are logged and not raised to the accept loop.
        """
        addr = stream.remote_address
        counter = ThroughputCounter()
        receiver = Receiver(
            self.config.directory,
            name_length_limit=self.config.name_length_limit,
            content_length_limit=self.config.content_length_limit,
            chunk_size=self.config.chunk_size,
        )
        reporter = Reporter(counter, addr, self.config.report_interval_s, self.sink)
        reporter.start()

        result: ReceiveResult | None = None
        try:
            result = receiver.receive(stream, counter)
        except TransferError as exc:
            logging.error("failed to receive a file from %s: %s", addr, exc)
        finally:
            reporter.stop()
            stream.close()
        return result
