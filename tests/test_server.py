from __future__ import annotations

import io
import logging
import os
import struct
import threading
import time

import pytest

from sft.config import ServerConfig
from sft.errors import IoError, RejectedByPeer
from sft.measure import Sample, ThroughputCounter
from sft.sender import Sender
from sft.server import Report, Reporter, Server
from sft.stream import TcpStream


def frames(name: bytes, content: bytes) -> bytes:
    return struct.pack("<q", len(name)) + name + struct.pack("<q", len(content)) + content


def test_report_line():
    r = Report("10.0.0.1:5555", Sample(instant_speed=1234.9, average_speed=99.5))
    assert r.line() == "[10.0.0.1:5555] Instant speed: 1234 bytes/sec | Average speed: 99 bytes/sec;"


def test_reporter_emits_once_more_after_stop():
    counter = ThroughputCounter()
    got: list[Report] = []
    rep = Reporter(counter, "peer", interval_s=60.0, sink=got.append)
    rep.start()
    counter.add(77)
    rep.stop()
    assert len(got) == 1
    assert got[0].sample.window_bytes == 77
    assert got[0].remote_address == "peer"


def test_reporter_ticks_on_interval():
    counter = ThroughputCounter()
    got: list[Report] = []
    rep = Reporter(counter, "peer", interval_s=0.01, sink=got.append)
    rep.start()
    deadline = time.monotonic() + 5.0
    while len(got) < 3 and time.monotonic() < deadline:
        time.sleep(0.01)
    rep.stop()
    assert len(got) >= 4


def test_failing_sink_does_not_stop_reporter(caplog):
    calls = []

    def sink(report: Report) -> None:
        calls.append(report)
        raise RuntimeError("stdout closed")

    rep = Reporter(ThroughputCounter(), "peer", interval_s=60.0, sink=sink)
    rep.start()
    with caplog.at_level(logging.ERROR):
        rep.stop()
    assert len(calls) == 1
    assert "report sink failed" in caplog.text


def test_handle_connection_receives_and_reports(scripted, tmp_path):
    got: list[Report] = []
    server = Server(ServerConfig(directory=str(tmp_path), report_interval_s=60.0), sink=got.append)
    s = scripted(frames(b"a.txt", b"hello"))

    result = server.handle_connection(s)

    assert result is not None
    assert (tmp_path / "a.txt").read_bytes() == b"hello"
    assert s.closed
    assert len(got) == 1
    assert got[0].sample.total_bytes == 16 + 5 + 5


def test_handle_connection_logs_failure(scripted, tmp_path, caplog):
    got: list[Report] = []
    server = Server(ServerConfig(directory=str(tmp_path), name_length_limit=4, report_interval_s=60.0), sink=got.append)
    s = scripted(frames(b"too-long", b""))

    with caplog.at_level(logging.ERROR):
        assert server.handle_connection(s) is None

    assert "failed to receive a file from scripted" in caplog.text
    assert "too long (8), limit is (4)" in caplog.text
    assert s.closed
    assert len(got) == 1


def test_reported_windows_sum_to_everything_received(stream_pair, tmp_path):
    client, conn = stream_pair
    got: list[Report] = []
    server = Server(ServerConfig(directory=str(tmp_path), report_interval_s=0.1), sink=got.append)
    content = os.urandom(10 * 1024 * 1024)

    t = threading.Thread(target=server.handle_connection, args=(conn,))
    t.start()
    Sender(chunk_size=2048).send(client, io.BytesIO(content), name="big.bin")
    assert client.read(1) == b""
    t.join()

    assert (tmp_path / "big.bin").read_bytes() == content
    assert sum(r.sample.window_bytes for r in got) == len(content) + len(b"big.bin") + 16
    assert got[-1].sample.total_bytes == len(content) + len(b"big.bin") + 16


def serve_in_thread(server: Server) -> threading.Thread:
    server.listen()
    t = threading.Thread(target=server.serve_forever, daemon=True)
    t.start()
    return t


def test_accept_loop_survives_rejected_transfer(tmp_path):
    got: list[Report] = []
    server = Server(
        ServerConfig(directory=str(tmp_path / "up"), host="127.0.0.1", port=0, content_length_limit=100, report_interval_s=60.0),
        sink=got.append,
    )
    t = serve_in_thread(server)
    host, port = server.address
    try:
        with TcpStream.connect(host, port, timeout_s=5.0) as s:
            with pytest.raises(RejectedByPeer):
                Sender().send(s, io.BytesIO(b"x" * 101), name="big")
            assert s.read(1) == b""

        with TcpStream.connect(host, port, timeout_s=5.0) as s:
            Sender().send(s, io.BytesIO(b"y" * 100), name="ok")
            assert s.read(1) == b""
    finally:
        server.close()
        t.join(timeout=5.0)

    assert not t.is_alive()
    assert not (tmp_path / "up" / "big").exists()
    assert (tmp_path / "up" / "ok").read_bytes() == b"y" * 100
    assert len(got) == 2
    assert got[0].remote_address.startswith("127.0.0.1:")


def test_address_requires_listen(tmp_path):
    with pytest.raises(RuntimeError):
        Server(ServerConfig(directory=str(tmp_path))).address


def test_refused_name_fails_the_sender(tmp_path):
    server = Server(
        ServerConfig(directory=str(tmp_path / "up"), host="127.0.0.1", port=0, report_interval_s=60.0),
        sink=lambda report: None,
    )
    t = serve_in_thread(server)
    host, port = server.address
    try:
        for i in range(5):
            with TcpStream.connect(host, port, timeout_s=5.0) as s:
                with pytest.raises(IoError) as ei:
                    Sender().send(s, io.BytesIO(b"hello"), name=f"sub/f{i}")
                assert ei.value.step == "send content length"
    finally:
        server.close()
        t.join(timeout=5.0)

    assert list((tmp_path / "up").iterdir()) == []
