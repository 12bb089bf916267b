from __future__ import annotations

import socket
from typing import Protocol, Tuple


class ByteStream(Protocol):
    """Bidirectional byte stream consumed by the codecs and pipelines."""

    def read(self, size: int) -> bytes:
        """Return up to ``size`` bytes, ``b""`` once the peer has closed."""
        ...

    def write(self, data: bytes) -> None:
        """Write all of ``data``."""
        ...


class TcpStream:
    def __init__(self, sock: socket.socket):
        self.sock = sock
        try:
            host, port = sock.getpeername()[:2]
            self.remote_address = f"{host}:{port}"
        except (OSError, TypeError, ValueError):
            # socketpair() ends have no inet peer name
            self.remote_address = "local"

    @classmethod
    def connect(cls, host: str, port: int, timeout_s: float | None = None) -> "TcpStream":
        sock = socket.create_connection((host, port), timeout=timeout_s)
        return cls(sock)

    def read(self, size: int) -> bytes:
        return self.sock.recv(size)

    def write(self, data: bytes) -> None:
        self.sock.sendall(data)

    def close(self) -> None:
        self.sock.close()

    def __enter__(self) -> "TcpStream":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class TcpListener:
    def __init__(self, sock: socket.socket):
        self.sock = sock

    @classmethod
    def listening(cls, host: str, port: int, backlog: int = 16, timeout_s: float | None = None) -> "TcpListener":
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        if timeout_s is not None:
            sock.settimeout(timeout_s)
        try:
            sock.bind((host, port))
            sock.listen(backlog)
        except OSError:
            sock.close()
            raise
        return cls(sock)

    @property
    def address(self) -> Tuple[str, int]:
        host, port = self.sock.getsockname()[:2]
        return host, port

    def accept(self) -> TcpStream:
        conn, _ = self.sock.accept()
        return TcpStream(conn)

    def close(self) -> None:
        self.sock.close()
