from __future__ import annotations

import logging
from typing import Tuple

from .errors import IoError, TransferError
from .sender import Sender
from .stream import TcpStream


def parse_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (``[v6]:port`` also accepted)."""
    host, sep, port = address.rpartition(":")
    if not sep or not host or not port.isdigit():
        raise ValueError(f"address must look like host:port, got {address!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    port_num = int(port)
    if not 0 < port_num <= 65535:
        raise ValueError(f"port out of range in {address!r}")
    return host, port_num


def launch(address: str, path: str, sender: Sender | None = None, timeout_s: float | None = None) -> int:
    """Send the file at ``path`` to the server at ``address``. Returns content bytes sent."""
    sender = sender or Sender()
    host, port = parse_address(address)

    try:
        f = open(path, "rb")
    except OSError as exc:
        raise IoError(f"open file {path}: {exc}", step="open file", value=path) from exc

    with f:
        try:
            stream = TcpStream.connect(host, port, timeout_s=timeout_s)
        except OSError as exc:
            raise IoError(f"connect via tcp to server {address}: {exc}", step="connect", value=address) from exc

        with stream:
            logging.info("connected to %s; sending %s", address, path)
            try:
                return sender.send(stream, f)
            except TransferError as exc:
                logging.debug("send %s to %s aborted at step %r", path, address, exc.step)
                raise
