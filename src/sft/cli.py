from __future__ import annotations

import argparse
import json
import logging
import sys

from .bench import run_benchmark
from .client import launch
from .config import ServerConfig
from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_LENGTH_LIMIT,
    DEFAULT_DIRECTORY,
    DEFAULT_NAME_LENGTH_LIMIT,
    DEFAULT_PORT,
    DEFAULT_REPORT_INTERVAL_S,
)
from .errors import TransferError
from .sender import Sender
from .server import Report, Server


def cmd_serve(args: argparse.Namespace) -> int:
    config = ServerConfig(
        directory=args.path,
        host=args.host,
        port=args.port,
        name_length_limit=args.name_length_limit,
        content_length_limit=args.content_length_limit,
        report_interval_s=args.report_interval,
        chunk_size=args.chunk_size,
    )
    server = Server(config)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logging.info("interrupted")
    except TransferError as exc:
        logging.error("server failed: %s", exc)
        return 1
    finally:
        server.close()
    return 0


def cmd_send(args: argparse.Namespace) -> int:
    try:
        sent = launch(args.address, args.path, Sender(chunk_size=args.chunk_size))
    except (TransferError, ValueError) as exc:
        logging.error("failed to send %s to %s: %s", args.path, args.address, exc)
        return 1

    payload = {"role": "sender", "file": args.path, "address": args.address, "bytes": sent}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def _print_progress(report: Report) -> None:
    print(report.line(), file=sys.stderr, flush=True)


def cmd_bench(args: argparse.Namespace) -> int:
    r = run_benchmark(
        size_bytes=args.size_bytes,
        chunk_size=args.chunk_size,
        report_interval_s=args.report_interval,
        on_progress=None if args.json else _print_progress,
    )
    payload = {"role": "bench", **{k: getattr(r, k) for k in r.__dataclass_fields__}}
    print(json.dumps(payload, indent=2) if args.json else payload)
    return 0


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(prog="sft", description="Simple TCP file transfer with size limits and throughput reports.")
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"])
    sub = p.add_subparsers(dest="cmd", required=True)

    def add_common(x: argparse.ArgumentParser) -> None:
        x.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
        x.add_argument("--json", action="store_true")

    serve = sub.add_parser("serve", help="accept files and write them to a directory")
    serve.add_argument("--chunk-size", type=int, default=DEFAULT_CHUNK_SIZE)
    serve.add_argument("--path", default=DEFAULT_DIRECTORY, help="dir to save files")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=DEFAULT_PORT)
    serve.add_argument("--name-length-limit", type=int, default=DEFAULT_NAME_LENGTH_LIMIT, help="file name bytes length limit")
    serve.add_argument("--content-length-limit", type=int, default=DEFAULT_CONTENT_LENGTH_LIMIT, help="file content length limit")
    serve.add_argument("--report-interval", type=float, default=DEFAULT_REPORT_INTERVAL_S, help="seconds between throughput reports")
    serve.set_defaults(func=cmd_serve)

    send = sub.add_parser("send", help="send one file to a server")
    add_common(send)
    send.add_argument("--address", required=True, help="destination host:port")
    send.add_argument("--path", required=True, help="path of file to send")
    send.set_defaults(func=cmd_send)

    bench = sub.add_parser("bench", help="loopback benchmark through the full pipeline")
    add_common(bench)
    bench.add_argument("--size-bytes", type=int, default=10_000_000)
    bench.add_argument("--report-interval", type=float, default=0.1)
    bench.set_defaults(func=cmd_bench)

    args = p.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return int(args.func(args))
    except ValueError as exc:
        p.error(str(exc))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
