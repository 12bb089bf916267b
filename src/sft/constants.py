from __future__ import annotations

LENGTH_FORMAT = "<q"  # signed 64-bit, little-endian
STATUS_FORMAT = "<B"
LENGTH_SIZE = 8
STATUS_SIZE = 1

STATUS_OK = 0
STATUS_TOO_LONG = 1

DEFAULT_CHUNK_SIZE = 2048
DEFAULT_NAME_LENGTH_LIMIT = 1 << 12  # 4 KiB
DEFAULT_CONTENT_LENGTH_LIMIT = 1 << 40  # 1 TiB
DEFAULT_REPORT_INTERVAL_S = 3.0
DEFAULT_PORT = 8000
DEFAULT_DIRECTORY = "./uploads"

MIN_ELAPSED_S = 0.0001
