from __future__ import annotations

from dataclasses import dataclass

from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_LENGTH_LIMIT,
    DEFAULT_DIRECTORY,
    DEFAULT_NAME_LENGTH_LIMIT,
    DEFAULT_PORT,
    DEFAULT_REPORT_INTERVAL_S,
)


@dataclass(frozen=True, slots=True)
class ServerConfig:
    directory: str = DEFAULT_DIRECTORY
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    name_length_limit: int = DEFAULT_NAME_LENGTH_LIMIT  # inclusive
    content_length_limit: int = DEFAULT_CONTENT_LENGTH_LIMIT  # inclusive
    report_interval_s: float = DEFAULT_REPORT_INTERVAL_S
    chunk_size: int = DEFAULT_CHUNK_SIZE

    def __post_init__(self) -> None:
        if not 0 <= self.port <= 65535:
            raise ValueError(f"port out of range: {self.port}")
        if self.name_length_limit < 0:
            raise ValueError(f"name length limit must be non-negative, got {self.name_length_limit}")
        if self.content_length_limit < 0:
            raise ValueError(f"content length limit must be non-negative, got {self.content_length_limit}")
        if self.report_interval_s <= 0:
            raise ValueError(f"report interval must be positive, got {self.report_interval_s}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk size must be positive, got {self.chunk_size}")
