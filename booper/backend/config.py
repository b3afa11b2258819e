"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    host: str = "127.0.0.1"
    port: int = 8080
    log_level: str = "INFO"
    max_message_bytes: int = 5120
    read_timeout: float = 60.0
    write_timeout: float = 10.0
    ping_interval: float = 50.0
    send_queue_size: int = 512
    broadcast_queue_size: int = 1024

    def __post_init__(self) -> None:
        if self.ping_interval >= self.read_timeout:
            raise ValueError("ping_interval must be lower than read_timeout")


def load_settings() -> BackendSettings:
    return BackendSettings(
        host=os.getenv("BOOPER_HOST", "127.0.0.1"),
        port=int(os.getenv("BOOPER_PORT", "8080")),
        log_level=os.getenv("BOOPER_LOG_LEVEL", "INFO").upper(),
        max_message_bytes=int(os.getenv("BOOPER_MAX_MESSAGE_BYTES", "5120")),
        read_timeout=float(os.getenv("BOOPER_READ_TIMEOUT", "60")),
        write_timeout=float(os.getenv("BOOPER_WRITE_TIMEOUT", "10")),
        ping_interval=float(os.getenv("BOOPER_PING_INTERVAL", "50")),
        send_queue_size=int(os.getenv("BOOPER_SEND_QUEUE_SIZE", "512")),
        broadcast_queue_size=int(os.getenv("BOOPER_BROADCAST_QUEUE_SIZE", "1024")),
    )
