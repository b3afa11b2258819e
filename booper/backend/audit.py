"""Structured audit trail for accepted boops."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Protocol

from .protocol import format_timestamp


class AuditSink(Protocol):
    def record_boop(self, booper_id: str, booped_id: str) -> None:
        """Record one accepted (non-duplicate) boop."""


class LoggingAuditSink:
    """Writes one JSON object per boop to the ``booper.audit`` logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("booper.audit")

    def record_boop(self, booper_id: str, booped_id: str) -> None:
        entry = {
            "ts": format_timestamp(datetime.now(timezone.utc)),
            "event": "boop",
            "booperID": booper_id,
            "boopedID": booped_id,
        }
        self._logger.info(json.dumps(entry, separators=(",", ":")))
