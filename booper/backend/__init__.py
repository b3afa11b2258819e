"""Backend package for the Booper presence server."""

from .audit import AuditSink, LoggingAuditSink
from .config import BackendSettings, load_settings
from .hub import Hub
from .models import Player, StateSnapshot
from .players import new_player, random_name
from .session import OutboundQueue, OutboundQueueClosed, Session, SessionState
from .state import DuplicatePlayerError, GameState

__all__ = [
    "AuditSink",
    "BackendSettings",
    "DuplicatePlayerError",
    "GameState",
    "Hub",
    "load_settings",
    "LoggingAuditSink",
    "new_player",
    "OutboundQueue",
    "OutboundQueueClosed",
    "Player",
    "random_name",
    "Session",
    "SessionState",
    "StateSnapshot",
]
