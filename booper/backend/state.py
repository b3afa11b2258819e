"""Shared game state: connected players, the boop ledger and boop counters."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from .models import Player, StateSnapshot


class DuplicatePlayerError(RuntimeError):
    """Raised when a player id is added twice."""


class GameState:
    """Player registry plus a directed boop ledger.

    Every public method runs under one lock, so each call is atomic with
    respect to the others. The lock is never held across I/O.

    The ledger stores at most one direction between any two players: a boop
    from B to A erases an existing A -> B entry before recording B -> A.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._players: dict[str, Player] = {}
        self._boop_log: dict[str, set[str]] = {}
        self._boops_made: dict[str, int] = {}
        self._boops_received: dict[str, int] = {}
        self.started_at = datetime.now(timezone.utc)

    @property
    def player_count(self) -> int:
        with self._lock:
            return len(self._players)

    def has_player(self, player_id: str) -> bool:
        with self._lock:
            return player_id in self._players

    def add_player(self, player: Player) -> None:
        with self._lock:
            if player.id in self._players:
                raise DuplicatePlayerError(f"player {player.id!r} is already present")
            self._players[player.id] = player

    def remove_player(self, player_id: str) -> None:
        with self._lock:
            self._players.pop(player_id, None)
            self._boop_log.pop(player_id, None)
            for booper_id in list(self._boop_log):
                targets = self._boop_log[booper_id]
                targets.discard(player_id)
                if not targets:
                    del self._boop_log[booper_id]
            self._boops_made.pop(player_id, None)
            self._boops_received.pop(player_id, None)

    def record_boop(self, booper_id: str, booped_id: str) -> bool:
        """Record ``booper_id`` -> ``booped_id``.

        Returns ``False`` without touching state when that exact direction is
        already recorded, ``True`` otherwise.
        """
        with self._lock:
            if booped_id in self._boop_log.get(booper_id, ()):
                return False

            reverse = self._boop_log.get(booped_id)
            if reverse is not None:
                reverse.discard(booper_id)
                if not reverse:
                    del self._boop_log[booped_id]

            self._boop_log.setdefault(booper_id, set()).add(booped_id)
            self._boops_made[booper_id] = self._boops_made.get(booper_id, 0) + 1
            self._boops_received[booped_id] = self._boops_received.get(booped_id, 0) + 1
            return True

    def snapshot(self) -> StateSnapshot:
        with self._lock:
            return StateSnapshot(
                players=dict(self._players),
                boop_log={booper_id: frozenset(targets) for booper_id, targets in self._boop_log.items()},
                boops_made=dict(self._boops_made),
                boops_received=dict(self._boops_received),
            )
