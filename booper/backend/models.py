"""Domain models shared by the state store, sessions and API responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Player:
    id: str
    name: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class StateSnapshot:
    """Isolated copy of the game state taken at one instant."""

    players: dict[str, Player]
    boop_log: dict[str, frozenset[str]]
    boops_made: dict[str, int]
    boops_received: dict[str, int]

    def has_boop(self, booper_id: str, booped_id: str) -> bool:
        return booped_id in self.boop_log.get(booper_id, frozenset())

    def to_dict(self) -> dict[str, Any]:
        return {
            "players": {player_id: player.to_dict() for player_id, player in self.players.items()},
            "boopLog": {
                booper_id: {booped_id: True for booped_id in sorted(targets)}
                for booper_id, targets in self.boop_log.items()
            },
            "boopsMade": dict(self.boops_made),
            "boopsReceived": dict(self.boops_received),
        }
