import threading

import pytest

from booper.backend.models import Player
from booper.backend.state import DuplicatePlayerError, GameState


def _state_with(*player_ids: str) -> GameState:
    state = GameState()
    for player_id in player_ids:
        state.add_player(Player(id=player_id, name=f"Player {player_id}"))
    return state


def test_record_boop_rejects_repeat_of_same_direction() -> None:
    state = _state_with("a", "b")

    assert state.record_boop("a", "b") is True
    assert state.record_boop("a", "b") is False

    snapshot = state.snapshot()
    assert snapshot.boops_made == {"a": 1}
    assert snapshot.boops_received == {"b": 1}


def test_record_boop_flips_direction_and_counts_both() -> None:
    state = _state_with("a", "b")

    assert state.record_boop("a", "b") is True
    assert state.record_boop("b", "a") is True

    snapshot = state.snapshot()
    assert snapshot.has_boop("b", "a")
    assert not snapshot.has_boop("a", "b")
    assert snapshot.boop_log == {"b": frozenset({"a"})}
    assert snapshot.boops_made == {"a": 1, "b": 1}
    assert snapshot.boops_received == {"a": 1, "b": 1}


def test_ledger_holds_at_most_one_direction_per_pair() -> None:
    state = _state_with("a", "b", "c")
    sequence = [("a", "b"), ("b", "a"), ("b", "a"), ("a", "b"), ("c", "a"), ("a", "c"), ("b", "c"), ("a", "b")]

    for booper_id, booped_id in sequence:
        state.record_boop(booper_id, booped_id)
        snapshot = state.snapshot()
        for first, second in (("a", "b"), ("a", "c"), ("b", "c")):
            assert not (snapshot.has_boop(first, second) and snapshot.has_boop(second, first))


def test_remove_player_purges_every_trace() -> None:
    state = _state_with("a", "b", "c")
    state.record_boop("a", "b")
    state.record_boop("c", "a")
    state.record_boop("b", "c")

    state.remove_player("a")
    snapshot = state.snapshot()

    assert "a" not in snapshot.players
    assert "a" not in snapshot.boop_log
    assert all("a" not in targets for targets in snapshot.boop_log.values())
    assert "a" not in snapshot.boops_made
    assert "a" not in snapshot.boops_received
    assert snapshot.boop_log == {"b": frozenset({"c"})}


def test_remove_player_is_idempotent() -> None:
    state = _state_with("a")

    state.remove_player("a")
    state.remove_player("a")
    state.remove_player("missing")

    assert state.player_count == 0


def test_add_player_rejects_duplicate_id() -> None:
    state = _state_with("a")

    with pytest.raises(DuplicatePlayerError):
        state.add_player(Player(id="a", name="Again"))


def test_snapshot_is_isolated_from_later_changes() -> None:
    state = _state_with("a", "b")
    state.record_boop("a", "b")
    snapshot = state.snapshot()

    state.record_boop("b", "a")
    state.remove_player("b")

    assert snapshot.has_boop("a", "b")
    assert "b" in snapshot.players
    assert snapshot.boops_made == {"a": 1}


def test_snapshot_serializes_wire_shape() -> None:
    state = _state_with("a", "b")
    state.record_boop("a", "b")

    data = state.snapshot().to_dict()

    assert data["players"]["a"] == {"id": "a", "name": "Player a"}
    assert data["boopLog"] == {"a": {"b": True}}
    assert data["boopsMade"] == {"a": 1}
    assert data["boopsReceived"] == {"b": 1}


def test_concurrent_boops_never_leave_both_directions() -> None:
    state = _state_with("a", "b")
    observed_violations: list[dict] = []
    stop = threading.Event()

    def booper(source: str, target: str) -> None:
        for _ in range(2000):
            state.record_boop(source, target)

    def watcher() -> None:
        while not stop.is_set():
            snapshot = state.snapshot()
            if snapshot.has_boop("a", "b") and snapshot.has_boop("b", "a"):
                observed_violations.append(snapshot.to_dict())

    threads = [threading.Thread(target=booper, args=("a", "b")), threading.Thread(target=booper, args=("b", "a"))]
    watch = threading.Thread(target=watcher)
    watch.start()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    stop.set()
    watch.join()

    final = state.snapshot()
    assert observed_violations == []
    assert final.has_boop("a", "b") != final.has_boop("b", "a")
    assert final.boops_made["a"] + final.boops_made["b"] == final.boops_received["a"] + final.boops_received["b"]
