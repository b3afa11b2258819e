"""Wire envelope parsing and outbound message builders."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import Player, StateSnapshot


BOOP_REQUEST = "boop_request"

WELCOME = "welcome"
PLAYER_JOINED = "player_joined"
PLAYER_LEFT = "player_left"
BOOP_EVENT = "boop_event"
BOOP_DENIED = "boop_denied"

REASON_ALREADY_BOOPED = "already-booped"
REASON_SELF_BOOP = "self-boop"


class ProtocolError(ValueError):
    """Raised for frames that cannot be decoded into a known message shape."""


class Envelope(BaseModel):
    type: str
    payload: Any = None


class BoopRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booped_id: str = Field(default="", alias="boopedID")


def parse_envelope(raw: str | bytes) -> Envelope:
    try:
        return Envelope.model_validate_json(raw)
    except ValidationError as exc:
        raise ProtocolError(f"invalid envelope: {exc.errors()[0]['msg']}") from exc


def parse_boop_request(payload: Any) -> BoopRequest:
    try:
        return BoopRequest.model_validate(payload if payload is not None else {})
    except ValidationError as exc:
        raise ProtocolError(f"invalid boop payload: {exc.errors()[0]['msg']}") from exc


def encode(message_type: str, payload: dict[str, Any]) -> str:
    return json.dumps({"type": message_type, "payload": payload}, separators=(",", ":"))


def format_timestamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def welcome(player: Player, snapshot: StateSnapshot, server_start: datetime) -> str:
    return encode(
        WELCOME,
        {
            "self": player.to_dict(),
            "currentState": snapshot.to_dict(),
            "serverStart": format_timestamp(server_start),
        },
    )


def player_joined(player: Player) -> str:
    return encode(PLAYER_JOINED, player.to_dict())


def player_left(player_id: str) -> str:
    return encode(PLAYER_LEFT, {"id": player_id})


def boop_event(booper_id: str, booped_id: str) -> str:
    return encode(BOOP_EVENT, {"booperID": booper_id, "boopedID": booped_id})


def boop_denied(booped_id: str, reason: str) -> str:
    return encode(BOOP_DENIED, {"boopedID": booped_id, "reason": reason})
