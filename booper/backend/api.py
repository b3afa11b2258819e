"""FastAPI endpoints: websocket join handshake and read-only state view."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import Depends, FastAPI, WebSocket
from pydantic import BaseModel

from .audit import AuditSink, LoggingAuditSink
from .config import BackendSettings, load_settings
from .hub import Hub
from .players import new_player
from .protocol import format_timestamp, player_joined, welcome
from .session import Session
from .state import GameState
from .transport import StarletteTransport

logger = logging.getLogger(__name__)


class StateResponse(BaseModel):
    connected: int
    serverStart: str
    state: dict[str, Any]


def create_app(
    settings: BackendSettings | None = None,
    state: GameState | None = None,
    audit_sink: AuditSink | None = None,
) -> FastAPI:
    app_settings = settings if settings is not None else load_settings()
    game_state = state if state is not None else GameState()
    sink = audit_sink if audit_sink is not None else LoggingAuditSink()
    hub = Hub(state=game_state, queue_size=app_settings.broadcast_queue_size)

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        hub.start()
        logger.info("Booper hub started")
        try:
            yield
        finally:
            await hub.stop()
            logger.info("Booper hub stopped")

    app = FastAPI(title="Booper API", version="0.1.0", lifespan=lifespan)
    app.state.settings = app_settings
    app.state.game_state = game_state
    app.state.hub = hub

    def get_state() -> GameState:
        return game_state

    @app.get("/api/state", response_model=StateResponse)
    def read_state(local_state: GameState = Depends(get_state)) -> StateResponse:
        return StateResponse(
            connected=hub.member_count,
            serverStart=format_timestamp(local_state.started_at),
            state=local_state.snapshot().to_dict(),
        )

    @app.websocket("/ws")
    async def booper_ws(websocket: WebSocket) -> None:
        await websocket.accept()
        player = new_player()
        game_state.add_player(player)

        transport = StarletteTransport(websocket, max_message_bytes=app_settings.max_message_bytes)
        session = Session(
            player_id=player.id,
            transport=transport,
            hub=hub,
            state=game_state,
            settings=app_settings,
            audit_sink=sink,
        )
        # Welcome goes in first so it precedes any broadcast fanned out after registration.
        session.outbound.put_nowait(welcome(player, game_state.snapshot(), game_state.started_at))
        await hub.register(session)
        await hub.broadcast(player_joined(player))

        await session.run()

    return app


app = create_app()
