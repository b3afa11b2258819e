"""Message-framed transport boundary used by sessions."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Protocol

from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState


class MessageKind(str, Enum):
    TEXT = "text"
    CLOSE = "close"


class TransportClosed(ConnectionError):
    """The peer went away or the connection was already closed."""


class FrameTooLarge(ConnectionError):
    """An inbound frame exceeded the configured size limit."""


class Transport(Protocol):
    # When False, pongs never reach the application and read liveness is
    # left to the server hosting the connection.
    observes_pongs: bool

    async def read_message(self) -> str:
        """Return the next inbound frame, raising ``TransportClosed`` at end of stream."""

    async def write_message(self, kind: MessageKind, data: str = "") -> None:
        """Write one frame of the given kind."""

    async def ping(self) -> asyncio.Future[None]:
        """Send a ping frame and return a future resolved by the matching pong."""

    async def close(self) -> None:
        """Close the connection; safe to call more than once."""


class StarletteTransport:
    """Adapts a FastAPI websocket to the ``Transport`` protocol.

    ASGI carries neither ping nor pong frames, so this transport does not
    observe pongs. Dead peers are detected by uvicorn's ``ws_ping_interval``
    and ``ws_ping_timeout``, which close the socket and end ``read_message``.
    """

    observes_pongs = False

    def __init__(self, websocket: WebSocket, max_message_bytes: int) -> None:
        self._websocket = websocket
        self._max_message_bytes = max_message_bytes

    @property
    def _connected(self) -> bool:
        return (
            self._websocket.application_state == WebSocketState.CONNECTED
            and self._websocket.client_state == WebSocketState.CONNECTED
        )

    async def read_message(self) -> str:
        try:
            message = await self._websocket.receive()
        except (RuntimeError, WebSocketDisconnect) as exc:
            raise TransportClosed(str(exc)) from exc
        if message["type"] == "websocket.disconnect":
            raise TransportClosed(f"peer closed with code {message.get('code')}")

        if message.get("text") is not None:
            data = message["text"]
            size = len(data.encode("utf-8"))
        else:
            raw = message.get("bytes") or b""
            size = len(raw)
            data = raw.decode("utf-8", errors="replace")

        if size > self._max_message_bytes:
            raise FrameTooLarge(f"frame of {size} bytes exceeds limit of {self._max_message_bytes}")
        return data

    async def write_message(self, kind: MessageKind, data: str = "") -> None:
        if not self._connected:
            raise TransportClosed("websocket is not connected")
        try:
            if kind is MessageKind.TEXT:
                await self._websocket.send_text(data)
            else:
                await self._websocket.close(code=1000)
        except (RuntimeError, WebSocketDisconnect) as exc:
            raise TransportClosed(str(exc)) from exc

    async def ping(self) -> asyncio.Future[None]:
        raise NotImplementedError("ASGI websockets do not expose ping frames")

    async def close(self) -> None:
        if not self._connected:
            return
        try:
            await self._websocket.close(code=1000)
        except (RuntimeError, WebSocketDisconnect):
            # Peer already gone; nothing left to release.
            return
