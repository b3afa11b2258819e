"""Per-connection session: outbound queue plus the read and write pumps."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from enum import Enum
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import anyio

from .audit import AuditSink
from .config import BackendSettings
from .protocol import (
    BOOP_REQUEST,
    REASON_ALREADY_BOOPED,
    REASON_SELF_BOOP,
    ProtocolError,
    boop_denied,
    boop_event,
    parse_boop_request,
    parse_envelope,
)
from .state import GameState
from .transport import MessageKind, Transport

if TYPE_CHECKING:
    from .hub import Hub

logger = logging.getLogger(__name__)


class OutboundQueueClosed(Exception):
    """Raised when putting onto a queue that has been closed."""


class OutboundQueue:
    """Bounded FIFO of serialized messages with a single consumer.

    Producers never block: ``put_nowait`` raises ``asyncio.QueueFull`` or
    ``OutboundQueueClosed``. After ``close`` the consumer drains what is left
    and then ``get`` returns ``None``.
    """

    def __init__(self, maxsize: int) -> None:
        self._maxsize = maxsize
        self._items: deque[str] = deque()
        self._closed = False
        self._ready = asyncio.Event()

    def __len__(self) -> int:
        return len(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def full(self) -> bool:
        return len(self._items) >= self._maxsize

    def put_nowait(self, message: str) -> None:
        if self._closed:
            raise OutboundQueueClosed()
        if self.full():
            raise asyncio.QueueFull()
        self._items.append(message)
        self._ready.set()

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    async def get(self) -> str | None:
        while not self._items:
            if self._closed:
                return None
            self._ready.clear()
            await self._ready.wait()
        return self._items.popleft()


class SessionState(str, Enum):
    CONNECTED = "connected"
    CLOSING = "closing"
    CLOSED = "closed"


class Session:
    """One connected player.

    ``CONNECTED -> CLOSING`` happens on a transport error or when the hub
    closes the outbound queue. ``CLOSED`` is reached only after both pumps
    have exited and the hub has purged the player from the game state.
    """

    def __init__(
        self,
        player_id: str,
        transport: Transport,
        hub: Hub,
        state: GameState,
        settings: BackendSettings,
        audit_sink: AuditSink,
    ) -> None:
        self.player_id = player_id
        self.outbound = OutboundQueue(settings.send_queue_size)
        self.status = SessionState.CONNECTED
        self._transport = transport
        self._hub = hub
        self._state = state
        self._settings = settings
        self._audit_sink = audit_sink
        self._exited_pumps = 0
        self._purged = False
        self._closed = asyncio.Event()
        self._last_seen = 0.0

    def __repr__(self) -> str:
        return f"Session(player_id={self.player_id!r}, status={self.status.value})"

    @property
    def purged(self) -> bool:
        return self._purged

    def close_outbound(self) -> None:
        """Hub-side close: the write pump drains, sends a close frame and exits."""
        self.outbound.close()
        self._begin_closing()

    def mark_purged(self) -> None:
        self._purged = True
        self._maybe_closed()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    async def run(self) -> None:
        """Run both pumps until each has exited."""
        self._last_seen = asyncio.get_running_loop().time()
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._guarded, self.read_pump)
            tg.start_soon(self._guarded, self.write_pump)

    async def _guarded(self, pump: Callable[[], Awaitable[None]]) -> None:
        try:
            await pump()
        finally:
            self._exited_pumps += 1
            self._maybe_closed()

    async def read_pump(self) -> None:
        try:
            while True:
                try:
                    raw = await self._read_frame()
                except asyncio.TimeoutError:
                    logger.info("Player %s idle for %.0fs, disconnecting", self.player_id, self._settings.read_timeout)
                    break
                except ConnectionError as exc:
                    logger.debug("Read from %s ended: %s", self.player_id, exc)
                    break
                self._touch()
                await self._handle_frame(raw)
        finally:
            self._begin_closing()
            # Teardown must finish even when the connection task is cancelled.
            with anyio.CancelScope(shield=True):
                await self._hub.deregister(self)
                with anyio.move_on_after(self._settings.write_timeout):
                    await self._transport.close()

    async def _read_frame(self) -> str:
        """Read one frame, enforcing the read deadline when pongs are visible.

        The deadline is ``read_timeout`` after the last frame or pong, so a
        quiet peer that answers pings stays connected. Without pong
        visibility the hosting server's keepalive ends dead connections.
        """
        if not self._transport.observes_pongs:
            return await self._transport.read_message()

        loop = asyncio.get_running_loop()
        read = asyncio.ensure_future(self._transport.read_message())
        try:
            while True:
                remaining = self._last_seen + self._settings.read_timeout - loop.time()
                if remaining <= 0:
                    raise asyncio.TimeoutError()
                done, _ = await asyncio.wait({read}, timeout=remaining)
                if done:
                    return read.result()
        finally:
            read.cancel()

    async def write_pump(self) -> None:
        loop = asyncio.get_running_loop()
        write_timeout = self._settings.write_timeout
        interval = self._settings.ping_interval if self._transport.observes_pongs else None
        next_ping = loop.time() + interval if interval is not None else None
        try:
            while True:
                timeout = None if next_ping is None else max(0.0, next_ping - loop.time())
                try:
                    message = await asyncio.wait_for(self.outbound.get(), timeout)
                except asyncio.TimeoutError:
                    next_ping = loop.time() + interval
                    pong = await asyncio.wait_for(self._transport.ping(), write_timeout)
                    pong.add_done_callback(self._on_pong)
                    continue

                if message is None:
                    await asyncio.wait_for(self._transport.write_message(MessageKind.CLOSE), write_timeout)
                    return
                await asyncio.wait_for(self._transport.write_message(MessageKind.TEXT, message), write_timeout)
        except (ConnectionError, asyncio.TimeoutError) as exc:
            logger.debug("Write to %s ended: %r", self.player_id, exc)
        finally:
            self._begin_closing()
            with anyio.move_on_after(write_timeout, shield=True):
                await self._transport.close()

    def _on_pong(self, pong: asyncio.Future[None]) -> None:
        if not pong.cancelled() and pong.exception() is None:
            self._touch()

    def _touch(self) -> None:
        self._last_seen = asyncio.get_running_loop().time()

    async def _handle_frame(self, raw: str) -> None:
        try:
            envelope = parse_envelope(raw)
        except ProtocolError as exc:
            logger.warning("Ignoring frame from %s: %s", self.player_id, exc)
            return

        if envelope.type == BOOP_REQUEST:
            await self._handle_boop_request(envelope.payload)

    async def _handle_boop_request(self, payload: Any) -> None:
        try:
            request = parse_boop_request(payload)
        except ProtocolError as exc:
            logger.warning("Ignoring boop from %s: %s", self.player_id, exc)
            return

        booped_id = request.booped_id
        if not booped_id:
            logger.debug("Ignoring boop from %s without target", self.player_id)
            return
        if booped_id == self.player_id:
            self._send_private(boop_denied(booped_id, REASON_SELF_BOOP))
            return
        if not self._state.has_player(booped_id):
            logger.debug("Ignoring boop from %s at unknown player %s", self.player_id, booped_id)
            return

        if self._state.record_boop(self.player_id, booped_id):
            await self._hub.broadcast(boop_event(self.player_id, booped_id))
            self._audit_sink.record_boop(self.player_id, booped_id)
        else:
            self._send_private(boop_denied(booped_id, REASON_ALREADY_BOOPED))

    def _send_private(self, message: str) -> None:
        # Best effort: dropped when the queue is full or already closed.
        try:
            self.outbound.put_nowait(message)
        except (asyncio.QueueFull, OutboundQueueClosed):
            logger.debug("Dropped private message for %s", self.player_id)

    def _begin_closing(self) -> None:
        if self.status is SessionState.CONNECTED:
            self.status = SessionState.CLOSING

    def _maybe_closed(self) -> None:
        if self._purged and self._exited_pumps == 2 and self.status is not SessionState.CLOSED:
            self.status = SessionState.CLOSED
            self._closed.set()
