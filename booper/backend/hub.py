"""Hub owning the set of connected sessions and fan-out broadcast."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import deque
from enum import Enum
from typing import Union

from .protocol import player_left
from .session import OutboundQueueClosed, Session
from .state import GameState

logger = logging.getLogger(__name__)


class _EventKind(Enum):
    REGISTER = "register"
    DEREGISTER = "deregister"
    BROADCAST = "broadcast"


_Event = tuple[_EventKind, Union[Session, str]]


class Hub:
    """Single control task that owns membership and fans out messages.

    Register, deregister and broadcast requests share one FIFO queue and are
    handled by one consumer, so they take effect strictly in submission order
    and the membership set never needs a lock.
    """

    def __init__(self, state: GameState, queue_size: int = 1024) -> None:
        self._state = state
        self._members: set[Session] = set()
        self._events: asyncio.Queue[_Event] = asyncio.Queue(maxsize=queue_size)
        self._task: asyncio.Task[None] | None = None

    @property
    def members(self) -> frozenset[Session]:
        return frozenset(self._members)

    @property
    def member_count(self) -> int:
        return len(self._members)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def register(self, session: Session) -> None:
        await self._events.put((_EventKind.REGISTER, session))

    async def deregister(self, session: Session) -> None:
        await self._events.put((_EventKind.DEREGISTER, session))

    async def broadcast(self, message: str) -> None:
        await self._events.put((_EventKind.BROADCAST, message))

    def start(self) -> None:
        if not self.running:
            self._task = asyncio.create_task(self.run(), name="booper-hub")

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        for session in self._members:
            session.close_outbound()
        self._members.clear()

    async def join(self) -> None:
        """Wait until every event submitted so far has been handled."""
        await self._events.join()

    async def run(self) -> None:
        while True:
            kind, item = await self._events.get()
            try:
                if kind is _EventKind.REGISTER:
                    self._register(item)
                elif kind is _EventKind.DEREGISTER:
                    self._deregister(item)
                else:
                    self._fan_out(item)
            finally:
                self._events.task_done()

    def _register(self, session: Session) -> None:
        self._members.add(session)
        logger.info("Player %s connected (%d online)", session.player_id, len(self._members))

    def _deregister(self, session: Session) -> None:
        self._members.discard(session)
        session.close_outbound()
        if session.purged:
            return
        logger.info("Player %s disconnected (%d online)", session.player_id, len(self._members))
        self._fan_out(self._purge(session))

    def _purge(self, session: Session) -> str:
        """Drop the session's player from the game state; return the leave notice."""
        self._state.remove_player(session.player_id)
        session.mark_purged()
        return player_left(session.player_id)

    def _fan_out(self, message: str) -> None:
        # Evicting a slow member queues its leave notice here instead of
        # recursing back into a broadcast.
        pending = deque([message])
        while pending:
            current = pending.popleft()
            evicted: list[Session] = []
            for member in self._members:
                try:
                    member.outbound.put_nowait(current)
                except asyncio.QueueFull:
                    evicted.append(member)
                except OutboundQueueClosed:
                    continue

            for member in evicted:
                logger.warning("Player %s is not keeping up, disconnecting", member.player_id)
                self._members.discard(member)
                member.close_outbound()
                if not member.purged:
                    pending.append(self._purge(member))
