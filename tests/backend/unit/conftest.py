from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

import pytest

from booper.backend.config import BackendSettings
from booper.backend.transport import MessageKind, TransportClosed


class FakeTransport:
    observes_pongs = True

    def __init__(self, fail_writes: bool = False, stall_writes: bool = False, answer_pings: bool = True) -> None:
        self.inbound: asyncio.Queue[str | None] = asyncio.Queue()
        self.sent: list[tuple[MessageKind, str]] = []
        self.closed = False
        self.fail_writes = fail_writes
        self.stall_writes = stall_writes
        self.answer_pings = answer_pings
        self.release = asyncio.Event()
        self.pings = 0

    def feed(self, message: Any) -> None:
        self.inbound.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def disconnect(self) -> None:
        self.inbound.put_nowait(None)

    async def read_message(self) -> str:
        message = await self.inbound.get()
        if message is None:
            raise TransportClosed("peer went away")
        return message

    async def write_message(self, kind: MessageKind, data: str = "") -> None:
        if self.closed or self.fail_writes:
            raise TransportClosed("connection closed")
        if self.stall_writes:
            await self.release.wait()
        self.sent.append((kind, data))

    async def ping(self) -> asyncio.Future[None]:
        if self.closed:
            raise TransportClosed("connection closed")
        self.pings += 1
        loop = asyncio.get_running_loop()
        pong: asyncio.Future[None] = loop.create_future()
        if self.answer_pings:
            loop.call_soon(pong.set_result, None)
        return pong

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.inbound.put_nowait(None)

    def kinds(self) -> list[MessageKind]:
        return [kind for kind, _ in self.sent]

    def messages(self) -> list[dict[str, Any]]:
        return [json.loads(data) for kind, data in self.sent if kind is MessageKind.TEXT]


class RecordingAuditSink:
    def __init__(self) -> None:
        self.records: list[tuple[str, str]] = []

    def record_boop(self, booper_id: str, booped_id: str) -> None:
        self.records.append((booper_id, booped_id))


async def eventually(predicate: Callable[[], Any], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


async def drain(queue: Any) -> list[dict[str, Any]]:
    items = []
    while len(queue):
        items.append(json.loads(await queue.get()))
    return items


@pytest.fixture
def settings() -> BackendSettings:
    return BackendSettings(read_timeout=5.0, write_timeout=1.0, ping_interval=4.0, send_queue_size=8)


@pytest.fixture
def fake_transport() -> type[FakeTransport]:
    return FakeTransport


@pytest.fixture
def audit_sink() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def eventually_true() -> Callable[..., Any]:
    return eventually


@pytest.fixture
def drain_queue() -> Callable[..., Any]:
    return drain
