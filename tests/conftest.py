from __future__ import annotations

import asyncio
import json

import pytest

from roombridge.config import BridgeConfig
from roombridge.core.errors import TransportClosed
from roombridge.transports.base import BaseTransport

API_KEY = "devkey"
API_SECRET = "roombridge-test-secret-0123456789abcdef"


class FakeLocalParticipant:
    def __init__(self) -> None:
        self.published: list[tuple[bytes, bool, str]] = []
        self.fail = False

    async def publish_data(self, payload, *, reliable: bool = True, topic: str = "", **kwargs) -> None:
        if self.fail:
            raise RuntimeError("data channel closed")
        self.published.append((payload, reliable, topic))


class FakeRoom:
    """Stands in for ``livekit.rtc.Room``."""

    def __init__(self, connect_error: Exception | None = None, hang: bool = False) -> None:
        self.local_participant = FakeLocalParticipant()
        self.connect_error = connect_error
        self.hang = hang
        self.connect_calls: list[tuple[str, str]] = []
        self.disconnect_calls = 0

    async def connect(self, url: str, token: str) -> None:
        self.connect_calls.append((url, token))
        if self.hang:
            await asyncio.Event().wait()
        if self.connect_error is not None:
            raise self.connect_error

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        await asyncio.sleep(0)


class FakeTransport(BaseTransport):
    """In-memory provider websocket."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue = asyncio.Queue()
        self.sent: list[str] = []
        self.close_codes: list[int] = []
        self.connected = True

    def feed(self, *frames) -> None:
        for frame in frames:
            self.inbound.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def hang_up(self) -> None:
        self.inbound.put_nowait(None)

    @property
    def messages(self) -> list[dict]:
        return [json.loads(m) for m in self.sent]

    async def send(self, data) -> None:
        if not self.connected:
            raise TransportClosed("closed")
        self.sent.append(data)

    async def recv(self):
        if not self.connected:
            raise TransportClosed("closed")
        frame = await self.inbound.get()
        if frame is None:
            self.connected = False
            raise TransportClosed("peer hung up")
        return frame

    async def close(self, code: int = 1000) -> None:
        if self.connected:
            self.connected = False
            self.close_codes.append(code)

    def is_connected(self) -> bool:
        return self.connected


class TickGate:
    """Replacement for ``asyncio.sleep`` that only returns when ticked."""

    def __init__(self) -> None:
        self._ticks: asyncio.Queue = asyncio.Queue()

    async def sleep(self, _interval: float) -> None:
        await self._ticks.get()

    def tick(self, times: int = 1) -> None:
        for _ in range(times):
            self._ticks.put_nowait(None)


def start_frame(stream_sid: str = "S1", call_sid: str = "CA1") -> dict:
    return {"event": "start", "start": {"streamSid": stream_sid, "callSid": call_sid}}


def media_frame(payload: str = "AAAA") -> dict:
    return {"event": "media", "media": {"payload": payload}}


STOP_FRAME = {"event": "stop"}


@pytest.fixture
def config() -> BridgeConfig:
    return BridgeConfig.from_dict({
        "livekit_url": "wss://rooms.example.test",
        "api_key": API_KEY,
        "api_secret": API_SECRET,
        # Keep-alive ticks are driven explicitly in tests
        "keepalive_ms": 60_000,
    })


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def rooms() -> list[FakeRoom]:
    return []


@pytest.fixture
def room_factory(rooms):
    def factory() -> FakeRoom:
        room = FakeRoom()
        rooms.append(room)
        return room

    return factory


@pytest.fixture
def gate() -> TickGate:
    return TickGate()
