"""Call session management for RoomBridge.

Each accepted provider websocket gets exactly one CallSession: it holds the
provider stream identifier, the room connector bound to the call, and the
keep-alive timer. The SessionStore indexes live sessions for status
reporting; sessions never share mutable state with each other.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from roombridge.core.errors import TransportClosed
from roombridge.core.events import MarkAck
from roombridge.room import RoomConnector
from roombridge.serializers.base import BaseSerializer
from roombridge.transports.base import BaseTransport


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    TERMINATED = "terminated"


class KeepAliveTimer:
    """Recurring timer that awaits ``callback`` every ``interval`` seconds.

    The timer runs as a single asyncio task owned by the session.
    :meth:`cancel` is synchronous and idempotent.

    Args:
        interval: Seconds between ticks.
        callback: Coroutine function invoked on each tick.
        sleep: Sleep coroutine, replaceable in tests.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Awaitable[Any]],
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.interval = interval
        self._callback = callback
        self._sleep = sleep
        self._task: asyncio.Task | None = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._cancelled

    def start(self) -> None:
        if self._task is not None:
            raise RuntimeError("KeepAliveTimer already started")
        self._task = asyncio.create_task(self._run(), name="roombridge-keepalive")

    def cancel(self) -> None:
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> None:
        while True:
            await self._sleep(self.interval)
            try:
                await self._callback()
            except Exception as e:
                logger.warning(f"Keep-alive tick failed: {e}")


@dataclass
class CallSession:
    """Bridging state for a single telephony leg.

    Lifecycle: ``uninitialized`` (socket accepted) -> ``active`` (room
    connected, stream identifier known, keep-alive running) -> ``terminated``
    (room disconnected, keep-alive cancelled). Terminated is absorbing.
    """

    transport: BaseTransport
    serializer: BaseSerializer
    room: RoomConnector = field(default_factory=RoomConnector)

    # Local identifier used to index the session before the provider names it
    connection_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    # Provider stream identifier, echoed in every mark ack
    session_id: str = ""
    call_id: str = ""
    room_name: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    state: SessionState = SessionState.UNINITIALIZED
    keepalive: KeepAliveTimer | None = None
    started_at: float = field(default_factory=time.time)
    ended_at: float | None = None

    media_chunks_in: int = 0
    audio_bytes_in: int = 0
    publish_failures: int = 0

    @property
    def is_active(self) -> bool:
        return self.state is SessionState.ACTIVE

    @property
    def is_terminated(self) -> bool:
        return self.state is SessionState.TERMINATED

    @property
    def duration_ms(self) -> int:
        """Call duration in milliseconds."""
        end = self.ended_at or time.time()
        return int((end - self.started_at) * 1000)

    async def send_mark(self) -> bool:
        """Send a mark ack echoing the latest known stream identifier.

        Returns:
            True if the ack was written to the socket.
        """
        if self.is_terminated or not self.transport.is_connected():
            return False
        message = self.serializer.serialize(MarkAck(session_id=self.session_id))
        try:
            await self.transport.send(message)
        except TransportClosed as e:
            logger.debug(f"Mark not sent for {self.connection_id}: {e}")
            return False
        return True

    def start_keepalive(
        self,
        interval: float,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> KeepAliveTimer:
        """Start the owned keep-alive timer."""
        if self.keepalive is not None:
            raise RuntimeError(f"Keep-alive already started for {self.connection_id}")
        self.keepalive = KeepAliveTimer(interval, self._keepalive_tick, sleep=sleep)
        self.keepalive.start()
        return self.keepalive

    async def _keepalive_tick(self) -> None:
        if self.is_active and self.session_id:
            await self.send_mark()

    async def terminate(self, reason: str = "normal") -> None:
        """Cancel the keep-alive and leave the room. Idempotent."""
        if self.is_terminated:
            return
        self.state = SessionState.TERMINATED
        self.ended_at = time.time()
        if self.keepalive is not None:
            self.keepalive.cancel()
        await self.room.disconnect()
        logger.info(
            f"Session terminated: {self.session_id or self.connection_id} "
            f"(reason: {reason}, duration: {self.duration_ms}ms)"
        )


class SessionStore:
    """Index of live call sessions, keyed by connection id."""

    def __init__(self) -> None:
        self._sessions: dict[str, CallSession] = {}

    def create(self, **kwargs) -> CallSession:
        """Create and store a new session."""
        session = CallSession(**kwargs)
        self._sessions[session.connection_id] = session
        logger.info(f"Session created: {session.connection_id}")
        return session

    def get(self, connection_id: str) -> CallSession | None:
        return self._sessions.get(connection_id)

    def remove(self, connection_id: str) -> None:
        """Remove a session from the store."""
        session = self._sessions.pop(connection_id, None)
        if session:
            logger.info(
                f"Session removed: {session.connection_id} "
                f"(duration: {session.duration_ms}ms)"
            )

    @property
    def active_count(self) -> int:
        """Number of active sessions."""
        return sum(1 for s in self._sessions.values() if s.is_active)

    @property
    def all_sessions(self) -> list[CallSession]:
        return list(self._sessions.values())
