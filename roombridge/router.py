"""Event router: the per-call state machine.

Each inbound provider frame is parsed by the session's serializer and
dispatched through a transition table keyed by ``(state, event type)``.
Pairs missing from the table are ignored. Per-message failures are logged
and swallowed; activation failures propagate to the bridge harness.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from loguru import logger

from roombridge.core.errors import InvalidStateError, ProtocolError, PublishError
from roombridge.core.events import (
    EventType,
    MediaChunk,
    ProviderEvent,
    StreamStarted,
    StreamStopped,
)
from roombridge.session import CallSession, SessionState

# Called on the first start event, before the session becomes active
ActivationHook = Callable[[CallSession, StreamStarted], Awaitable[None]]

UNINITIALIZED = SessionState.UNINITIALIZED
ACTIVE = SessionState.ACTIVE

TRANSITIONS: dict[tuple[SessionState, EventType], str] = {
    (UNINITIALIZED, EventType.STREAM_STARTED): "_on_start",
    (UNINITIALIZED, EventType.MEDIA): "_on_media",
    (UNINITIALIZED, EventType.STREAM_STOPPED): "_on_stop",
    (ACTIVE, EventType.MEDIA): "_on_media",
    (ACTIVE, EventType.STREAM_STOPPED): "_on_stop",
}


class EventRouter:
    """Drives one CallSession from the provider's event stream.

    Usage:
        router = EventRouter(session, activate=bridge.activate)
        async for raw in transport:
            await router.handle(raw)
    """

    def __init__(self, session: CallSession, activate: ActivationHook | None = None) -> None:
        self.session = session
        self._activate = activate

    async def handle(self, raw: bytes | str | dict) -> None:
        """Parse one raw provider frame and apply its transition."""
        try:
            event = self.session.serializer.deserialize(raw)
        except ProtocolError as e:
            logger.warning(f"Ignoring provider frame on {self.session.connection_id}: {e}")
            return
        if event is None:
            return
        await self.dispatch(event)

    async def dispatch(self, event: ProviderEvent) -> None:
        """Apply the transition for ``event`` in the session's current state."""
        handler_name = TRANSITIONS.get((self.session.state, event.event_type))
        if handler_name is None:
            logger.debug(
                f"Ignoring {event.event_type.value} event in state "
                f"{self.session.state.value} ({self.session.connection_id})"
            )
            return
        await getattr(self, handler_name)(event)

    async def _on_start(self, event: StreamStarted) -> None:
        session = self.session
        session.session_id = event.session_id
        session.call_id = event.call_id
        session.metadata = event.metadata
        logger.info(f"Stream started: {session.session_id} (call: {session.call_id})")

        if self._activate is not None:
            await self._activate(session, event)
        session.state = SessionState.ACTIVE
        await session.send_mark()

    async def _on_media(self, event: MediaChunk) -> None:
        session = self.session
        session.media_chunks_in += 1
        session.audio_bytes_in += len(event.payload)

        if event.error:
            logger.warning(f"Skipping audio publish on {session.connection_id}: {event.error}")
        elif session.room.is_connected:
            try:
                await session.room.publish(event.payload, reliable=False, label="audio")
            except (PublishError, InvalidStateError) as e:
                session.publish_failures += 1
                logger.warning(f"Audio publish failed on {session.connection_id}: {e}")
        else:
            logger.debug(f"Room not connected, skipping audio publish ({session.connection_id})")

        # The provider expects an ack whether or not the publish succeeded
        await session.send_mark()

    async def _on_stop(self, event: StreamStopped) -> None:
        logger.info(f"Stream stopped: {self.session.session_id}")
        await self.session.terminate("stop")
