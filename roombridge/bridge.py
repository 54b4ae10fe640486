"""RoomBridge - Central bridge orchestrator.

The RoomBridge class wires together, per accepted provider websocket:
- the provider transport + serializer (telephony side)
- a room connector (real-time room side)
- a CallSession and its EventRouter

Events from one connection are handled one at a time in arrival order. Every
exit path (stop event, socket close, socket error, activation failure) runs
the same teardown: cancel the keep-alive, leave the room, close the socket.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Awaitable, Callable

from loguru import logger

from roombridge.auth import RoomGrants, TokenIssuer
from roombridge.config import BridgeConfig, load_config
from roombridge.core.errors import (
    CredentialError,
    InvalidStateError,
    PublishError,
    RoomConnectionError,
    TransportClosed,
)
from roombridge.core.events import StreamStarted
from roombridge.room import RoomConnector
from roombridge.router import EventRouter
from roombridge.serializers.twilio import TwilioSerializer
from roombridge.session import CallSession, SessionStore
from roombridge.transports.base import BaseTransport

# Type for event handler callbacks
EventHandler = Callable[..., Awaitable[Any]]


class RoomBridge:
    """Bridges telephony media streams into real-time rooms.

    Usage:
        bridge = RoomBridge(BridgeConfig.from_env())

        @bridge.on_call_start
        async def handle_call(session):
            print(f"Call {session.call_id} joined {session.room_name}")

        app = create_app(bridge)
    """

    def __init__(
        self,
        config: BridgeConfig | dict | str | Path | None = None,
        token_issuer: TokenIssuer | None = None,
        room_factory: Callable[[], Any] | None = None,
    ) -> None:
        self.config = load_config(config)
        self.sessions = SessionStore()
        self._token_issuer = token_issuer or TokenIssuer.from_config(self.config.room)
        self._room_factory = room_factory

        self._handlers: dict[str, list[EventHandler]] = {
            "on_call_start": [],
            "on_call_end": [],
        }

    # ------------------------------------------------------------------
    # Decorator API for event handlers
    # ------------------------------------------------------------------

    def on_call_start(self, fn: EventHandler) -> EventHandler:
        """Register a handler fired once the session is connected to its room.

        The handler receives (session: CallSession).
        """
        self._handlers["on_call_start"].append(fn)
        return fn

    def on_call_end(self, fn: EventHandler) -> EventHandler:
        """Register a handler fired after a session has been torn down.

        The handler receives (session: CallSession).
        """
        self._handlers["on_call_end"].append(fn)
        return fn

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    async def handle_connection(self, transport: BaseTransport) -> CallSession:
        """Run one provider connection until it ends, then tear it down."""
        session = self.sessions.create(
            transport=transport,
            serializer=TwilioSerializer(),
            room=RoomConnector(self._room_factory),
        )
        router = EventRouter(session, activate=self.activate)
        logger.info(f"New provider connection: {session.connection_id}")

        try:
            async for raw in transport:
                await router.handle(raw)
                if session.is_terminated:
                    break
        except (CredentialError, RoomConnectionError) as e:
            logger.error(f"Session {session.connection_id} failed to start: {e}")
            await self._reject(transport)
        except Exception as e:
            logger.error(f"Bridge error for session {session.connection_id}: {e}")
        finally:
            await self.teardown(session)

        return session

    async def activate(self, session: CallSession, event: StreamStarted) -> None:
        """Join the room for a newly started stream.

        Raises:
            CredentialError: If the access token cannot be issued.
            RoomConnectionError: If connect fails or exceeds the timeout.
        """
        room_config = self.config.room
        room_name = self.config.room_name_for(event.session_id)
        token = self._token_issuer.issue(room_config.identity, RoomGrants(room=room_name))

        try:
            await asyncio.wait_for(
                session.room.connect(room_config.url, token),
                timeout=room_config.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise RoomConnectionError(
                f"Room connect timed out after {room_config.connect_timeout}s"
            ) from e
        session.room_name = room_name

        await self._publish_greeting(session)
        session.start_keepalive(self.config.keepalive.interval)
        await self._dispatch("on_call_start", session)

    async def teardown(self, session: CallSession) -> None:
        """Release everything the session owns. Safe to call more than once."""
        await session.terminate("closed")
        await session.transport.close()
        if self.sessions.get(session.connection_id) is not None:
            self.sessions.remove(session.connection_id)
            await self._dispatch("on_call_end", session)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _publish_greeting(self, session: CallSession) -> None:
        greeting = json.dumps({
            "type": "greeting",
            "text": self.config.room.greeting_text,
        }).encode("utf-8")
        try:
            await session.room.publish(greeting, reliable=True, label="greeting")
        except (PublishError, InvalidStateError) as e:
            logger.warning(f"Greeting publish failed on {session.connection_id}: {e}")

    async def _reject(self, transport: BaseTransport) -> None:
        try:
            await transport.send(json.dumps({"error": "Internal server error"}))
        except TransportClosed:
            pass
        await transport.close(code=1011)

    async def _dispatch(self, name: str, session: CallSession) -> None:
        for handler in self._handlers[name]:
            try:
                await handler(session)
            except Exception as e:
                logger.error(f"{name} handler error: {e}")
