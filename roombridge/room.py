"""Room connector: lifecycle of one outbound real-time room connection."""

from __future__ import annotations

from typing import Any, Callable

from livekit import rtc
from loguru import logger

from roombridge.core.errors import InvalidStateError, PublishError, RoomConnectionError


class RoomConnector:
    """Owns exactly one ``livekit.rtc.Room`` for the lifetime of a call.

    - :meth:`connect` may be called at most once.
    - :meth:`publish` requires a live connection.
    - :meth:`disconnect` is idempotent and safe on a never-connected instance.

    Args:
        room_factory: Builds the underlying room client. Defaults to
            ``livekit.rtc.Room``.
    """

    def __init__(self, room_factory: Callable[[], Any] | None = None) -> None:
        self._room_factory = room_factory or rtc.Room
        self._room: Any | None = None
        self._connect_attempted = False
        self._disconnected = False

    @property
    def is_connected(self) -> bool:
        return self._room is not None and not self._disconnected

    async def connect(self, url: str, token: str) -> None:
        """Join the room at ``url`` with the bearer ``token``.

        Raises:
            InvalidStateError: If connect was already attempted or the
                connector has been disconnected.
            RoomConnectionError: If the room client fails to connect.
        """
        if self._connect_attempted or self._disconnected:
            raise InvalidStateError("connect() may only be called once per RoomConnector")
        self._connect_attempted = True

        room = self._room_factory()
        logger.info(f"Connecting to room service: {url}")
        try:
            await room.connect(url, token)
        except Exception as e:
            await self._release(room)
            raise RoomConnectionError(f"Failed to connect to {url}: {e}") from e
        except BaseException:
            # Cancelled (e.g. by a connect timeout); the join may still land
            await self._release(room)
            raise

        if self._disconnected:
            # disconnect() ran while the connect was in flight
            await self._release(room)
            raise RoomConnectionError("Room connector was disconnected during connect")

        self._room = room
        logger.info("Connected to room")

    async def publish(self, payload: bytes, *, reliable: bool, label: str) -> None:
        """Send a binary payload on the room's data channel.

        Args:
            payload: Opaque bytes to send.
            reliable: True for control/greeting payloads, False for audio.
            label: Topic label for the payload (e.g. "audio", "greeting").

        Raises:
            InvalidStateError: Before connect or after disconnect.
            PublishError: If the room client rejects the publish.
        """
        if not self.is_connected:
            raise InvalidStateError(f"Cannot publish {label!r}: room not connected")
        try:
            await self._room.local_participant.publish_data(
                payload,
                reliable=reliable,
                topic=label,
            )
        except Exception as e:
            raise PublishError(f"Failed to publish {label!r} ({len(payload)} bytes): {e}") from e

    async def disconnect(self) -> None:
        """Leave the room. Safe to call any number of times."""
        if self._disconnected:
            return
        # Flag first so a concurrent caller returns immediately
        self._disconnected = True

        room, self._room = self._room, None
        if room is None:
            return
        try:
            await room.disconnect()
        except Exception as e:
            logger.warning(f"Error while disconnecting from room: {e}")
        else:
            logger.info("Disconnected from room")

    @staticmethod
    async def _release(room: Any) -> None:
        """Disconnect a room client that never became the connector's room."""
        try:
            await room.disconnect()
        except Exception as e:
            logger.warning(f"Error while releasing unconnected room: {e}")
