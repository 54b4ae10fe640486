"""WebSocket transport for RoomBridge.

Adapts an accepted FastAPI/Starlette websocket to :class:`BaseTransport`.
The websocket protocol itself is served by uvicorn's ``websockets``
implementation.
"""

from __future__ import annotations

from fastapi import WebSocket, WebSocketDisconnect
from loguru import logger

from roombridge.core.errors import TransportClosed
from roombridge.transports.base import BaseTransport


class WebSocketServerTransport(BaseTransport):
    """Transport wrapping an already-accepted provider websocket."""

    def __init__(self, websocket: WebSocket) -> None:
        self._ws = websocket
        self._connected = True

    async def send(self, data: bytes | str) -> None:
        if not self._connected:
            raise TransportClosed("Provider websocket is closed")
        try:
            if isinstance(data, bytes):
                await self._ws.send_bytes(data)
            else:
                await self._ws.send_text(data)
        except (WebSocketDisconnect, RuntimeError) as e:
            self._connected = False
            raise TransportClosed(f"Send failed: {e}") from e

    async def recv(self) -> bytes | str:
        if not self._connected:
            raise TransportClosed("Provider websocket is closed")
        try:
            msg = await self._ws.receive()
        except RuntimeError as e:
            self._connected = False
            raise TransportClosed(f"Receive failed: {e}") from e

        if msg["type"] == "websocket.disconnect":
            self._connected = False
            raise TransportClosed(f"Provider websocket closed (code {msg.get('code')})")
        if msg.get("text") is not None:
            return msg["text"]
        if msg.get("bytes") is not None:
            return msg["bytes"]
        raise TransportClosed(f"Unexpected websocket message: {msg['type']}")

    async def close(self, code: int = 1000) -> None:
        if not self._connected:
            return
        self._connected = False
        try:
            await self._ws.close(code=code)
        except RuntimeError as e:
            # Already closed by the peer
            logger.debug(f"Provider websocket close skipped: {e}")
        else:
            logger.info("Provider websocket disconnected")

    def is_connected(self) -> bool:
        return self._connected
