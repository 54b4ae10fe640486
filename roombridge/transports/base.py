"""Base transport interface for RoomBridge.

A transport wraps the provider's accepted websocket connection. The bridge
harness owns it; sessions only reference it to send acknowledgements.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator

from roombridge.core.errors import TransportClosed


class BaseTransport(ABC):
    """Abstract base class for the provider-side connection."""

    @abstractmethod
    async def send(self, data: bytes | str) -> None:
        """Send data over the transport.

        Raises:
            TransportClosed: If the connection is closed.
        """
        ...

    @abstractmethod
    async def recv(self) -> bytes | str:
        """Receive the next message from the transport.

        Raises:
            TransportClosed: If the connection is closed.
        """
        ...

    @abstractmethod
    async def close(self, code: int = 1000) -> None:
        """Close the transport connection gracefully. Idempotent."""
        ...

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the transport is currently connected."""
        ...

    async def __aiter__(self) -> AsyncIterator[bytes | str]:
        """Iterate over incoming messages until the connection closes."""
        while self.is_connected():
            try:
                msg = await self.recv()
            except TransportClosed:
                break
            yield msg
