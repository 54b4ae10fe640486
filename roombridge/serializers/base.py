"""Base serializer interface for RoomBridge.

Serializers are pure message translators with no I/O: they convert between
a provider's media-stream wire format and RoomBridge's event model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from roombridge.core.events import MarkAck, ProviderEvent


class BaseSerializer(ABC):
    """Abstract base class for telephony provider serializers.

    Key principles:
    - Serializers do NO I/O (no network calls, no file access)
    - They are stateless (call state lives in CallSession)
    - Malformed or unknown frames raise ProtocolError
    """

    @abstractmethod
    def deserialize(self, raw: bytes | str | dict) -> ProviderEvent | None:
        """Parse a raw provider message into a RoomBridge event.

        Args:
            raw: The raw message from the provider websocket. Could be:
                - bytes: UTF-8 encoded JSON text
                - str: JSON text message
                - dict: already-parsed JSON

        Returns:
            The parsed event, or None if the frame is a known message that
            needs no handling (e.g. a handshake).

        Raises:
            ProtocolError: If the frame is malformed or of an unknown kind.
        """
        ...

    @abstractmethod
    def serialize(self, event: MarkAck) -> str:
        """Convert an outbound acknowledgement to the provider's wire format."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this serializer (e.g., 'twilio')."""
        ...
