"""Twilio Media Streams WebSocket serializer.

Translates between Twilio's Media Streams WebSocket protocol and RoomBridge's
event model. Twilio streams audio as base64-encoded payloads inside JSON
text frames; the bytes are relayed untouched.

Protocol reference:
    https://www.twilio.com/docs/voice/media-streams/websocket-messages
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any

from roombridge.core.errors import ProtocolError
from roombridge.core.events import (
    MarkAck,
    MediaChunk,
    ProviderEvent,
    StreamStarted,
    StreamStopped,
)
from roombridge.serializers.base import BaseSerializer


class TwilioSerializer(BaseSerializer):
    """Serializer for the Twilio Media Streams WebSocket protocol.

    Twilio sends JSON messages with an ``event`` field that indicates the
    message type. Audio payloads arrive base64-encoded in ``media`` events
    and are decoded before being wrapped in a :class:`MediaChunk`.
    """

    @property
    def name(self) -> str:
        return "twilio"

    # ------------------------------------------------------------------
    # Deserialization (provider -> RoomBridge events)
    # ------------------------------------------------------------------

    def deserialize(self, raw: bytes | str | dict) -> ProviderEvent | None:
        """Parse a Twilio Media Streams message into a RoomBridge event.

        Message types handled:
            * ``connected`` -- initial handshake (ignored, returns None).
            * ``start``     -- stream metadata; produces :class:`StreamStarted`.
            * ``media``     -- audio payload; produces :class:`MediaChunk`.
            * ``stop``      -- stream ended; produces :class:`StreamStopped`.

        Anything else raises :class:`ProtocolError`.
        """
        msg = self._parse_message(raw)
        event_type = msg.get("event")

        if event_type == "connected":
            return None

        if event_type == "start":
            return self._handle_start(msg)

        if event_type == "media":
            return self._handle_media(msg)

        if event_type == "stop":
            return StreamStopped()

        raise ProtocolError(f"Unknown Twilio event: {event_type!r}")

    # ------------------------------------------------------------------
    # Serialization (RoomBridge events -> provider wire format)
    # ------------------------------------------------------------------

    def serialize(self, event: MarkAck) -> str:
        """Build a Twilio ``mark`` acknowledgement for the stream."""
        return json.dumps(
            {
                "event": "mark",
                "streamSid": event.session_id,
            }
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _parse_message(raw: bytes | str | dict) -> dict[str, Any]:
        """Normalise the raw WebSocket frame into a dict."""
        if isinstance(raw, dict):
            return raw
        try:
            if isinstance(raw, bytes):
                raw = raw.decode("utf-8")
            msg = json.loads(raw)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ProtocolError(f"Invalid JSON frame: {e}") from e
        if not isinstance(msg, dict):
            raise ProtocolError(f"Expected a JSON object, got {type(msg).__name__}")
        return msg

    def _handle_start(self, msg: dict) -> StreamStarted:
        """Process a Twilio ``start`` message."""
        start_data = msg.get("start")
        if not isinstance(start_data, dict) or not start_data.get("streamSid"):
            raise ProtocolError("Twilio start event without start.streamSid")

        metadata: dict[str, Any] = {
            "account_sid": start_data.get("accountSid", ""),
            "custom_parameters": start_data.get("customParameters", {}),
            "media_format": start_data.get("mediaFormat", {}),
        }

        return StreamStarted(
            session_id=start_data["streamSid"],
            call_id=start_data.get("callSid", ""),
            metadata=metadata,
        )

    def _handle_media(self, msg: dict) -> MediaChunk:
        """Process a Twilio ``media`` message.

        A media frame is always acknowledged, so a missing or undecodable
        payload yields an empty chunk carrying ``error`` instead of raising.
        """
        media_data = msg.get("media")
        if not isinstance(media_data, dict) or "payload" not in media_data:
            return MediaChunk(error="media event without media.payload")
        try:
            audio_bytes = base64.b64decode(media_data["payload"], validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            return MediaChunk(error=f"invalid base64 media payload: {e}")
        return MediaChunk(payload=audio_bytes)
