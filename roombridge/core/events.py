"""Event model for RoomBridge.

The provider serializer turns each inbound media-stream frame into one of
the provider events below. The router dispatches on ``event_type`` and the
bridge turns :class:`MarkAck` back into the provider's wire format.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EventType(str, Enum):
    STREAM_STARTED = "start"
    MEDIA = "media"
    STREAM_STOPPED = "stop"
    MARK = "mark"


class Event(BaseModel):
    """Base event that all RoomBridge events inherit from."""

    event_type: EventType
    timestamp: float = Field(default_factory=time.time)


class StreamStarted(Event):
    """The provider opened the media stream for a call."""

    event_type: EventType = EventType.STREAM_STARTED
    session_id: str = ""  # provider stream identifier
    call_id: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)


class MediaChunk(Event):
    """A chunk of caller audio, already decoded from its transport encoding.

    ``error`` is set when the frame carried no usable payload; the chunk is
    still acknowledged but nothing is published.
    """

    event_type: EventType = EventType.MEDIA
    payload: bytes = b""
    error: str = ""


class StreamStopped(Event):
    """The provider ended the media stream."""

    event_type: EventType = EventType.STREAM_STOPPED


class MarkAck(Event):
    """Acknowledgement sent back to the provider.

    ``session_id`` may be empty when the stream identifier is not yet known.
    """

    event_type: EventType = EventType.MARK
    session_id: str = ""


# Type alias for any inbound provider event
ProviderEvent = StreamStarted | MediaChunk | StreamStopped
