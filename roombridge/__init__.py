"""RoomBridge - relay live phone calls into real-time rooms.

Accepts Twilio Media Streams websockets and forwards caller audio into a
LiveKit room's data channel, where a voice agent can pick it up.

Quick start:
    $ pip install roombridge
    $ export LIVEKIT_URL=wss://... LIVEKIT_API_KEY=... LIVEKIT_API_SECRET=...
    $ roombridge run

Programmatic:
    from roombridge import RoomBridge, create_app

    bridge = RoomBridge({"livekit_url": "wss://...", "api_key": "...", "api_secret": "..."})

    @bridge.on_call_start
    async def handle_call(session):
        print(f"Stream {session.session_id} joined {session.room_name}")

    app = create_app(bridge)
"""

__version__ = "0.1.0"

# Core
from roombridge.bridge import RoomBridge
from roombridge.config import BridgeConfig, KeepAliveConfig, RoomConfig, ServerConfig, load_config
from roombridge.session import CallSession, KeepAliveTimer, SessionState, SessionStore
from roombridge.router import EventRouter

# Room side
from roombridge.auth import RoomGrants, TokenIssuer
from roombridge.room import RoomConnector

# Errors
from roombridge.core.errors import (
    BridgeError,
    CredentialError,
    InvalidStateError,
    ProtocolError,
    PublishError,
    RoomConnectionError,
    TransportClosed,
)

# Events
from roombridge.core.events import (
    Event,
    EventType,
    MarkAck,
    MediaChunk,
    StreamStarted,
    StreamStopped,
)

# Serializers / transports
from roombridge.serializers.base import BaseSerializer
from roombridge.serializers.twilio import TwilioSerializer
from roombridge.transports.base import BaseTransport

# HTTP
from roombridge.server import create_app, run_server
from roombridge.webhook import build_stream_twiml

__all__ = [
    # Core
    "RoomBridge",
    "BridgeConfig",
    "KeepAliveConfig",
    "RoomConfig",
    "ServerConfig",
    "load_config",
    "CallSession",
    "KeepAliveTimer",
    "SessionState",
    "SessionStore",
    "EventRouter",
    # Room side
    "RoomGrants",
    "TokenIssuer",
    "RoomConnector",
    # Errors
    "BridgeError",
    "CredentialError",
    "InvalidStateError",
    "ProtocolError",
    "PublishError",
    "RoomConnectionError",
    "TransportClosed",
    # Events
    "Event",
    "EventType",
    "MarkAck",
    "MediaChunk",
    "StreamStarted",
    "StreamStopped",
    # Serializers / transports
    "BaseSerializer",
    "TwilioSerializer",
    "BaseTransport",
    # HTTP
    "create_app",
    "run_server",
    "build_stream_twiml",
]
