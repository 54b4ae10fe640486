"""Error taxonomy for RoomBridge.

Fatal errors (credential issuance, room connect) surface to the bridge
harness and tear the session down. Per-message errors (publish, protocol,
out-of-sequence connector calls) are logged by the router and swallowed so
one bad frame cannot end an otherwise healthy call.
"""

from __future__ import annotations


class BridgeError(Exception):
    """Base class for all RoomBridge errors."""


class CredentialError(BridgeError):
    """An access token could not be issued."""


class RoomConnectionError(BridgeError):
    """The room connection could not be established."""


class PublishError(BridgeError):
    """A single data publish to the room failed."""


class ProtocolError(BridgeError):
    """An inbound provider frame was malformed or of an unknown kind."""


class InvalidStateError(BridgeError):
    """A room connector method was called out of sequence."""


class TransportClosed(BridgeError):
    """The provider websocket closed or failed."""
