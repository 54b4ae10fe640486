"""TwiML webhook responder.

When a call comes in, Twilio hits this webhook. The response is TwiML that
tells Twilio to open a Media Stream websocket back to this server, using the
requesting host as the websocket authority.
"""

from __future__ import annotations

from xml.sax.saxutils import quoteattr


def build_stream_twiml(host: str, path: str = "/voice-stream") -> str:
    """Return TwiML that connects the call to ``wss://{host}{path}``.

    Raises:
        ValueError: If ``host`` is empty.
    """
    if not host:
        raise ValueError("A host is required to build the stream URL")
    url = quoteattr(f"wss://{host}{path}")
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<Response>
    <Connect>
        <Stream url={url} />
    </Connect>
</Response>"""
