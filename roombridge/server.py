"""Built-in HTTP/WebSocket server for RoomBridge.

Provides a FastAPI application that answers Twilio's inbound-call webhook,
accepts the Media Stream websocket and hands each connection to the bridge.
Also exposes health check and status endpoints.
"""

from __future__ import annotations

from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from loguru import logger

from roombridge import __version__
from roombridge.bridge import RoomBridge
from roombridge.config import BridgeConfig, load_config
from roombridge.transports.websocket import WebSocketServerTransport
from roombridge.webhook import build_stream_twiml

WEBHOOK_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_app(bridge: RoomBridge | BridgeConfig | dict | str | Path | None = None) -> FastAPI:
    """Create a FastAPI application serving the webhook and media stream.

    Args:
        bridge: A configured RoomBridge, or any config source accepted by
            :func:`load_config` to build one.

    Returns:
        A FastAPI application instance.
    """
    if not isinstance(bridge, RoomBridge):
        bridge = RoomBridge(bridge)
    config = bridge.config

    app = FastAPI(
        title="RoomBridge",
        description="Relays Twilio Media Streams into real-time rooms",
        version=__version__,
    )
    app.state.bridge = bridge

    @app.get("/")
    async def root():
        return JSONResponse({"message": "RoomBridge"})

    @app.get("/health")
    async def health():
        return JSONResponse({"status": "ok", "active_calls": bridge.sessions.active_count})

    @app.get("/status")
    async def status():
        sessions = []
        for s in bridge.sessions.all_sessions:
            sessions.append({
                "connection_id": s.connection_id,
                "stream_sid": s.session_id,
                "call_sid": s.call_id,
                "room": s.room_name,
                "state": s.state.value,
                "media_chunks_in": s.media_chunks_in,
                "publish_failures": s.publish_failures,
                "duration_ms": s.duration_ms,
            })
        return JSONResponse({
            "active_calls": bridge.sessions.active_count,
            "sessions": sessions,
        })

    @app.api_route(config.server.webhook_path, methods=WEBHOOK_METHODS)
    async def incoming_call(request: Request):
        try:
            twiml = build_stream_twiml(request.headers.get("host", ""), config.server.stream_path)
        except Exception as e:
            logger.error(f"Error handling incoming call: {e}")
            return PlainTextResponse("Internal server error", status_code=500)
        return Response(content=twiml, media_type="text/xml")

    @app.websocket(config.server.stream_path)
    async def media_stream(websocket: WebSocket):
        await websocket.accept()
        logger.info(f"Provider WebSocket connected: {websocket.client}")
        await bridge.handle_connection(WebSocketServerTransport(websocket))

    return app


def run_server(
    config: BridgeConfig | dict | str | Path | None = None,
    host: str | None = None,
    port: int | None = None,
) -> None:
    """Run the RoomBridge server with uvicorn.

    Args:
        config: Bridge configuration.
        host: Override the listen host.
        port: Override the listen port.
    """
    bridge_config = load_config(config)
    app = create_app(bridge_config)

    uvicorn.run(
        app,
        host=host or bridge_config.server.listen_host,
        port=port or bridge_config.server.listen_port,
        ws="websockets",
        log_level=bridge_config.logging.level.lower(),
    )
