"""Configuration system for RoomBridge.

Supports loading from YAML files, dicts, the process environment, or
programmatic construction via Pydantic models. The config is built once at
process start and threaded into the token issuer, room connector and server.
"""

from __future__ import annotations

import copy
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ServerConfig(BaseModel):
    """Configuration for the HTTP/websocket side facing the telephony provider."""

    listen_host: str = "0.0.0.0"
    listen_port: int = 3000
    stream_path: str = "/voice-stream"
    webhook_path: str = "/incoming-call"


class RoomConfig(BaseModel):
    """Configuration for the real-time room side."""

    url: str = ""
    api_key: str = ""
    api_secret: str = ""
    room_name: str = "twilio-room"
    identity: str = "twilio-caller"
    # Join "{room_name}-{streamSid}" instead of one shared room
    room_per_call: bool = False
    token_ttl_seconds: int = 6 * 60 * 60
    connect_timeout: float | None = 10.0
    greeting_text: str = "Hello from Twilio caller!"


class KeepAliveConfig(BaseModel):
    """Keep-alive acknowledgement settings."""

    interval_ms: int = 250

    @property
    def interval(self) -> float:
        """Interval in seconds."""
        return self.interval_ms / 1000.0


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"


class BridgeConfig(BaseModel):
    """Top-level RoomBridge configuration.

    Examples:
        # Programmatic
        config = BridgeConfig(
            room=RoomConfig(url="wss://my.livekit.cloud", api_key="...", api_secret="..."),
        )

        # From YAML
        config = BridgeConfig.from_yaml("bridge.yaml")

        # From the environment (LIVEKIT_URL, LIVEKIT_API_KEY, ...)
        config = BridgeConfig.from_env()

        # Shorthand
        config = BridgeConfig.from_dict({
            "livekit_url": "wss://my.livekit.cloud",
            "listen_port": 3000,
        })
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    room: RoomConfig = Field(default_factory=RoomConfig)
    keepalive: KeepAliveConfig = Field(default_factory=KeepAliveConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def room_name_for(self, session_id: str) -> str:
        """Name of the room a call with the given stream identifier joins."""
        if self.room.room_per_call and session_id:
            return f"{self.room.room_name}-{session_id}"
        return self.room.room_name

    @classmethod
    def from_yaml(cls, path: str | Path) -> BridgeConfig:
        """Load configuration from a YAML file.

        ``${VAR}`` references in string values are expanded from the
        environment; unset variables expand to an empty string.
        """
        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        return cls._from_raw(_expand_env(data))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        """Load configuration from a dictionary.

        Supports both the full nested format and a flat shorthand format:

        Full format:
            {"server": {"listen_port": 3000}, "room": {"url": "wss://..."}}

        Shorthand format:
            {"listen_port": 3000, "livekit_url": "wss://..."}
        """
        return cls._from_raw(copy.deepcopy(data))

    @classmethod
    def from_env(
        cls,
        env: dict[str, str] | None = None,
        env_file: str | Path | None = None,
    ) -> BridgeConfig:
        """Load configuration from environment variables.

        Args:
            env: Mapping to read from instead of ``os.environ``.
            env_file: Optional ``.env`` file loaded into ``os.environ`` first.
        """
        if env_file is not None:
            load_dotenv(env_file)
        if env is None:
            env = dict(os.environ)

        env_mappings = {
            "LIVEKIT_URL": "livekit_url",
            "LIVEKIT_API_KEY": "api_key",
            "LIVEKIT_API_SECRET": "api_secret",
            "LIVEKIT_ROOM": "room_name",
            "PORT": "listen_port",
            "LOG_LEVEL": "log_level",
        }
        data = {
            flat_key: env[var]
            for var, flat_key in env_mappings.items()
            if env.get(var)
        }
        return cls._from_raw(data)

    @classmethod
    def _from_raw(cls, data: dict[str, Any]) -> BridgeConfig:
        """Normalize and construct config from a raw dict."""
        flat_mappings = {
            "listen_host": ("server", "listen_host"),
            "listen_port": ("server", "listen_port"),
            "stream_path": ("server", "stream_path"),
            "webhook_path": ("server", "webhook_path"),
            "livekit_url": ("room", "url"),
            "api_key": ("room", "api_key"),
            "api_secret": ("room", "api_secret"),
            "room_name": ("room", "room_name"),
            "identity": ("room", "identity"),
            "keepalive_ms": ("keepalive", "interval_ms"),
            "log_level": ("logging", "level"),
        }

        for flat_key, (section, nested_key) in flat_mappings.items():
            if flat_key in data:
                if section not in data:
                    data[section] = {}
                data[section][nested_key] = data.pop(flat_key)

        return cls(**data)


_ENV_REF = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


def _expand_env(value: Any) -> Any:
    """Expand ``${VAR}`` in every string of a parsed YAML document."""
    if isinstance(value, str):
        return _ENV_REF.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _expand_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env(v) for v in value]
    return value


def load_config(source: str | Path | dict[str, Any] | BridgeConfig | None = None) -> BridgeConfig:
    """Load a BridgeConfig from any supported source.

    Args:
        source: A YAML file path (str/Path), a dict, an existing BridgeConfig,
            or None to read the process environment.

    Returns:
        A BridgeConfig instance.
    """
    if source is None:
        return BridgeConfig.from_env()
    if isinstance(source, BridgeConfig):
        return source
    if isinstance(source, dict):
        return BridgeConfig.from_dict(source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        if path.exists() and path.suffix in (".yaml", ".yml"):
            return BridgeConfig.from_yaml(path)
        raise FileNotFoundError(f"Config file not found: {path}")
    raise TypeError(f"Cannot load config from {type(source)}")


# Default YAML template for `roombridge init`
DEFAULT_CONFIG_YAML = """\
# RoomBridge Configuration

server:
  listen_host: 0.0.0.0
  listen_port: 3000
  stream_path: /voice-stream      # media-stream websocket endpoint
  webhook_path: /incoming-call    # inbound-call webhook

room:
  url: ${LIVEKIT_URL}
  api_key: ${LIVEKIT_API_KEY}
  api_secret: ${LIVEKIT_API_SECRET}
  room_name: twilio-room          # must match the room the agent joins
  identity: twilio-caller
  room_per_call: false            # true: join "<room_name>-<streamSid>"
  token_ttl_seconds: 21600
  connect_timeout: 10.0

keepalive:
  interval_ms: 250

logging:
  level: INFO
"""
