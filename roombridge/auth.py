"""Access-token issuance for room connections.

Signing is delegated to ``livekit-api``; this module validates inputs and
maps every signing failure to :class:`CredentialError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from livekit import api
from loguru import logger

from roombridge.config import RoomConfig
from roombridge.core.errors import CredentialError


@dataclass(frozen=True)
class RoomGrants:
    """Room permissions embedded in an access token."""

    room: str
    room_join: bool = True


class TokenIssuer:
    """Mints signed, time-bounded room access tokens.

    Usage:
        issuer = TokenIssuer.from_config(config.room)
        token = issuer.issue("twilio-caller", RoomGrants(room="twilio-room"))
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        ttl: timedelta = timedelta(hours=6),
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._ttl = ttl

    @classmethod
    def from_config(cls, config: RoomConfig) -> TokenIssuer:
        return cls(
            api_key=config.api_key,
            api_secret=config.api_secret,
            ttl=timedelta(seconds=config.token_ttl_seconds),
        )

    def issue(self, identity: str, grants: RoomGrants) -> str:
        """Issue a bearer token for ``identity`` with the given grants.

        Raises:
            CredentialError: If identity or room is empty, the signing
                material is missing, or signing fails.
        """
        if not identity:
            raise CredentialError("Token identity must not be empty")
        if not grants.room:
            raise CredentialError("Token room must not be empty")
        if not self._api_key or not self._api_secret:
            raise CredentialError("API key and secret are required to sign tokens")

        try:
            token = (
                api.AccessToken(self._api_key, self._api_secret)
                .with_identity(identity)
                .with_grants(api.VideoGrants(room_join=grants.room_join, room=grants.room))
                .with_ttl(self._ttl)
                .to_jwt()
            )
        except Exception as e:
            raise CredentialError(f"Failed to sign access token: {e}") from e

        logger.debug(f"Issued access token for {identity} (room: {grants.room})")
        return token
