"""HTTP client for the Kick OAuth and REST endpoints.

Each call opens a short-lived aiohttp session, so calls made from the
refresher, the authorizer and the chat session never share connection
state and never block each other.
"""

import asyncio
import json
import logging
import urllib.parse
from typing import Any

import aiohttp
from pydantic import ValidationError

from .config import KickEnvironment
from .exceptions import (
    ChannelLookupFailedError,
    ExchangeFailedError,
    KickError,
    RefreshFailedError,
)
from .models import TokenResponse

logger = logging.getLogger(__name__)


class KickAPI:
    """Client for the token endpoint and the user/channel lookups."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        oauth_url: str = KickEnvironment.OAUTH,
        api_url: str = KickEnvironment.API,
        timeout: float = 15.0,
    ) -> None:
        """Initialize the client.

        Args:
            client_id: OAuth client identifier.
            client_secret: OAuth client secret.
            redirect_uri: Redirect URI registered for the client.
            oauth_url: Base URL of the OAuth server.
            api_url: Base URL of the REST API.
            timeout: Total timeout for each request in seconds.
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.oauth_url = oauth_url.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def token_url(self) -> str:
        return f"{self.oauth_url}/oauth/token"

    def authorization_url(self, state: str, code_challenge: str, scopes: list[str]) -> str:
        """Build the URL the user is redirected to for consent."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(scopes),
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        return f"{self.oauth_url}/oauth/authorize?{urllib.parse.urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResponse:
        """Exchange an authorization code for a token pair."""
        form = {
            "grant_type": "authorization_code",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": code,
            "redirect_uri": self.redirect_uri,
            "code_verifier": code_verifier,
        }
        try:
            data = await self._request("POST", self.token_url, data=form)
            token = TokenResponse.model_validate(data)
        except ValidationError as e:
            raise ExchangeFailedError("invalid token response", str(e)) from e
        except KickError as e:
            raise ExchangeFailedError(e.message, e.details) from e

        logger.info("Authorization code exchanged for tokens")
        return token

    async def refresh_token(self, refresh_token: str) -> TokenResponse:
        """Run the refresh grant for a stored refresh token."""
        form = {
            "grant_type": "refresh_token",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
        }
        try:
            data = await self._request("POST", self.token_url, data=form)
            return TokenResponse.model_validate(data)
        except ValidationError as e:
            raise RefreshFailedError("Invalid token response", str(e)) from e
        except KickError as e:
            raise RefreshFailedError(f"Refresh failed: {e.message}", e.details) from e

    async def get_username(self, access_token: str) -> str:
        """Resolve the username that owns ``access_token``."""
        try:
            data = await self._request(
                "GET", f"{self.api_url}/api/v2/user/me", token=access_token
            )
        except KickError as e:
            raise ExchangeFailedError(f"user lookup failed: {e.message}", e.details) from e

        username = data.get("username") if isinstance(data, dict) else None
        if not isinstance(username, str) or not username:
            raise ExchangeFailedError("user lookup returned no username")
        return username

    async def get_chatroom_id(self, channel: str, access_token: str) -> int:
        """Resolve the chatroom identifier of ``channel``."""
        url = f"{self.api_url}/api/v2/channels/{urllib.parse.quote(channel)}"
        try:
            data = await self._request("GET", url, token=access_token)
        except KickError as e:
            raise ChannelLookupFailedError(
                f"Channel lookup failed for {channel}: {e.message}", e.details
            ) from e

        chatroom = data.get("chatroom") if isinstance(data, dict) else None
        chatroom_id = chatroom.get("id") if isinstance(chatroom, dict) else None
        if chatroom_id is None:
            raise ChannelLookupFailedError(f"Channel {channel} has no chatroom")
        try:
            return int(chatroom_id)
        except (TypeError, ValueError) as e:
            raise ChannelLookupFailedError(
                f"Channel {channel} has invalid chatroom id: {chatroom_id!r}"
            ) from e

    async def _request(
        self,
        method: str,
        url: str,
        token: str | None = None,
        data: dict[str, str] | None = None,
    ) -> Any:
        """Send a request and decode its JSON body.

        Raises:
            KickError: On network errors, non-2xx responses or a body that
                is not JSON.
        """
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(
                    method, url, headers=headers, data=data
                ) as resp:
                    body = await resp.text()
                    if resp.status // 100 != 2:
                        logger.warning(f"{method} {url} returned HTTP {resp.status}")
                        raise KickError(
                            self._error_reason(resp.status, body), body
                        )
                    return json.loads(body)
        except KickError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise KickError(str(e) or type(e).__name__) from e

    @staticmethod
    def _error_reason(status: int, body: str) -> str:
        """Pick the most descriptive reason out of an OAuth error body."""
        try:
            payload = json.loads(body)
        except ValueError:
            return f"HTTP {status}"
        if isinstance(payload, dict):
            for key in ("error_description", "error", "message"):
                if isinstance(payload.get(key), str):
                    return payload[key]
        return f"HTTP {status}"
