"""
qqgate REST client

Authenticated calls against the bot REST API: gateway discovery, the
identity probe and the outbound message send.
"""

import logging
from dataclasses import dataclass, field

import httpx

from qqgate.auth import TokenCache
from qqgate.config import QQGateConfig
from qqgate.errors import AuthError, GatewayConnectionError, ProtocolError

LOG = logging.getLogger(__name__)

GATEWAY_PATH = "/gateway"
IDENTITY_PATH = "/users/@me"
MESSAGES_PATH = "/channels/{recipient}/messages"


@dataclass
class QQClient:
    """
    Client for the bot REST API.

    Usage:
        async with httpx.AsyncClient() as http:
            client = QQClient(http, QQGateConfig(app_id="...", app_secret="..."))
            url = await client.resolve_endpoint()
    """

    http: httpx.AsyncClient
    config: QQGateConfig = field(default_factory=QQGateConfig)
    tokens: TokenCache | None = field(default=None, kw_only=True)

    def __post_init__(self) -> None:
        if self.tokens is None:
            self.tokens = TokenCache(self.http, self.config)

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send an authenticated request, mapping transport and auth failures."""
        headers = {"Authorization": await self.tokens.authorization_header()}
        url = self.config.api_url(path)

        try:
            response = await self.http.request(
                method,
                url,
                headers=headers,
                timeout=self.config.request_timeout_seconds,
                **kwargs,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise GatewayConnectionError(f"{method} {url} failed: {exc}") from exc

        if response.status_code in (401, 403):
            raise AuthError(f"{method} {url} rejected: {response.status_code} {response.text}")
        return response

    async def resolve_endpoint(self) -> str:
        """
        Look up the WebSocket URL of the gateway.

        Raises:
            AuthError: If no token is available or the request is rejected
            ProtocolError: If the response does not carry a gateway URL
            GatewayConnectionError: If the request could not be sent
        """
        response = await self.request("GET", GATEWAY_PATH)
        if not response.is_success:
            raise ProtocolError(f"Failed to get gateway URL: {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            raise ProtocolError("Gateway response is not JSON") from exc

        url = body.get("url") if isinstance(body, dict) else None
        if not isinstance(url, str):
            raise ProtocolError("No 'url' in gateway response")
        return url

    async def send(self, content: str, recipient: str) -> None:
        """
        Post a text message to a channel.

        Raises:
            AuthError: If no token is available or the request is rejected
            ProtocolError: If the API refuses the message
            GatewayConnectionError: If the request could not be sent
        """
        path = MESSAGES_PATH.format(recipient=recipient)
        response = await self.request("POST", path, json={"content": content})
        if not response.is_success:
            raise ProtocolError(
                f"Failed to send message to {recipient}: {response.status_code} {response.text}"
            )
        LOG.debug("Sent message to %s", recipient)

    async def health_check(self) -> bool:
        """Probe the identity endpoint. Never raises."""
        try:
            response = await self.request("GET", IDENTITY_PATH)
        except (AuthError, GatewayConnectionError) as exc:
            LOG.warning("Health check failed: %s", exc)
            return False

        if not response.is_success:
            LOG.warning("Health check returned status %s", response.status_code)
            return False
        return True
