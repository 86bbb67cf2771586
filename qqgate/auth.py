"""
Access token cache

Holds the single bot access token for the process and refreshes it from
``/app/getAppAccessToken`` when it is missing or about to expire.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import httpx
from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from qqgate.config import QQGateConfig

from qqgate.errors import AuthError
from qqgate.models import Credential

LOG = logging.getLogger(__name__)

TOKEN_PATH = "/app/getAppAccessToken"
AUTH_SCHEME = "QQBot"


class TokenResponse(BaseModel):
    access_token: str
    expires_in: str | int


@dataclass
class TokenCache:
    """
    Single-slot access token cache.

    Readers never wait while the cached token is valid. A refresh holds the
    lock for the whole exchange; callers queued behind it re-check the slot
    and reuse the new token instead of issuing their own request.

    Usage:
        tokens = TokenCache(http, config)
        headers = {"Authorization": await tokens.authorization_header()}
    """

    http: httpx.AsyncClient
    config: "QQGateConfig"
    clock: Callable[[], float] = field(default=time.time, kw_only=True)
    credential: Credential | None = field(default=None, init=False)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def cached(self) -> Credential | None:
        """The cached credential if it is still valid."""
        credential = self.credential
        if credential is not None and credential.is_valid(self.clock()):
            return credential
        return None

    async def acquire(self) -> Credential:
        """
        Return a valid credential, fetching a new one if needed.

        Raises:
            AuthError: If the token exchange fails for any reason
        """
        credential = self.cached()
        if credential is not None:
            return credential

        async with self.lock:
            credential = self.cached()
            if credential is not None:
                return credential

            credential = await self.fetch()
            self.credential = credential
            return credential

    async def authorization_header(self) -> str:
        credential = await self.acquire()
        return f"{AUTH_SCHEME} {credential.token}"

    async def fetch(self) -> Credential:
        LOG.info("Refetching access token for app %s", self.config.app_id)
        now = self.clock()

        try:
            response = await self.http.post(
                self.config.api_url(TOKEN_PATH),
                json={"appId": self.config.app_id, "clientSecret": self.config.app_secret},
                timeout=self.config.request_timeout_seconds,
            )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if not response.is_success:
            raise AuthError(
                f"Failed to fetch access token: {response.status_code} {response.text}"
            )

        try:
            data = TokenResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise AuthError(f"Unexpected token response: {response.text}") from exc

        lifetime = self.parse_lifetime(data.expires_in)
        expires_at = max(now + lifetime - self.config.token_safety_margin_seconds, now)
        LOG.debug("Access token valid for %d seconds", lifetime)
        return Credential(token=data.access_token, expires_at=expires_at)

    def parse_lifetime(self, expires_in: str | int) -> int:
        try:
            return int(expires_in)
        except ValueError:
            LOG.warning(
                "Non-numeric expires_in %r, assuming %d seconds",
                expires_in,
                self.config.default_expires_in_seconds,
            )
            return self.config.default_expires_in_seconds
