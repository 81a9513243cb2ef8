"""
Process-wide OAuth2 access token cache for the Warcraft Logs API.

OAuth2 flow:
  Client credentials grant — no user interaction needed.
  POST https://www.warcraftlogs.com/oauth/token
    → Body: grant_type=client_credentials
    → Auth: Basic (client_id:client_secret)
    → Returns: {"access_token": "...", "token_type": "Bearer", "expires_in": 31104000}

The cache is a single owned cell with an explicit state (``EMPTY`` or
``POPULATED``).  Reads never take the lock.  Writes are serialized by an
``asyncio.Lock``; a caller that waited for the lock re-checks the cell
before fetching, so a burst of cold callers performs one exchange.

One ``TokenCache`` is created at process start (see ``talent_trends.server``)
and handed to every pipeline run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Callable, Optional

import httpx

from talent_trends.config import Credentials, WarcraftLogsConfig
from talent_trends.exceptions import AuthError, ConfigError

logger = logging.getLogger(__name__)


class TokenState(StrEnum):
    """Initialisation state of the token cell."""

    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class AccessToken:
    """Bearer token plus the monotonic instant after which it is refetched."""

    value: str
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        return now < self.expires_at


class TokenCache:
    """Fetch-once, reuse-until-expiry cache for the client-credentials token.

    Usage::

        cache = TokenCache(load_credentials(), config.warcraftlogs, http_client)
        token = await cache.get_token()

    Attributes:
        credentials: Client id/secret pair; checked on first fetch.
        config: Warcraft Logs endpoint settings.
        fetch_count: Number of token exchanges performed (diagnostics).
    """

    def __init__(
        self,
        credentials: Credentials,
        config: WarcraftLogsConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.credentials = credentials
        self.config = config
        self._http_client = http_client
        self._clock = clock
        self._token: Optional[AccessToken] = None
        self._lock = asyncio.Lock()
        self.fetch_count = 0

    @property
    def state(self) -> TokenState:
        return TokenState.POPULATED if self._token is not None else TokenState.EMPTY

    def peek(self) -> Optional[str]:
        """Return the cached token value if one is held and still fresh."""
        token = self._token
        if token is not None and token.is_fresh(self._clock()):
            return token.value
        return None

    async def get_token(self) -> str:
        """Return a valid bearer token, fetching one if the cell is empty or stale.

        Raises:
            ConfigError: If client id or secret is not configured.
            AuthError: If the token endpoint fails or returns a malformed body.
        """
        cached = self.peek()
        if cached is not None:
            return cached

        async with self._lock:
            # Another caller may have populated the cell while we waited.
            cached = self.peek()
            if cached is not None:
                return cached
            self._token = await self._fetch_token()
            return self._token.value

    def invalidate(self) -> None:
        """Drop the cached token so the next ``get_token()`` refetches."""
        if self._token is not None:
            logger.info("Warcraft Logs access token invalidated")
        self._token = None

    async def _fetch_token(self) -> AccessToken:
        if not self.credentials.is_complete:
            raise ConfigError(
                "WCL_CLIENT_ID and WCL_CLIENT_SECRET must be set in the environment or .env."
            )

        self.fetch_count += 1
        try:
            if self._http_client is not None:
                resp = await self._post_token(self._http_client)
            else:
                async with httpx.AsyncClient() as client:
                    resp = await self._post_token(client)
        except httpx.HTTPError as exc:
            raise AuthError(f"Token request failed: {exc}") from exc

        if resp.status_code != 200:
            raise AuthError(
                f"Token endpoint returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=resp.text,
            )

        try:
            payload = resp.json()
            value = payload["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError(
                "Token endpoint returned a malformed body",
                status_code=resp.status_code,
                body=resp.text,
            ) from exc
        if not isinstance(value, str) or not value:
            raise AuthError(
                "Token endpoint returned an empty access_token",
                status_code=resp.status_code,
                body=resp.text,
            )

        expires_at = self._expiry_from(payload.get("expires_in"))
        logger.info("Warcraft Logs OAuth2 token obtained")
        return AccessToken(value=value, expires_at=expires_at)

    async def _post_token(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self.config.token_url,
            auth=(self.credentials.client_id, self.credentials.client_secret),
            data={"grant_type": "client_credentials"},
            timeout=self.config.timeout_seconds,
        )

    def _expiry_from(self, expires_in: object) -> float:
        """Turn the ``expires_in`` hint into a monotonic deadline.

        A missing, unparsable or non-positive hint means the token is kept
        until ``invalidate()`` is called.  The refresh skew never eats more
        than half of the lifetime, so a short-lived token is still reused.
        """
        try:
            seconds = float(expires_in)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return float("inf")
        if not seconds > 0:
            return float("inf")
        skew = min(self.config.token_refresh_skew_seconds, seconds / 2)
        return self._clock() + seconds - skew
