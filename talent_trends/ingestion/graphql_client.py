"""
Warcraft Logs GraphQL API v2 client.

API:   https://www.warcraftlogs.com/api/v2/client
Docs:  https://www.warcraftlogs.com/v2-api-docs/warcraft/

Every request is a POST of ``{"query": ..., "variables": {...}}`` with a
bearer token from ``TokenCache``.  The response envelope is
``{"data": {...}}`` on success, or carries an ``"errors"`` array (HTTP 200
is still possible) when the query was rejected.

Failure mapping:
  - network failure / non-2xx status → ``TransportError``
  - ``"errors"`` array in the body   → ``TransportError``
  - non-JSON body / missing ``data`` → ``ParseError``
  - HTTP 401 also invalidates the cached token so the next run re-authenticates.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from talent_trends.config import WarcraftLogsConfig
from talent_trends.exceptions import ParseError, TransportError
from talent_trends.ingestion.token_cache import TokenCache

logger = logging.getLogger(__name__)


class WarcraftLogsClient:
    """Thin async GraphQL helper shared by the rankings and talent stages.

    Attributes:
        config: Endpoint and timeout settings.
        token_cache: Process-wide token cell.
    """

    def __init__(
        self,
        config: WarcraftLogsConfig,
        token_cache: TokenCache,
        http_client: httpx.AsyncClient,
    ) -> None:
        self.config = config
        self.token_cache = token_cache
        self._http = http_client

    async def query(
        self,
        query: str,
        variables: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Run one GraphQL query and return its ``data`` object.

        Raises:
            ConfigError, AuthError: From the token cache.
            TransportError: On HTTP failure or an upstream error payload.
            ParseError: If the body is not JSON or lacks ``data``.
        """
        token = await self.token_cache.get_token()
        try:
            resp = await self._http.post(
                self.config.graphql_url,
                json={"query": query, "variables": variables or {}},
                headers={"Authorization": f"Bearer {token}"},
                timeout=self.config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"GraphQL request failed: {exc}") from exc

        if resp.status_code == 401:
            self.token_cache.invalidate()
        if resp.status_code >= 400:
            raise TransportError(
                f"GraphQL endpoint returned HTTP {resp.status_code}: {resp.text[:200]}",
                status_code=resp.status_code,
            )

        try:
            body = resp.json()
        except ValueError as exc:
            raise ParseError("GraphQL response is not valid JSON") from exc
        if not isinstance(body, dict):
            raise ParseError("GraphQL response is not a JSON object")

        if errors := body.get("errors"):
            messages = "; ".join(
                str(e.get("message", e)) if isinstance(e, dict) else str(e)
                for e in errors
            )
            raise TransportError(f"GraphQL errors: {messages}", status_code=resp.status_code)

        data = body.get("data")
        if not isinstance(data, dict):
            raise ParseError("GraphQL response has no data object")
        return data


def dig(data: Any, *path: str) -> Any:
    """Follow ``path`` through nested dicts, returning ``None`` on any gap."""
    node = data
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node
