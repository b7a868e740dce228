"""Access token lifecycle for the supplier API.

The token lives in a single in-memory slot on the provider instance. Each
process (or serverless instance) acquires its own token; concurrent callers
racing past an expired slot may each issue a grant, and whichever finishes
last wins the slot.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
import structlog

from dropship_service.config import Settings
from dropship_service.exceptions import ConfigurationError, UpstreamAuthError

logger = structlog.get_logger()

# Tokens are treated as expired this long before the supplier says they are.
EXPIRY_BUFFER_SECONDS = 300
DEFAULT_EXPIRES_IN_SECONDS = 3600
SUCCESS_CODE = 200
API_KEY_SEPARATOR = "@api@"


@dataclass(frozen=True)
class AccessToken:
    """A bearer token and the (buffered) instant it stops being usable."""

    value: str
    expires_at_epoch_ms: int

    def is_valid(self, now_ms: int) -> bool:
        return self.expires_at_epoch_ms > now_ms


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def normalize_token_response(payload: Any, now_ms: int) -> AccessToken:
    """Reduce the flat or enveloped token response to an ``AccessToken``.

    Accepted shapes::

        {"access_token": "...", "expires_in": 3600}
        {"code": 200, "result": true, "data": {"accessToken": "...",
         "accessTokenExpiryDate": "2025-11-20T21:06:24+08:00"}}
    """
    if not isinstance(payload, dict):
        raise UpstreamAuthError("Token response is not a JSON object")

    if "result" in payload or "code" in payload:
        if payload.get("result") is False or (
            "code" in payload and payload.get("code") != SUCCESS_CODE
        ):
            raise UpstreamAuthError(
                f"Token request rejected: {payload.get('message') or 'unknown error'}"
            )

    nested = payload.get("data") if isinstance(payload.get("data"), dict) else {}
    value = (
        nested.get("accessToken")
        or nested.get("access_token")
        or payload.get("accessToken")
        or payload.get("access_token")
    )
    if not value or not isinstance(value, str):
        raise UpstreamAuthError("Token response contains no access token")

    expiry_date = nested.get("accessTokenExpiryDate") or payload.get("accessTokenExpiryDate")
    if expiry_date:
        try:
            expires_at = datetime.fromisoformat(str(expiry_date))
        except ValueError as e:
            raise UpstreamAuthError(f"Unparseable token expiry date: {expiry_date}") from e
        if expires_at.tzinfo is None:
            raise UpstreamAuthError(f"Token expiry date has no UTC offset: {expiry_date}")
        expires_at_ms = int(expires_at.timestamp() * 1000) - EXPIRY_BUFFER_SECONDS * 1000
    else:
        raw_expires_in = nested.get("expires_in", payload.get("expires_in"))
        try:
            expires_in = int(raw_expires_in) if raw_expires_in is not None else DEFAULT_EXPIRES_IN_SECONDS
        except (TypeError, ValueError) as e:
            raise UpstreamAuthError(f"Invalid expires_in in token response: {raw_expires_in}") from e
        expires_at_ms = now_ms + (expires_in - EXPIRY_BUFFER_SECONDS) * 1000

    return AccessToken(value=value, expires_at_epoch_ms=expires_at_ms)


class TokenProvider:
    """Obtains and caches the supplier access token."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        token_url: str,
        api_key: str = "",
        client_id: str = "",
        client_secret: str = "",
        clock: Callable[[], int] = _epoch_ms,
    ):
        self.http_client = http_client
        self.token_url = token_url
        self.api_key = api_key
        self.client_id = client_id
        self.client_secret = client_secret
        self.clock = clock
        self._cached: AccessToken | None = None

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient) -> "TokenProvider":
        return cls(
            http_client=http_client,
            token_url=settings.cj_token_url,
            api_key=settings.cj_api_key,
            client_id=settings.cj_client_id,
            client_secret=settings.cj_client_secret,
        )

    def _credentials(self) -> dict[str, str]:
        client_id, client_secret, api_key = self.client_id, self.client_secret, self.api_key

        if api_key and not (client_id and client_secret) and API_KEY_SEPARATOR in api_key:
            client_id, client_secret = api_key.split(API_KEY_SEPARATOR, 1)
        if not api_key and client_id and client_secret:
            api_key = f"{client_id}{API_KEY_SEPARATOR}{client_secret}"

        if not api_key:
            raise ConfigurationError(
                "CJ_API_KEY or (CJ_CLIENT_ID and CJ_CLIENT_SECRET) must be set"
            )

        form = {"grant_type": "client_credentials", "apiKey": api_key}
        if client_id and client_secret:
            form["client_id"] = client_id
            form["client_secret"] = client_secret
        return form

    async def get_access_token(self) -> AccessToken:
        """Return the cached token, or perform a client-credentials grant."""
        now_ms = self.clock()
        cached = self._cached
        if cached is not None and cached.is_valid(now_ms):
            return cached

        form = self._credentials()
        logger.info("Requesting new supplier access token")

        try:
            response = await self.http_client.post(
                self.token_url,
                data=form,
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise UpstreamAuthError(f"Token request failed: {e}") from e

        if not response.is_success:
            raise UpstreamAuthError(
                f"Token request rejected: {response.status_code} {response.text[:200]}",
                http_status=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamAuthError(
                "Token response is not valid JSON", http_status=response.status_code
            ) from e

        token = normalize_token_response(payload, now_ms)
        self._cached = token
        logger.info(
            "Supplier access token obtained",
            expires_in_seconds=(token.expires_at_epoch_ms - now_ms) // 1000,
        )
        return token

    def clear_cache(self) -> None:
        """Drop the cached token so the next call performs a fresh grant."""
        self._cached = None
        logger.info("Supplier access token cache cleared")
