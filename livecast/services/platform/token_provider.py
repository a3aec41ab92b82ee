"""Access token sources for platform calls.

The orchestrator asks its provider for a token before every platform call; any failure
or an empty token surfaces as ``AuthExpiredError``.
"""

import asyncio
import time
from typing import Callable, Protocol

import httpx
from loguru import logger

from livecast.app_config import AppEnvironConfig
from livecast.utils.app_errors import AuthExpiredError


class TokenProvider(Protocol):
    async def get_valid_access_token(self) -> str: ...

    def invalidate(self) -> None:
        """Drop a cached token the platform rejected."""
        ...


class StaticTokenProvider:
    """Hands out a fixed token (DEMO_MODE, or a token managed outside this service)."""

    def __init__(self, access_token: str | None):
        self._access_token = access_token

    async def get_valid_access_token(self) -> str:
        if not self._access_token:
            raise AuthExpiredError("No platform access token configured")
        return self._access_token

    def invalidate(self) -> None:
        pass


class OAuthTokenProvider:
    """Exchanges a long-lived refresh token for short-lived access tokens.

    Tokens are cached until ``expiry_skew`` seconds before they expire; concurrent
    callers share one refresh.
    """

    def __init__(
        self,
        token_url: str,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        expiry_skew: float = 60.0,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._refresh_token = refresh_token
        self._expiry_skew = expiry_skew
        self._timeout = timeout
        self._clock = clock
        self._transport = transport
        self._lock = asyncio.Lock()
        self._access_token: str | None = None
        self._expires_at = 0.0

    def _is_fresh(self) -> bool:
        return bool(self._access_token) and self._clock() < self._expires_at - self._expiry_skew

    async def get_valid_access_token(self) -> str:
        if self._is_fresh():
            return self._access_token  # type: ignore[return-value]

        async with self._lock:
            if self._is_fresh():
                return self._access_token  # type: ignore[return-value]
            await self._refresh()
            return self._access_token  # type: ignore[return-value]

    def invalidate(self) -> None:
        logger.info("Dropping cached platform access token")
        self._access_token = None
        self._expires_at = 0.0

    async def _refresh(self) -> None:
        form = {
            "grant_type": "refresh_token",
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "refresh_token": self._refresh_token,
        }
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.post(self.token_url, data=form)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(f"Token refresh rejected: {exc.response.status_code} {exc.response.text[:200]}")
            raise AuthExpiredError("Platform authentication expired. Please reconnect.") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(f"Token refresh failed: {exc}")
            raise AuthExpiredError(f"Unable to refresh platform access token: {exc}") from exc

        access_token = data.get("access_token")
        if not access_token:
            raise AuthExpiredError("Token endpoint returned no access token")

        self._access_token = access_token
        self._expires_at = self._clock() + float(data.get("expires_in") or 3600)
        # Some providers rotate refresh tokens on use
        if data.get("refresh_token"):
            self._refresh_token = data["refresh_token"]
        logger.info("Platform access token refreshed")


def build_token_provider(app_config: AppEnvironConfig) -> TokenProvider:
    if app_config.DEMO_MODE:
        return StaticTokenProvider(app_config.PLATFORM_ACCESS_TOKEN or "demo-access-token")

    if app_config.PLATFORM_ACCESS_TOKEN:
        return StaticTokenProvider(app_config.PLATFORM_ACCESS_TOKEN)

    if app_config.OAUTH_CLIENT_ID and app_config.OAUTH_CLIENT_SECRET and app_config.OAUTH_REFRESH_TOKEN:
        return OAuthTokenProvider(
            app_config.OAUTH_TOKEN_URL,
            app_config.OAUTH_CLIENT_ID,
            app_config.OAUTH_CLIENT_SECRET,
            app_config.OAUTH_REFRESH_TOKEN,
            timeout=app_config.PLATFORM_API_TIMEOUT_SECONDS,
        )

    logger.warning("No platform credentials configured, platform calls will fail with E_AUTH_EXPIRED")
    return StaticTokenProvider(None)
