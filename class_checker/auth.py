
# Bearer tokens for the catalog API.
#
# The API gateway issues short-lived tokens through an OAuth2 client-credentials
# grant. The checker only needs "a currently valid token" before each pass,
# so both providers expose the same two coroutines:
#     async def get_token(self) -> str
#     async def refresh_if_stale(self) -> None

import asyncio
import base64
import logging
import time

import aiohttp

from class_checker.errors import TokenError

log = logging.getLogger(__name__)

# refresh this many seconds before the gateway says the token expires
_EXPIRY_MARGIN_SECONDS = 60


class StaticTokenProvider:
    """A fixed token, e.g. one pasted into CLASS_CHECKER_ACCESS_TOKEN."""

    def __init__(self, token: str) -> None:
        self._token = token

    async def get_token(self) -> str:
        return self._token

    async def refresh_if_stale(self) -> None:
        return None


class ClientCredentialsTokenProvider:
    """
    Fetches and caches a token with
        POST {token_url}
        Authorization: Basic base64(consumer_key:consumer_secret)
        grant_type=client_credentials&scope=PRODUCTION
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        token_url: str,
        consumer_key: str,
        consumer_secret: str,
        timeout: float = 10,
    ) -> None:
        self._session = session
        self._url = token_url
        credentials = f"{consumer_key}:{consumer_secret}".encode()
        self._basic = base64.b64encode(credentials).decode("ascii")
        self._timeout = timeout
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = asyncio.Lock()

    @property
    def is_stale(self) -> bool:
        return self._token is None or time.monotonic() >= self._expires_at

    async def get_token(self) -> str:
        await self.refresh_if_stale()
        assert self._token is not None
        return self._token

    async def refresh_if_stale(self) -> None:
        async with self._lock:
            if self.is_stale:
                await self._refresh()

    async def _refresh(self) -> None:
        headers = {
            "Authorization": f"Basic {self._basic}",
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }
        try:
            async with self._session.post(
                self._url,
                data="grant_type=client_credentials&scope=PRODUCTION",
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                resp.raise_for_status()
                payload = await resp.json(content_type=None)
        except aiohttp.ClientResponseError as exc:
            log.warning("Token endpoint returned %s %s", exc.status, exc.message)
            raise TokenError(f"token refresh failed: HTTP {exc.status}") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            log.warning("Token refresh failed: %r", exc)
            raise TokenError(f"token refresh failed: {exc!r}") from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise TokenError("token response did not contain access_token")

        expires_in = float(payload.get("expires_in", 3600))
        self._token = token
        self._expires_at = time.monotonic() + max(expires_in - _EXPIRY_MARGIN_SECONDS, 0)
        log.info("Refreshed catalog API token (valid for %ds)", int(expires_in))
