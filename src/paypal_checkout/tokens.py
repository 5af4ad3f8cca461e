"""OAuth2 client-credentials token acquisition and caching."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

import httpx

from .config import Credentials
from .errors import AuthError
from .urls import ApiUrlResolver

logger = logging.getLogger(__name__)

# Fixed lifetime for cached tokens, independent of the server-declared expires_in.
DEFAULT_TOKEN_TTL = timedelta(minutes=15)

# Refresh this long before a server-declared expiry when honoring expires_in.
EXPIRY_MARGIN = timedelta(seconds=60)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class CachedToken:
    """A bearer token with its local expiry."""
    value: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class TokenCache:
    """In-memory token store, one entry per credential cache key.

    Entries are never returned at or past their expiry. The clock is
    injectable so tests can move time forward.
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_TOKEN_TTL,
        clock: Callable[[], datetime] = utcnow,
    ):
        if ttl <= timedelta(0):
            raise ValueError("Token TTL must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CachedToken] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return None
        return entry.value

    def set(self, key: str, value: str, ttl: Optional[timedelta] = None) -> CachedToken:
        entry = CachedToken(value=value, expires_at=self._clock() + (ttl or self.ttl))
        self._entries[key] = entry
        return entry

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class TokenProvider:
    """Produce a valid bearer token for a credential set.

    Concurrent misses on the same key are collapsed into a single request to
    the token endpoint (single-flight); callers waiting on the lock pick up
    the freshly cached value.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cache: Optional[TokenCache] = None,
        resolver: Optional[ApiUrlResolver] = None,
        honor_expires_in: bool = False,
    ):
        self.http_client = http_client
        self.cache = cache if cache is not None else TokenCache()
        self.resolver = resolver if resolver is not None else ApiUrlResolver()
        self.honor_expires_in = honor_expires_in
        # Locks live only while a caller holds or awaits them
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    def _acquire_lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        return lock

    def _release_lock(self, key: str) -> None:
        self._lock_users[key] -= 1
        if not self._lock_users[key]:
            del self._lock_users[key]
            del self._locks[key]

    async def get_access_token(self, credentials: Credentials) -> str:
        """Return a cached token or fetch a new one.

        Raises:
            AuthError: If the token endpoint is unreachable or rejects the request.
        """
        key = credentials.cache_key
        token = self.cache.get(key)
        if token is not None:
            return token

        lock = self._acquire_lock(key)
        try:
            async with lock:
                token = self.cache.get(key)
                if token is not None:
                    return token
                token, ttl = await self._fetch(credentials)
                self.cache.set(key, token, ttl)
                return token
        finally:
            self._release_lock(key)

    def invalidate(self, credentials: Credentials) -> None:
        """Drop the cached token, e.g. after the API rejected it."""
        self.cache.invalidate(credentials.cache_key)

    def _ttl_for(self, expires_in) -> Optional[timedelta]:
        if not self.honor_expires_in or not isinstance(expires_in, (int, float)):
            return None
        declared = timedelta(seconds=expires_in) - EXPIRY_MARGIN
        if declared <= timedelta(0):
            return None
        return min(declared, self.cache.ttl)

    async def _fetch(self, credentials: Credentials):
        url = self.resolver.token_url(credentials.environment)
        logger.info(f"Requesting PayPal access token ({credentials.environment.value})")

        try:
            response = await self.http_client.post(
                url,
                auth=(credentials.client_id, credentials.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.error(f"PayPal token endpoint unreachable: {type(e).__name__}")
            raise AuthError("Failed to get PayPal access token: endpoint unreachable") from e

        if not response.is_success:
            logger.error(f"PayPal token request rejected with status {response.status_code}")
            raise AuthError(
                "Failed to get PayPal access token",
                details={"status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AuthError("Failed to get PayPal access token: invalid JSON response") from e

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            logger.error("PayPal token response missing access_token")
            raise AuthError("Failed to get PayPal access token: no access_token in response")

        return token, self._ttl_for(payload.get("expires_in"))
