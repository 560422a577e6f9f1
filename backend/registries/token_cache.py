"""
Single-slot token cache for providers whose auth flow issues a
time-limited credential (cloud IAM style).

Each provider instance owns one TokenCache because it corresponds to one
fixed credential set. Refreshes are single-flight: callers racing on a cold
or expired slot wait for one fetch instead of each issuing their own.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from registries.types import AuthToken

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCache:
    """Holds at most one live AuthToken, invalidated by expiry only."""

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock
        self._token: Optional[AuthToken] = None
        self._lock: Optional[asyncio.Lock] = None

    def get(self) -> Optional[AuthToken]:
        """Return the cached token if now < expires_at, else None."""
        token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token
        return None

    def set(self, token: AuthToken):
        """Replace the cached token."""
        self._token = token

    def clear(self):
        self._token = None

    async def get_or_fetch(self, fetch: Callable[[], Awaitable[AuthToken]]) -> AuthToken:
        """
        Return the cached token or fetch, store and return a fresh one.

        Args:
            fetch: Coroutine function performing the backend token call

        Returns:
            A token valid at the time of the check
        """
        token = self.get()
        if token is not None:
            logger.debug("Token cache hit")
            return token

        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            # Another caller may have refreshed while we waited
            token = self.get()
            if token is not None:
                return token

            logger.debug("Token cache miss, fetching new token")
            token = await fetch()
            self._token = token
            return token
