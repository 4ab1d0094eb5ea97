from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from ..core.timeutil import monotonic
from ..drivers.skyport_client import SkyportClient

logger = logging.getLogger(__name__)


class TokenManager:
    """Caches the vendor access token and serializes its acquisition."""

    def __init__(
        self,
        client: SkyportClient,
        email: str,
        integrator_token: str,
        safety_margin: float = 1.0,
        clock: Callable[[], float] = monotonic,
    ) -> None:
        self._client = client
        self._email = email
        self._integrator_token = integrator_token
        self._margin = safety_margin
        self._clock = clock

        self._token: Optional[str] = None
        self._expires_at: float = 0.0
        self._lock = asyncio.Lock()

    @property
    def valid(self) -> bool:
        return self._token is not None and self._clock() < self._expires_at

    async def get_token(self) -> str:
        async with self._lock:
            if self._token is not None and self._clock() < self._expires_at:
                return self._token

            token, expires_in = await self._client.authenticate(self._email, self._integrator_token)
            # Expiry counts from receipt of the response, not from the request
            received = self._clock()
            self._token = token
            self._expires_at = received + expires_in - self._margin
            logger.info("Access token acquired (expires_in=%ss)", expires_in)
            return token

    def invalidate(self, token: Optional[str] = None) -> None:
        """Drop the cached token. With `token`, only if it is still the cached one."""
        if token is not None and token != self._token:
            return
        self._token = None
        self._expires_at = 0.0
