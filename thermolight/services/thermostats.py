from __future__ import annotations
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from ..core.config import Settings
from ..domain.errors import AuthError, ConfigurationIncomplete, RemoteError
from ..domain.models import DeviceStatus, Location, Mode, Thermostat
from ..drivers.skyport_client import SkyportClient
from .status_cache import StatusCache
from .tokens import TokenManager

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ThermostatService:
    """Known thermostats, their cached statuses and the calls that change them."""

    def __init__(
        self,
        settings: Settings,
        cache: StatusCache,
        client: Optional[SkyportClient] = None,
        tokens: Optional[TokenManager] = None,
    ) -> None:
        self._settings = settings
        self.cache = cache
        self.locations: list[Location] = []
        self._client = client
        self._tokens = tokens
        if client is None or tokens is None:
            self.reconfigure()

    def reconfigure(self) -> None:
        """Rebuild client and token manager from the current credentials."""
        s = self._settings
        self._client = SkyportClient(s.api_base_url, s.api_key, timeout=s.request_timeout_seconds)
        self._tokens = TokenManager(
            self._client, s.email, s.integrator_token, safety_margin=s.token_safety_margin_seconds
        )

    @property
    def configured(self) -> bool:
        return self._settings.is_configured

    @property
    def thermostats(self) -> list[Thermostat]:
        return [t for loc in self.locations for t in loc.thermostats]

    def find(self, thermostat_id: str) -> Optional[Thermostat]:
        for t in self.thermostats:
            if t.id == thermostat_id:
                return t
        return None

    def location_of(self, thermostat_id: str) -> Optional[Location]:
        for loc in self.locations:
            if any(t.id == thermostat_id for t in loc.thermostats):
                return loc
        return None

    async def _call(self, fn: Callable[[str], Awaitable[T]]) -> T:
        token = await self._tokens.get_token()
        try:
            return await fn(token)
        except AuthError:
            logger.info("Access token rejected, re-authenticating")
            self._tokens.invalidate(token)
            token = await self._tokens.get_token()
            return await fn(token)

    async def load(self) -> list[Thermostat]:
        """Replace the known thermostat set wholesale. Raises on failure."""
        if not self.configured:
            raise ConfigurationIncomplete("email, api key and integrator token are required")
        locations = await self._call(self._client.list_locations)
        self.locations = locations
        logger.info(
            "Loaded %d thermostat(s) in %d location(s)", len(self.thermostats), len(locations)
        )
        return self.thermostats

    async def refresh_status(self, thermostat_id: str) -> Optional[DeviceStatus]:
        """Fetch one status into the cache; on failure keep the prior snapshot."""
        try:
            status = await self._call(lambda tok: self._client.get_status(tok, thermostat_id))
        except RemoteError as e:
            logger.warning("Status fetch failed for %s: %s", thermostat_id, e)
            return None
        self.cache.update(thermostat_id, status)
        return status

    async def refresh_statuses(self) -> int:
        """Fetch every known thermostat concurrently. Returns the number updated."""
        ids = [t.id for t in self.thermostats]
        if not ids:
            return 0
        results = await asyncio.gather(*(self.refresh_status(i) for i in ids))
        ok = sum(1 for r in results if r is not None)
        logger.info("Status refresh: %d/%d ok", ok, len(ids))
        return ok

    async def set_mode(self, thermostat_id: str, mode: Mode) -> str:
        s = self._settings
        status = self.cache.get(thermostat_id)
        if mode == Mode.OFF:
            heat, cool = s.off_heat_setpoint, s.off_cool_setpoint
        else:
            heat = status.heat_setpoint if status and status.heat_setpoint is not None else s.auto_heat_setpoint
            cool = status.cool_setpoint if status and status.cool_setpoint is not None else s.auto_cool_setpoint
        return await self._call(
            lambda tok: self._client.set_mode(tok, thermostat_id, int(mode), heat, cool)
        )

    async def set_fan_circulate(self, thermostat_id: str, circulate: bool) -> str:
        return await self._call(
            lambda tok: self._client.set_fan_circulate(
                tok, thermostat_id, circulate, speed=self._settings.fan_circulate_speed
            )
        )
