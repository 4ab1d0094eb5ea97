from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from ..domain.errors import AccessoryUnavailable
from ..domain.interfaces import HomePlatform, HomesListener
from ..domain.models import Accessory, Home, LightRef, Room

logger = logging.getLogger(__name__)


class AccessoryDirectory:
    """Read-only view of the platform's homes/rooms/lights with change push.

    Holds only the latest snapshot. Callers resolve LightRefs through it at
    use time rather than keeping accessory objects between polls.
    """

    def __init__(self, platform: HomePlatform, retry_attempts: int = 3, retry_delay: float = 1.0) -> None:
        self._platform = platform
        self._retry_attempts = max(1, retry_attempts)
        self._retry_delay = retry_delay
        self._homes: list[Home] = []
        self._listeners: list[HomesListener] = []
        platform.add_listener(self._on_platform_update)

    def current_homes(self) -> list[Home]:
        return list(self._homes)

    async def refresh(self) -> list[Home]:
        homes: list[Home] = []
        for attempt in range(1, self._retry_attempts + 1):
            homes = await self._platform.list_homes()
            logger.debug("Directory refresh attempt %d: %d home(s)", attempt, len(homes))
            if homes:
                break
            if attempt < self._retry_attempts:
                await asyncio.sleep(self._retry_delay)
        else:
            logger.warning("No homes found after %d attempt(s)", self._retry_attempts)
        await self._set(homes)
        return list(self._homes)

    def subscribe(self, listener: HomesListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def _on_platform_update(self, homes: list[Home]) -> None:
        logger.info("Platform reported home update (%d home(s))", len(homes))
        await self._set(homes)

    async def _set(self, homes: list[Home]) -> None:
        self._homes = list(homes)
        for listener in list(self._listeners):
            try:
                await listener(self.current_homes())
            except Exception:
                logger.exception("Directory listener failed")

    # --- lookup ---

    def home(self, home_id: str) -> Optional[Home]:
        return next((h for h in self._homes if h.id == home_id), None)

    def room(self, home_id: str, room_id: str) -> Optional[Room]:
        h = self.home(home_id)
        if h is None:
            return None
        return next((r for r in h.rooms if r.id == room_id), None)

    def lookup(self, ref: LightRef) -> Accessory:
        r = self.room(ref.home_id, ref.room_id)
        if r is None:
            raise AccessoryUnavailable(f"home/room not found for {ref}")
        acc = next((a for a in r.accessories if a.id == ref.light_id), None)
        if acc is None:
            raise AccessoryUnavailable(f"light not found for {ref}")
        return acc

    def color_lights(self, home_id: str, room_id: str) -> list[Accessory]:
        r = self.room(home_id, room_id)
        if r is None:
            return []
        return [a for a in r.accessories if a.is_color_light]
