from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.timeutil import now_utc
from ..domain.errors import ConfigurationIncomplete, RemoteError
from .reconciler import LightReconciler
from .thermostats import ThermostatService

logger = logging.getLogger(__name__)


@dataclass
class PollState:
    running: bool = False
    ticks: int = 0
    last_tick_utc: Optional[datetime] = None
    last_error: Optional[str] = None


class PollingScheduler:
    """Periodic "fetch statuses, then reconcile lights" loop."""

    def __init__(
        self,
        thermostats: ThermostatService,
        reconciler: LightReconciler,
        interval_seconds: float,
    ) -> None:
        self._thermostats = thermostats
        self._reconciler = reconciler
        self._interval = interval_seconds

        self._task: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()
        self.live = PollState()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        if not self._thermostats.configured:
            raise ConfigurationIncomplete("email, api key and integrator token are required")
        self._stop.clear()
        self._task = asyncio.create_task(self._run(), name="poll_loop")
        self.live.running = True

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            # Let an in-flight tick finish before putting lights back
            await self._task
            self._task = None
        await self._reconciler.restore_all()
        self.live.running = False

    async def tick(self) -> None:
        if not self._thermostats.thermostats:
            try:
                await self._thermostats.load()
            except RemoteError as e:
                logger.warning("Thermostat load failed: %s", e)
                self.live.last_error = str(e)
        await self._thermostats.refresh_statuses()
        await self._reconciler.reconcile()
        self.live.ticks += 1
        self.live.last_tick_utc = now_utc()

    async def _run(self) -> None:
        logger.info("Poll loop started (interval=%ss)", self._interval)

        while not self._stop.is_set():
            try:
                await self.tick()
            except Exception as e:
                self.live.last_error = str(e)
                logger.exception("Poll loop error: %s", e)

            # sleep with cancellation awareness
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

        logger.info("Poll loop stopped")
