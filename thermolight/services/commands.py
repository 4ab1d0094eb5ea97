from __future__ import annotations
import asyncio
import logging
from typing import Optional

from ..domain.errors import RemoteError
from ..domain.models import CommandKind, Mode
from .thermostats import ThermostatService

logger = logging.getLogger(__name__)


class ManualCommandExecutor:
    """Mode / fan-circulate toggles guarded per (command kind, thermostat).

    A thermostat stays busy for a kind from the moment the command is issued
    until its post-settle status refresh completes, whether or not the
    command itself succeeded.
    """

    def __init__(self, thermostats: ThermostatService, settle_delay: float = 15.0) -> None:
        self._thermostats = thermostats
        self._settle_delay = settle_delay
        self._busy: dict[CommandKind, set[str]] = {k: set() for k in CommandKind}
        self._tasks: set[asyncio.Task] = set()

    def is_busy(self, kind: CommandKind, thermostat_id: str) -> bool:
        return thermostat_id in self._busy[kind]

    def busy_ids(self, kind: CommandKind) -> set[str]:
        return set(self._busy[kind])

    def _claim(self, kind: CommandKind, thermostat_id: str) -> bool:
        # No await between check and insert, so this is atomic on the loop
        ids = self._busy[kind]
        if thermostat_id in ids:
            return False
        ids.add(thermostat_id)
        return True

    async def toggle_mode(self, thermostat_id: str) -> bool:
        if not self._claim(CommandKind.MODE, thermostat_id):
            return False
        await self._run(CommandKind.MODE, thermostat_id)
        return True

    async def toggle_circulate(self, thermostat_id: str) -> bool:
        if not self._claim(CommandKind.CIRCULATE, thermostat_id):
            return False
        await self._run(CommandKind.CIRCULATE, thermostat_id)
        return True

    def submit_toggle_mode(self, thermostat_id: str) -> bool:
        return self._submit(CommandKind.MODE, thermostat_id)

    def submit_toggle_circulate(self, thermostat_id: str) -> bool:
        return self._submit(CommandKind.CIRCULATE, thermostat_id)

    def _submit(self, kind: CommandKind, thermostat_id: str) -> bool:
        if not self._claim(kind, thermostat_id):
            return False
        task = asyncio.create_task(self._run(kind, thermostat_id), name=f"{kind.value}:{thermostat_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _run(self, kind: CommandKind, thermostat_id: str) -> None:
        try:
            try:
                await self._issue(kind, thermostat_id)
            except RemoteError as e:
                logger.warning("%s command for %s failed: %s", kind.value, thermostat_id, e)
            await asyncio.sleep(self._settle_delay)
            await self._thermostats.refresh_status(thermostat_id)
        finally:
            self._busy[kind].discard(thermostat_id)

    async def _issue(self, kind: CommandKind, thermostat_id: str) -> None:
        status = self._thermostats.cache.get(thermostat_id)
        if kind is CommandKind.MODE:
            current: Optional[int] = status.mode if status else None
            target = Mode.OFF if current == Mode.AUTO else Mode.AUTO
            await self._thermostats.set_mode(thermostat_id, target)
            logger.info("Mode toggle for %s: %s -> %s", thermostat_id, current, target.name)
        else:
            circulate = not (status is not None and status.fan_circulate == 1)
            await self._thermostats.set_fan_circulate(thermostat_id, circulate)
            logger.info("Fan circulate toggle for %s -> %s", thermostat_id, circulate)
