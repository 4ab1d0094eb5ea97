from __future__ import annotations
from datetime import datetime
from typing import Optional

from ..core.timeutil import now_utc
from ..domain.models import DeviceStatus


class StatusCache:
    """Latest fetched status per thermostat. Failed fetches never touch it."""

    def __init__(self) -> None:
        self._statuses: dict[str, DeviceStatus] = {}
        self.last_updated: Optional[datetime] = None

    def update(self, thermostat_id: str, status: DeviceStatus) -> None:
        self._statuses[thermostat_id] = status
        self.last_updated = now_utc()

    def get(self, thermostat_id: str) -> Optional[DeviceStatus]:
        return self._statuses.get(thermostat_id)

    def snapshot(self) -> dict[str, DeviceStatus]:
        return dict(self._statuses)

    def __len__(self) -> int:
        return len(self._statuses)
