from __future__ import annotations
import json
import logging
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from ..domain.errors import CharacteristicIOError
from ..domain.interfaces import HomesListener
from ..domain.models import Accessory, Characteristic, Home, LightState, Room

logger = logging.getLogger(__name__)

DEFAULT_HOMES_PATH = Path(__file__).resolve().parent.parent / "config" / "default_homes.json"


@dataclass
class SimulatedLight:
    power: bool = False
    hue: float = 0.0
    saturation: float = 0.0
    brightness: float = 100.0
    reachable: bool = True

    def state(self) -> LightState:
        return LightState(self.power, self.hue, self.saturation, self.brightness)


class SimulatedHomePlatform:
    """In-memory home platform: homes -> rooms -> colour lights."""

    def __init__(self, homes: Optional[list[Home]] = None) -> None:
        self._homes: list[Home] = list(homes or [])
        self._lights: dict[str, SimulatedLight] = {}
        self._listeners: list[HomesListener] = []
        self.reads = 0
        self.writes: list[tuple[str, Characteristic, Any]] = []

        # Optional: inject occasional failures for testing
        self._failure_rate = 0.0

        for home in self._homes:
            for room in home.rooms:
                for acc in room.accessories:
                    self._lights.setdefault(acc.id, SimulatedLight())

    @classmethod
    def from_file(cls, path: Optional[str] = None) -> SimulatedHomePlatform:
        p = Path(path) if path else DEFAULT_HOMES_PATH
        data = json.loads(p.read_text())
        homes: list[Home] = []
        lights: dict[str, SimulatedLight] = {}
        for h in data["homes"]:
            rooms = []
            for r in h.get("rooms", []):
                accessories = []
                for a in r.get("lights", []):
                    accessories.append(Accessory(id=a["id"], name=a.get("name", a["id"]),
                                                 is_color_light=bool(a.get("color", True))))
                    lights[a["id"]] = SimulatedLight(
                        power=bool(a.get("power", False)),
                        hue=float(a.get("hue", 0.0)),
                        saturation=float(a.get("saturation", 0.0)),
                        brightness=float(a.get("brightness", 100.0)),
                    )
                rooms.append(Room(id=r["id"], name=r.get("name", r["id"]), accessories=accessories))
            homes.append(Home(id=h["id"], name=h.get("name", h["id"]), rooms=rooms))
        platform = cls(homes)
        platform._lights.update(lights)
        logger.info("Simulated platform loaded from %s (%d home(s), %d light(s))", p, len(homes), len(lights))
        return platform

    def set_failure_rate(self, rate: float) -> None:
        self._failure_rate = max(0.0, min(1.0, rate))

    def light(self, light_id: str) -> SimulatedLight:
        return self._lights[light_id]

    def add_listener(self, listener: HomesListener) -> None:
        self._listeners.append(listener)

    async def replace_homes(self, homes: list[Home]) -> None:
        """Simulate the platform re-publishing its home graph (e.g. after re-pairing)."""
        self._homes = list(homes)
        for home in self._homes:
            for room in home.rooms:
                for acc in room.accessories:
                    self._lights.setdefault(acc.id, SimulatedLight())
        for listener in list(self._listeners):
            await listener(list(self._homes))

    async def list_homes(self) -> list[Home]:
        return list(self._homes)

    def _check(self, light_id: str) -> SimulatedLight:
        light = self._lights.get(light_id)
        if light is None or not light.reachable:
            raise CharacteristicIOError(f"light {light_id} unreachable")
        if self._failure_rate > 0.0 and random.random() < self._failure_rate:
            raise CharacteristicIOError(f"simulated failure on {light_id}")
        return light

    async def read_characteristic(self, light_id: str, characteristic: Characteristic) -> Any:
        light = self._check(light_id)
        self.reads += 1
        return getattr(light, characteristic.value)

    async def write_characteristic(self, light_id: str, characteristic: Characteristic, value: Any) -> None:
        light = self._check(light_id)
        if characteristic is Characteristic.POWER:
            value = bool(value)
        else:
            value = float(value)
        setattr(light, characteristic.value, value)
        self.writes.append((light_id, characteristic, value))
        logger.info("LIGHT %s %s=%s", light_id, characteristic.value, value)
