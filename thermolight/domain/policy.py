from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from .models import LightState

HEATING_COLOR = LightState(power=True, hue=0.0, saturation=100.0, brightness=50.0)
COOLING_COLOR = LightState(power=True, hue=240.0, saturation=100.0, brightness=50.0)
# Unrecognized equipment status; deliberately louder than normal operation
FLAG_COLOR = LightState(power=True, hue=300.0, saturation=100.0, brightness=100.0)


@dataclass(frozen=True)
class EffectDecision:
    action: str  # "APPLY" | "RESTORE"
    reason: str
    target: Optional[LightState] = None


class EffectPolicy:
    """Maps vendor equipment status codes to what the light should show."""

    def __init__(
        self,
        heating: Iterable[int] = (3,),
        cooling: Iterable[int] = (1, 2),
        idle: Iterable[int] = (5,),
    ) -> None:
        self.heating = frozenset(heating)
        self.cooling = frozenset(cooling)
        self.idle = frozenset(idle)

    @classmethod
    def from_settings(cls, s) -> EffectPolicy:
        return cls(s.heating_status_codes, s.cooling_status_codes, s.idle_status_codes)

    def decide(self, equipment_status: Optional[int]) -> EffectDecision:
        if equipment_status is None:
            return EffectDecision("RESTORE", "No equipment status")
        if equipment_status in self.idle:
            return EffectDecision("RESTORE", f"Idle ({equipment_status})")
        if equipment_status in self.heating:
            return EffectDecision("APPLY", f"Heating ({equipment_status})", HEATING_COLOR)
        if equipment_status in self.cooling:
            return EffectDecision("APPLY", f"Cooling ({equipment_status})", COOLING_COLOR)
        return EffectDecision("APPLY", f"Unrecognized status ({equipment_status})", FLAG_COLOR)
