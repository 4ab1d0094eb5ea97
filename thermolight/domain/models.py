from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Optional


class Mode(IntEnum):
    OFF = 0
    HEAT = 1
    COOL = 2
    AUTO = 3
    EMERGENCY_HEAT = 4


class EquipmentStatus(IntEnum):
    COOLING = 1
    DRYING = 2  # "overcool" dehumidification
    HEATING = 3
    FAN_ONLY = 4
    IDLE = 5


class Characteristic(str, Enum):
    POWER = "power"
    HUE = "hue"
    SATURATION = "saturation"
    BRIGHTNESS = "brightness"


class CommandKind(str, Enum):
    MODE = "mode"
    CIRCULATE = "circulate"


@dataclass(frozen=True)
class Thermostat:
    id: str
    name: Optional[str] = None
    model: str = ""
    firmware_version: str = ""

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Thermostat:
        return cls(
            id=str(data["id"]),
            name=data.get("name"),
            model=data.get("model") or "",
            firmware_version=data.get("firmwareVersion") or "",
        )


@dataclass(frozen=True)
class Location:
    name: Optional[str]
    thermostats: list[Thermostat] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Location:
        return cls(
            name=data.get("locationName"),
            thermostats=[Thermostat.from_json(d) for d in data.get("devices") or []],
        )


@dataclass(frozen=True)
class DeviceStatus:
    temp_indoor: float
    mode: int
    equipment_status: Optional[int] = None
    fan_circulate: Optional[int] = None
    fan_circulate_speed: Optional[int] = None
    fan: Optional[int] = None
    heat_setpoint: Optional[float] = None
    cool_setpoint: Optional[float] = None
    schedule_enabled: Optional[bool] = None
    equipment_communication: Optional[int] = None
    hum_indoor: Optional[int] = None
    hum_outdoor: Optional[int] = None
    temp_outdoor: Optional[float] = None

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DeviceStatus:
        return cls(
            temp_indoor=float(data["tempIndoor"]),
            mode=int(data["mode"]),
            equipment_status=_opt_int(data.get("equipmentStatus")),
            fan_circulate=_opt_int(data.get("fanCirculate")),
            fan_circulate_speed=_opt_int(data.get("fanCirculateSpeed")),
            fan=_opt_int(data.get("fan")),
            heat_setpoint=_opt_float(data.get("heatSetpoint")),
            cool_setpoint=_opt_float(data.get("coolSetpoint")),
            schedule_enabled=data.get("scheduleEnabled"),
            equipment_communication=_opt_int(data.get("equipmentCommunication")),
            hum_indoor=_opt_int(data.get("humIndoor")),
            hum_outdoor=_opt_int(data.get("humOutdoor")),
            temp_outdoor=_opt_float(data.get("tempOutdoor")),
        )


def _opt_int(v: Any) -> Optional[int]:
    return None if v is None else int(v)


def _opt_float(v: Any) -> Optional[float]:
    return None if v is None else float(v)


@dataclass(frozen=True)
class LightState:
    power: bool
    hue: float
    saturation: float
    brightness: float

    def value_of(self, c: Characteristic) -> Any:
        return getattr(self, c.value)


@dataclass(frozen=True)
class LightRef:
    home_id: str
    room_id: str
    light_id: str


@dataclass(frozen=True)
class Association:
    thermostat_id: str
    home_id: str
    room_id: str
    light_id: str

    @property
    def light_ref(self) -> LightRef:
        return LightRef(self.home_id, self.room_id, self.light_id)


# Home platform graph (snapshot values, never retained across polls)

@dataclass(frozen=True)
class Accessory:
    id: str
    name: str
    is_color_light: bool = True


@dataclass(frozen=True)
class Room:
    id: str
    name: str
    accessories: list[Accessory] = field(default_factory=list)


@dataclass(frozen=True)
class Home:
    id: str
    name: str
    rooms: list[Room] = field(default_factory=list)


@dataclass(frozen=True)
class LightAction:
    ts_utc: datetime
    thermostat_id: str
    light_id: str
    kind: str  # "capture" | "apply" | "restore"
    equipment_status: Optional[int]
    state: LightState
