"""Human readable renderings of vendor codes, as shown on the live view."""
from __future__ import annotations
from typing import Optional

from .models import DeviceStatus, Location, Thermostat

_MODES = {0: "Off", 1: "Heating", 2: "Cooling", 3: "Auto", 4: "Emergency Heat"}
_EQUIPMENT = {1: "Cooling", 2: "Drying/Overcool", 3: "Heating", 4: "Fan Only", 5: "Idle"}


def mode_description(mode: Optional[int]) -> str:
    if mode is None:
        return "N/A"
    return _MODES.get(mode, "Unknown")


def equipment_status_description(status: Optional[int]) -> str:
    if status is None:
        return "Unknown (nil)"
    return _EQUIPMENT.get(status, "Unknown")


def fan_circulate_description(fan_circulate: Optional[int]) -> str:
    if fan_circulate is None:
        return "Unknown (nil)"
    if fan_circulate == 0:
        return "Circulate Off"
    if fan_circulate == 1:
        return "Circulate Enabled"
    return "Unexpected"


def fan_description(fan: Optional[int]) -> str:
    if fan is None:
        return "Unknown (nil)"
    return "Not Running (0)" if fan == 0 else f"Non-Zero ({fan})"


def _c(v: Optional[float]) -> str:
    return "N/A" if v is None else f"{v:.1f}"


def setpoints_description(mode: int, heat_setpoint: Optional[float], cool_setpoint: Optional[float]) -> str:
    if mode == 1:
        return f"Heat Setpoint: {_c(heat_setpoint)}°C" if heat_setpoint is not None else "Heat Setpoint: N/A"
    if mode == 2:
        return f"Cool Setpoint: {_c(cool_setpoint)}°C" if cool_setpoint is not None else "Cool Setpoint: N/A"
    if mode == 3:
        return f"Heat Setpoint: {_c(heat_setpoint)}°C, Cool Setpoint: {_c(cool_setpoint)}°C"
    return "Setpoints: N/A"


def schedule_description(enabled: Optional[bool]) -> str:
    if enabled is None:
        return "N/A"
    return "Yes" if enabled else "No"


def temperature_description(status: Optional[DeviceStatus]) -> str:
    return "N/A" if status is None else f"{status.temp_indoor:.1f}"


def section_header(location: Optional[Location], thermostat: Thermostat) -> str:
    name = thermostat.name or thermostat.id
    if location is not None and location.name:
        return f"{location.name} - {name}"
    return name


def describe_status(status: Optional[DeviceStatus]) -> dict:
    if status is None:
        return {
            "temperature": "N/A",
            "mode": "N/A",
            "schedule": "N/A",
            "active_status": "N/A",
            "fan_circulate": "N/A",
            "fan": None,
            "setpoints": "N/A",
        }
    return {
        "temperature": temperature_description(status),
        "mode": mode_description(status.mode),
        "schedule": schedule_description(status.schedule_enabled),
        "active_status": equipment_status_description(status.equipment_status),
        "fan_circulate": fan_circulate_description(status.fan_circulate),
        # fan speed only matters while circulating
        "fan": fan_description(status.fan) if status.fan_circulate == 1 else None,
        "setpoints": setpoints_description(status.mode, status.heat_setpoint, status.cool_setpoint),
    }
