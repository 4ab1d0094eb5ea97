"""Shared fixtures: an in-memory home platform, repository and services."""
from __future__ import annotations

from typing import Optional

import pytest

from thermolight.core.config import Settings
from thermolight.domain.models import (
    Accessory,
    Association,
    DeviceStatus,
    Home,
    LightAction,
    Room,
)
from thermolight.domain.policy import EffectPolicy
from thermolight.drivers.homes_sim import SimulatedHomePlatform
from thermolight.services.associations import AssociationStore
from thermolight.services.directory import AccessoryDirectory
from thermolight.services.reconciler import LightReconciler
from thermolight.services.status_cache import StatusCache

HOME = "home-1"
ROOM = "room-1"
LIGHT_1 = "light-1"
LIGHT_2 = "light-2"


class MemoryRepository:
    def __init__(self) -> None:
        self.associations: dict[str, Association] = {}
        self.actions: list[LightAction] = []

    async def init(self) -> None:
        pass

    async def load_associations(self) -> list[Association]:
        return list(self.associations.values())

    async def upsert_association(self, assoc: Association) -> None:
        self.associations[assoc.thermostat_id] = assoc

    async def delete_association(self, thermostat_id: str) -> None:
        self.associations.pop(thermostat_id, None)

    async def insert_action(self, action: LightAction) -> None:
        self.actions.append(action)

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> list[LightAction]:
        return self.actions[-limit:]


def make_homes(*light_ids: str) -> list[Home]:
    return [
        Home(
            id=HOME,
            name="Home",
            rooms=[Room(id=ROOM, name="Living", accessories=[Accessory(id=i, name=i) for i in light_ids])],
        )
    ]


def status(equipment: Optional[int], mode: int = 3, fan_circulate: int = 0) -> DeviceStatus:
    return DeviceStatus(
        temp_indoor=21.5,
        mode=mode,
        equipment_status=equipment,
        fan_circulate=fan_circulate,
        heat_setpoint=19.0,
        cool_setpoint=25.0,
    )


@pytest.fixture
def app_settings() -> Settings:
    return Settings(
        _env_file=None,
        email="user@example.com",
        api_key="key",
        integrator_token="integrator",
        api_base_url="https://vendor.test",
        settle_delay_seconds=0.0,
        directory_retry_delay_seconds=0.0,
        log_file="",
    )


@pytest.fixture
def platform() -> SimulatedHomePlatform:
    p = SimulatedHomePlatform(make_homes(LIGHT_1, LIGHT_2))
    light = p.light(LIGHT_1)
    light.power, light.hue, light.saturation, light.brightness = False, 10.0, 20.0, 30.0
    return p


@pytest.fixture
def repo() -> MemoryRepository:
    return MemoryRepository()


@pytest.fixture
async def directory(platform: SimulatedHomePlatform) -> AccessoryDirectory:
    d = AccessoryDirectory(platform, retry_attempts=3, retry_delay=0.0)
    await d.refresh()
    return d


@pytest.fixture
def associations(repo: MemoryRepository) -> AssociationStore:
    return AssociationStore(repo)


@pytest.fixture
def cache() -> StatusCache:
    return StatusCache()


@pytest.fixture
def reconciler(platform, directory, associations, cache, repo) -> LightReconciler:
    return LightReconciler(platform, directory, associations, cache, EffectPolicy(), repo=repo)
