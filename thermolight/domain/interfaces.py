from __future__ import annotations
from typing import Any, Awaitable, Callable, Protocol, runtime_checkable
from .models import Association, Characteristic, Home, LightAction


HomesListener = Callable[[list[Home]], Awaitable[None]]


@runtime_checkable
class HomePlatform(Protocol):
    async def list_homes(self) -> list[Home]:
        ...

    async def read_characteristic(self, light_id: str, characteristic: Characteristic) -> Any:
        """Raise CharacteristicIOError on failure."""
        ...

    async def write_characteristic(self, light_id: str, characteristic: Characteristic, value: Any) -> None:
        """Raise CharacteristicIOError on failure."""
        ...

    def add_listener(self, listener: HomesListener) -> None:
        ...


@runtime_checkable
class Repository(Protocol):
    async def init(self) -> None:
        ...

    async def load_associations(self) -> list[Association]:
        ...

    async def upsert_association(self, assoc: Association) -> None:
        ...

    async def delete_association(self, thermostat_id: str) -> None:
        ...

    async def insert_action(self, action: LightAction) -> None:
        ...

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> list[LightAction]:
        ...
