from __future__ import annotations
import logging
from typing import Optional

from ..domain.errors import AccessoryUnavailable
from ..domain.interfaces import Repository
from ..domain.models import Association, Home, LightRef
from .directory import AccessoryDirectory

logger = logging.getLogger(__name__)


class AssociationStore:
    """Thermostat id -> (home, room, light) ids, write-through to the repository."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo
        self._items: dict[str, Association] = {}

    async def load(self) -> None:
        self._items = {a.thermostat_id: a for a in await self._repo.load_associations()}
        logger.info("Loaded %d association(s)", len(self._items))

    def all(self) -> list[Association]:
        return list(self._items.values())

    def get(self, thermostat_id: str) -> Optional[Association]:
        return self._items.get(thermostat_id)

    async def save(self, thermostat_id: str, home_id: str, room_id: str, light_id: str) -> Association:
        assoc = Association(thermostat_id, home_id, room_id, light_id)
        await self._repo.upsert_association(assoc)
        self._items[thermostat_id] = assoc
        logger.info("Saved association %s -> %s/%s/%s", thermostat_id, home_id, room_id, light_id)
        return assoc

    async def delete(self, thermostat_id: str) -> bool:
        if thermostat_id not in self._items:
            return False
        await self._repo.delete_association(thermostat_id)
        del self._items[thermostat_id]
        logger.info("Removed association for %s", thermostat_id)
        return True

    def resolve(self, thermostat_id: str, directory: AccessoryDirectory) -> Optional[LightRef]:
        assoc = self._items.get(thermostat_id)
        if assoc is None:
            return None
        try:
            directory.lookup(assoc.light_ref)
        except AccessoryUnavailable:
            return None
        return assoc.light_ref

    async def validate_all(self, directory: AccessoryDirectory) -> list[str]:
        """Drop every association whose home, room or light no longer resolves."""
        removed: list[str] = []
        for assoc in self.all():
            try:
                directory.lookup(assoc.light_ref)
            except AccessoryUnavailable as e:
                logger.warning("Association for %s is stale (%s); removing", assoc.thermostat_id, e)
                await self.delete(assoc.thermostat_id)
                removed.append(assoc.thermostat_id)
        return removed

    def bind(self, directory: AccessoryDirectory):
        """Re-validate whenever the directory publishes. Returns the unsubscribe handle."""

        async def _on_homes(_homes: list[Home]) -> None:
            await self.validate_all(directory)

        return directory.subscribe(_on_homes)
