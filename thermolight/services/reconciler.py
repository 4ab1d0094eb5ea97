from __future__ import annotations
import logging
import math
from typing import Optional

from ..core.timeutil import now_utc
from ..domain.errors import AccessoryUnavailable, CharacteristicIOError
from ..domain.interfaces import HomePlatform, Repository
from ..domain.models import Association, Characteristic, LightAction, LightRef, LightState
from ..domain.policy import EffectDecision, EffectPolicy
from .associations import AssociationStore
from .directory import AccessoryDirectory
from .status_cache import StatusCache

logger = logging.getLogger(__name__)

COLOR_CHARACTERISTICS = (Characteristic.HUE, Characteristic.SATURATION, Characteristic.BRIGHTNESS)


class LightReconciler:
    """Drives associated lights from equipment status.

    Per light: Idle (nothing saved) -> Excursion (original state saved, light
    showing a status colour) -> Idle again once the saved state is written
    back. A saved state is written once per excursion and never replaced
    while the excursion lasts.
    """

    def __init__(
        self,
        platform: HomePlatform,
        directory: AccessoryDirectory,
        associations: AssociationStore,
        cache: StatusCache,
        policy: EffectPolicy,
        repo: Optional[Repository] = None,
    ) -> None:
        self._platform = platform
        self._directory = directory
        self._associations = associations
        self._cache = cache
        self._policy = policy
        self._repo = repo

        self._saved: dict[LightRef, LightState] = {}
        self._owners: dict[LightRef, str] = {}
        self.last_decisions: dict[str, EffectDecision] = {}

    def saved_states(self) -> dict[LightRef, LightState]:
        return dict(self._saved)

    async def reconcile(self) -> None:
        # Group by light so two thermostats sharing a light cannot fight over it;
        # any thermostat wanting a colour wins over one wanting a restore.
        plans: dict[LightRef, tuple[Association, EffectDecision, Optional[int]]] = {}
        for assoc in self._associations.all():
            ref = assoc.light_ref
            try:
                self._directory.lookup(ref)
            except AccessoryUnavailable as e:
                logger.warning("Light for %s unavailable (%s); dropping association", assoc.thermostat_id, e)
                await self._associations.delete(assoc.thermostat_id)
                continue

            status = self._cache.get(assoc.thermostat_id)
            eq = status.equipment_status if status else None
            decision = self._policy.decide(eq)
            self.last_decisions[assoc.thermostat_id] = decision

            current = plans.get(ref)
            if current is None or (current[1].action == "RESTORE" and decision.action == "APPLY"):
                plans[ref] = (assoc, decision, eq)

        for ref, (assoc, decision, eq) in plans.items():
            try:
                if decision.action == "APPLY":
                    await self._drive(ref, assoc.thermostat_id, decision, eq)
                elif ref in self._saved:
                    await self._restore(ref, eq)
            except CharacteristicIOError as e:
                logger.warning("Light %s for %s skipped this tick: %s", ref.light_id, assoc.thermostat_id, e)
            except Exception:
                logger.exception("Unexpected failure driving light %s for %s", ref.light_id, assoc.thermostat_id)

        # Excursions whose association went away: put the light back
        for ref in [r for r in self._saved if r not in plans]:
            try:
                self._directory.lookup(ref)
            except AccessoryUnavailable:
                logger.warning("Dropping saved state for vanished light %s", ref.light_id)
                self._forget(ref)
                continue
            try:
                await self._restore(ref, None)
            except CharacteristicIOError as e:
                logger.warning("Restore of orphaned light %s failed: %s", ref.light_id, e)
            except Exception:
                logger.exception("Unexpected failure restoring orphaned light %s", ref.light_id)

    async def restore_all(self) -> int:
        """Write back every saved state, then clear the table. Returns lights restored."""
        restored = 0
        for ref in list(self._saved):
            try:
                self._directory.lookup(ref)
                await self._restore(ref, None)
                restored += 1
            except (AccessoryUnavailable, CharacteristicIOError) as e:
                logger.warning("Forced restore of light %s failed: %s", ref.light_id, e)
            except Exception:
                logger.exception("Unexpected failure restoring light %s", ref.light_id)
        self._saved.clear()
        self._owners.clear()
        logger.info("Forced restore complete (%d light(s))", restored)
        return restored

    # --- internals ---

    async def _drive(self, ref: LightRef, thermostat_id: str, decision: EffectDecision, eq: Optional[int]) -> None:
        if ref not in self._saved:
            original = await self._capture(ref.light_id)
            # Only after a successful capture may the light be overridden
            self._saved[ref] = original
            self._owners[ref] = thermostat_id
            logger.info("Captured %s for %s: %s", ref.light_id, thermostat_id, original)
            await self._record(thermostat_id, ref, "capture", eq, original)

        writes = await self._apply(ref.light_id, decision.target)
        if writes:
            logger.info("Light %s -> %s (%s, %d write(s))", ref.light_id, decision.target, decision.reason, writes)
            await self._record(thermostat_id, ref, "apply", eq, decision.target)

    async def _restore(self, ref: LightRef, eq: Optional[int]) -> None:
        saved = self._saved[ref]
        await self._apply(ref.light_id, saved)
        owner = self._owners.get(ref, "")
        self._forget(ref)
        logger.info("Restored light %s to %s", ref.light_id, saved)
        await self._record(owner, ref, "restore", eq, saved)

    def _forget(self, ref: LightRef) -> None:
        self._saved.pop(ref, None)
        self._owners.pop(ref, None)

    async def _read(self, light_id: str, c: Characteristic):
        value = await self._platform.read_characteristic(light_id, c)
        if value is None:
            raise CharacteristicIOError(f"{light_id}: no value for {c.value}")
        return value

    async def _capture(self, light_id: str) -> LightState:
        read = self._read
        return LightState(
            power=bool(await read(light_id, Characteristic.POWER)),
            hue=float(await read(light_id, Characteristic.HUE)),
            saturation=float(await read(light_id, Characteristic.SATURATION)),
            brightness=float(await read(light_id, Characteristic.BRIGHTNESS)),
        )

    async def _apply(self, light_id: str, target: LightState) -> int:
        # Power on before colouring; colour before powering off
        if target.power:
            order = (Characteristic.POWER,) + COLOR_CHARACTERISTICS
        else:
            order = COLOR_CHARACTERISTICS + (Characteristic.POWER,)

        writes = 0
        for c in order:
            want = target.value_of(c)
            have = await self._platform.read_characteristic(light_id, c)
            if _same(c, have, want):
                continue
            await self._platform.write_characteristic(light_id, c, want)
            writes += 1
        return writes

    async def _record(self, thermostat_id: str, ref: LightRef, kind: str, eq: Optional[int], state: LightState) -> None:
        if self._repo is None:
            return
        try:
            await self._repo.insert_action(
                LightAction(
                    ts_utc=now_utc(),
                    thermostat_id=thermostat_id,
                    light_id=ref.light_id,
                    kind=kind,
                    equipment_status=eq,
                    state=state,
                )
            )
        except Exception:
            logger.warning("Failed to record light action", exc_info=True)


def _same(c: Characteristic, have, want) -> bool:
    if have is None:
        return False
    if c is Characteristic.POWER:
        return bool(have) == bool(want)
    return math.isclose(float(have), float(want), abs_tol=1e-6)
