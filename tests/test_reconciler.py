"""Tests for the light reconciliation engine."""
from __future__ import annotations

import pytest

from conftest import HOME, LIGHT_1, LIGHT_2, ROOM, make_homes, status
from thermolight.domain.errors import CharacteristicIOError
from thermolight.domain.models import Characteristic, LightRef, LightState
from thermolight.domain.policy import COOLING_COLOR, FLAG_COLOR, HEATING_COLOR

ORIGINAL = LightState(power=False, hue=10.0, saturation=20.0, brightness=30.0)
REF_1 = LightRef(HOME, ROOM, LIGHT_1)


@pytest.fixture
async def associated(associations):
    await associations.save("T1", HOME, ROOM, LIGHT_1)
    return associations


class TestExcursion:
    async def test_heating_idle_scenario(self, reconciler, platform, cache, associated) -> None:
        # poll 1: idle, nothing to do
        cache.update("T1", status(5))
        await reconciler.reconcile()
        assert platform.writes == []
        assert reconciler.saved_states() == {}

        # poll 2: heating, capture then colour
        cache.update("T1", status(3))
        await reconciler.reconcile()
        assert reconciler.saved_states() == {REF_1: ORIGINAL}
        assert platform.writes == [
            (LIGHT_1, Characteristic.POWER, True),
            (LIGHT_1, Characteristic.HUE, 0.0),
            (LIGHT_1, Characteristic.SATURATION, 100.0),
            (LIGHT_1, Characteristic.BRIGHTNESS, 50.0),
        ]

        # poll 3: still heating, light already at target
        platform.writes.clear()
        await reconciler.reconcile()
        assert platform.writes == []
        assert reconciler.saved_states() == {REF_1: ORIGINAL}

        # poll 4: idle again, restore exactly what was captured
        cache.update("T1", status(5))
        await reconciler.reconcile()
        assert sorted(platform.writes, key=lambda w: w[1].value) == sorted(
            [
                (LIGHT_1, Characteristic.HUE, 10.0),
                (LIGHT_1, Characteristic.SATURATION, 20.0),
                (LIGHT_1, Characteristic.BRIGHTNESS, 30.0),
                (LIGHT_1, Characteristic.POWER, False),
            ],
            key=lambda w: w[1].value,
        )
        assert platform.light(LIGHT_1).state() == ORIGINAL
        assert reconciler.saved_states() == {}

    @pytest.mark.parametrize(
        "code,target",
        [(3, HEATING_COLOR), (1, COOLING_COLOR), (2, COOLING_COLOR)],
    )
    async def test_capture_then_write_mapped_color(self, reconciler, platform, cache, associated, code, target) -> None:
        cache.update("T1", status(code))
        await reconciler.reconcile()

        assert reconciler.saved_states()[REF_1] == ORIGINAL
        assert platform.light(LIGHT_1).state() == target

        cache.update("T1", status(5))
        await reconciler.reconcile()
        assert platform.light(LIGHT_1).state() == ORIGINAL

    async def test_second_idle_pass_is_noop(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()
        cache.update("T1", status(5))
        await reconciler.reconcile()

        platform.writes.clear()
        await reconciler.reconcile()
        assert platform.writes == []

    async def test_unknown_status_gets_flag_color(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(4))
        await reconciler.reconcile()
        assert platform.light(LIGHT_1).state() == FLAG_COLOR

        cache.update("T1", status(99))
        await reconciler.reconcile()
        assert platform.light(LIGHT_1).state() == FLAG_COLOR

    async def test_missing_status_restores(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()
        cache.update("T1", status(None))
        await reconciler.reconcile()
        assert platform.light(LIGHT_1).state() == ORIGINAL

    async def test_flapping_never_overwrites_saved_state(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()
        cache.update("T1", status(1))
        await reconciler.reconcile()
        cache.update("T1", status(3))
        await reconciler.reconcile()

        assert reconciler.saved_states()[REF_1] == ORIGINAL


class TestConditionalWrites:
    async def test_matching_characteristic_is_not_written(self, reconciler, platform, cache, associated) -> None:
        light = platform.light(LIGHT_1)
        light.hue = 0.0
        cache.update("T1", status(3))

        await reconciler.reconcile()

        written = [c for _, c, _ in platform.writes]
        assert Characteristic.HUE not in written
        assert len(written) == 3


class TestFailures:
    async def test_capture_failure_skips_write(self, reconciler, platform, cache, associated) -> None:
        platform.light(LIGHT_1).reachable = False
        cache.update("T1", status(3))

        await reconciler.reconcile()

        assert platform.writes == []
        assert reconciler.saved_states() == {}

    async def test_one_light_failing_does_not_block_others(self, reconciler, platform, cache, associations) -> None:
        await associations.save("T1", HOME, ROOM, LIGHT_1)
        await associations.save("T2", HOME, ROOM, LIGHT_2)
        platform.light(LIGHT_1).reachable = False
        cache.update("T1", status(3))
        cache.update("T2", status(1))

        await reconciler.reconcile()

        assert platform.light(LIGHT_2).state() == COOLING_COLOR
        assert LightRef(HOME, ROOM, LIGHT_2) in reconciler.saved_states()

    async def test_failed_restore_keeps_saved_state(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()

        platform.light(LIGHT_1).reachable = False
        cache.update("T1", status(5))
        await reconciler.reconcile()
        assert reconciler.saved_states() == {REF_1: ORIGINAL}

        platform.light(LIGHT_1).reachable = True
        await reconciler.reconcile()
        assert reconciler.saved_states() == {}
        assert platform.light(LIGHT_1).state() == ORIGINAL

    async def test_unresolvable_light_drops_association(self, reconciler, platform, cache, associations) -> None:
        await associations.save("T1", HOME, ROOM, "light-gone")
        cache.update("T1", status(3))

        await reconciler.reconcile()

        assert associations.get("T1") is None
        assert platform.writes == []

    async def test_write_error_is_contained(self, reconciler, platform, cache, associated, monkeypatch) -> None:
        async def broken_write(light_id, characteristic, value):
            raise CharacteristicIOError("boom")

        monkeypatch.setattr(platform, "write_characteristic", broken_write)
        cache.update("T1", status(3))

        await reconciler.reconcile()

        # captured, but light still shows the original values
        assert reconciler.saved_states() == {REF_1: ORIGINAL}
        assert platform.light(LIGHT_1).state() == ORIGINAL

    async def test_missing_value_skips_light_but_not_others(self, reconciler, platform, cache, associations, monkeypatch) -> None:
        await associations.save("T1", HOME, ROOM, LIGHT_1)
        await associations.save("T2", HOME, ROOM, LIGHT_2)
        real_read = platform.read_characteristic

        async def stale_read(light_id, characteristic):
            if light_id == LIGHT_1:
                return None
            return await real_read(light_id, characteristic)

        monkeypatch.setattr(platform, "read_characteristic", stale_read)
        cache.update("T1", status(3))
        cache.update("T2", status(1))

        await reconciler.reconcile()

        assert REF_1 not in reconciler.saved_states()
        assert platform.light(LIGHT_2).state() == COOLING_COLOR
        assert all(w[0] == LIGHT_2 for w in platform.writes)

    async def test_unexpected_error_is_contained_per_light(self, reconciler, platform, cache, associations, monkeypatch) -> None:
        await associations.save("T1", HOME, ROOM, LIGHT_1)
        await associations.save("T2", HOME, ROOM, LIGHT_2)
        real_read = platform.read_characteristic

        async def garbled_read(light_id, characteristic):
            if light_id == LIGHT_1:
                raise ValueError("garbled")
            return await real_read(light_id, characteristic)

        monkeypatch.setattr(platform, "read_characteristic", garbled_read)
        cache.update("T1", status(3))
        cache.update("T2", status(1))

        await reconciler.reconcile()

        assert platform.light(LIGHT_2).state() == COOLING_COLOR


class TestRestoreAll:
    async def test_restores_every_saved_light(self, reconciler, platform, cache, associations) -> None:
        await associations.save("T1", HOME, ROOM, LIGHT_1)
        await associations.save("T2", HOME, ROOM, LIGHT_2)
        before_2 = platform.light(LIGHT_2).state()
        cache.update("T1", status(3))
        cache.update("T2", status(2))
        await reconciler.reconcile()
        assert len(reconciler.saved_states()) == 2

        restored = await reconciler.restore_all()

        assert restored == 2
        assert reconciler.saved_states() == {}
        assert platform.light(LIGHT_1).state() == ORIGINAL
        assert platform.light(LIGHT_2).state() == before_2

    async def test_empty_table_writes_nothing(self, reconciler, platform) -> None:
        assert await reconciler.restore_all() == 0
        assert platform.writes == []


class TestSharedAndOrphaned:
    async def test_heating_wins_over_idle_on_shared_light(self, reconciler, platform, cache, associations) -> None:
        await associations.save("T1", HOME, ROOM, LIGHT_1)
        await associations.save("T2", HOME, ROOM, LIGHT_1)
        cache.update("T1", status(5))
        cache.update("T2", status(3))

        await reconciler.reconcile()

        assert platform.light(LIGHT_1).state() == HEATING_COLOR

    async def test_cleared_association_restores_light(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()

        await associated.delete("T1")
        await reconciler.reconcile()

        assert platform.light(LIGHT_1).state() == ORIGINAL
        assert reconciler.saved_states() == {}

    async def test_vanished_light_is_forgotten(self, reconciler, platform, cache, associated) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()

        await platform.replace_homes(make_homes(LIGHT_2))
        await reconciler.reconcile()

        assert reconciler.saved_states() == {}


class TestHistory:
    async def test_actions_recorded(self, reconciler, cache, associated, repo) -> None:
        cache.update("T1", status(3))
        await reconciler.reconcile()
        cache.update("T1", status(5))
        await reconciler.reconcile()

        assert [a.kind for a in repo.actions] == ["capture", "apply", "restore"]
        assert repo.actions[0].state == ORIGINAL
        assert repo.actions[-1].thermostat_id == "T1"
