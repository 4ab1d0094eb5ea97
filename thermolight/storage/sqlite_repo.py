from __future__ import annotations
import aiosqlite
from datetime import datetime, timezone
from typing import Dict, List
from ..domain.models import Association, LightAction, LightState


class SQLiteRepository:
    def __init__(self, path: str) -> None:
        self._path = path

    async def init(self) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS associations (
                    thermostat_id TEXT PRIMARY KEY,
                    home_id TEXT NOT NULL,
                    room_id TEXT NOT NULL,
                    light_id TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS light_actions (
                    ts_utc TEXT NOT NULL,
                    thermostat_id TEXT NOT NULL,
                    light_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    equipment_status INTEGER,
                    power INTEGER NOT NULL,
                    hue REAL NOT NULL,
                    saturation REAL NOT NULL,
                    brightness REAL NOT NULL
                )
                """
            )
            await db.execute(
                """
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )
            await db.execute("CREATE INDEX IF NOT EXISTS idx_light_actions_ts ON light_actions(ts_utc)")
            await db.commit()

    async def load_associations(self) -> List[Association]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                "SELECT thermostat_id,home_id,room_id,light_id FROM associations ORDER BY thermostat_id"
            )
            rows = await cur.fetchall()
        return [Association(tid, hid, rid, lid) for tid, hid, rid, lid in rows]

    async def upsert_association(self, a: Association) -> None:
        now = datetime.now(timezone.utc).isoformat()
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO associations(thermostat_id,home_id,room_id,light_id,updated_at) VALUES (?,?,?,?,?) "
                "ON CONFLICT(thermostat_id) DO UPDATE SET home_id=excluded.home_id, room_id=excluded.room_id, "
                "light_id=excluded.light_id, updated_at=excluded.updated_at",
                (a.thermostat_id, a.home_id, a.room_id, a.light_id, now),
            )
            await db.commit()

    async def delete_association(self, thermostat_id: str) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute("DELETE FROM associations WHERE thermostat_id = ?", (thermostat_id,))
            await db.commit()

    async def insert_action(self, a: LightAction) -> None:
        async with aiosqlite.connect(self._path) as db:
            await db.execute(
                "INSERT INTO light_actions(ts_utc,thermostat_id,light_id,kind,equipment_status,power,hue,saturation,brightness) "
                "VALUES (?,?,?,?,?,?,?,?,?)",
                (
                    a.ts_utc.isoformat(),
                    a.thermostat_id,
                    a.light_id,
                    a.kind,
                    a.equipment_status,
                    1 if a.state.power else 0,
                    float(a.state.hue),
                    float(a.state.saturation),
                    float(a.state.brightness),
                ),
            )
            await db.commit()

    async def query_actions(self, start_ts: str, end_ts: str, limit: int) -> List[LightAction]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute(
                """
                SELECT ts_utc,thermostat_id,light_id,kind,equipment_status,power,hue,saturation,brightness
                FROM light_actions
                WHERE ts_utc >= ? AND ts_utc <= ?
                ORDER BY ts_utc DESC
                LIMIT ?
                """,
                (start_ts, end_ts, limit),
            )
            rows = await cur.fetchall()
        out: list[LightAction] = []
        for ts, tid, lid, kind, status, power, hue, sat, bri in rows:
            out.append(
                LightAction(
                    ts_utc=datetime.fromisoformat(ts),
                    thermostat_id=tid,
                    light_id=lid,
                    kind=kind,
                    equipment_status=status,
                    state=LightState(power=bool(power), hue=hue, saturation=sat, brightness=bri),
                )
            )
        return list(reversed(out))

    async def get_all_settings(self) -> Dict[str, str]:
        async with aiosqlite.connect(self._path) as db:
            cur = await db.execute("SELECT key, value FROM settings")
            rows = await cur.fetchall()
        return {k: v for k, v in rows}

    async def set_settings_batch(self, updates: Dict[str, str]) -> None:
        now = datetime.now(timezone.utc).isoformat()
        async with aiosqlite.connect(self._path) as db:
            for key, value in updates.items():
                await db.execute(
                    "INSERT INTO settings(key, value, updated_at) VALUES (?, ?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at",
                    (key, value, now),
                )
            await db.commit()
