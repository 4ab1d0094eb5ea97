from __future__ import annotations

import json
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException

from ..core.config import Settings, settings
from ..core.timeutil import now_utc
from ..domain.describe import describe_status, section_header
from ..domain.errors import ConfigurationIncomplete, RemoteError
from ..domain.models import CommandKind
from ..services.associations import AssociationStore
from ..services.commands import ManualCommandExecutor
from ..services.directory import AccessoryDirectory
from ..services.poller import PollingScheduler
from ..services.reconciler import LightReconciler
from ..services.thermostats import ThermostatService
from ..storage.sqlite_repo import SQLiteRepository
from .schemas import AssociationRequest, SettingsUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Dependency getters ---
# Placeholders only: main.py maps each one to its service singleton through
# app.dependency_overrides, and tests map them to their own instances.
def get_thermostats() -> ThermostatService:  # overridden in main
    raise RuntimeError("Thermostat service dependency not configured")

def get_poller() -> PollingScheduler:  # overridden in main
    raise RuntimeError("Poller dependency not configured")

def get_reconciler() -> LightReconciler:  # overridden in main
    raise RuntimeError("Reconciler dependency not configured")

def get_executor() -> ManualCommandExecutor:  # overridden in main
    raise RuntimeError("Command executor dependency not configured")

def get_directory() -> AccessoryDirectory:  # overridden in main
    raise RuntimeError("Directory dependency not configured")

def get_associations() -> AssociationStore:  # overridden in main
    raise RuntimeError("Association store dependency not configured")

def get_repo() -> SQLiteRepository:  # overridden in main
    raise RuntimeError("Repo dependency not configured")


def _require_configured(svc: ThermostatService) -> None:
    if not svc.configured:
        raise HTTPException(status_code=409, detail="Configure email, API key and integrator token first")


def _require_thermostat(svc: ThermostatService, thermostat_id: str) -> None:
    if svc.find(thermostat_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown thermostat: {thermostat_id}")


@router.get("/live")
async def get_live(
    svc: ThermostatService = Depends(get_thermostats),
    poller: PollingScheduler = Depends(get_poller),
    rec: LightReconciler = Depends(get_reconciler),
    executor: ManualCommandExecutor = Depends(get_executor),
    assocs: AssociationStore = Depends(get_associations),
):
    mode_busy = executor.busy_ids(CommandKind.MODE)
    circ_busy = executor.busy_ids(CommandKind.CIRCULATE)
    locations = []
    for loc in svc.locations:
        items = []
        for t in loc.thermostats:
            status = svc.cache.get(t.id)
            assoc = assocs.get(t.id)
            decision = rec.last_decisions.get(t.id)
            items.append({
                "id": t.id,
                "header": section_header(loc, t),
                "model": t.model,
                "firmware_version": t.firmware_version,
                "mode_code": status.mode if status else None,
                "fan_circulate_code": status.fan_circulate if status else None,
                **describe_status(status),
                "mode_busy": t.id in mode_busy,
                "circulate_busy": t.id in circ_busy,
                "light": {
                    "home_id": assoc.home_id,
                    "room_id": assoc.room_id,
                    "light_id": assoc.light_id,
                } if assoc else None,
                "last_decision": decision.action if decision else None,
                "last_reason": decision.reason if decision else None,
            })
        locations.append({"name": loc.name, "thermostats": items})

    return {
        "app": settings.app_name,
        "configured": svc.configured,
        "monitoring": poller.running,
        "last_updated": svc.cache.last_updated.isoformat() if svc.cache.last_updated else None,
        "locations": locations,
        "saved_lights": [
            {
                "home_id": ref.home_id,
                "room_id": ref.room_id,
                "light_id": ref.light_id,
                "power": st.power,
                "hue": st.hue,
                "saturation": st.saturation,
                "brightness": st.brightness,
            }
            for ref, st in rec.saved_states().items()
        ],
    }


@router.post("/thermostats/load")
async def load_thermostats(svc: ThermostatService = Depends(get_thermostats)):
    try:
        thermostats = await svc.load()
    except ConfigurationIncomplete as e:
        raise HTTPException(status_code=409, detail=str(e))
    except RemoteError as e:
        raise HTTPException(status_code=502, detail=str(e))
    updated = await svc.refresh_statuses()
    return {"ok": True, "count": len(thermostats), "statuses_updated": updated}


@router.post("/thermostats/refresh")
async def refresh_thermostats(svc: ThermostatService = Depends(get_thermostats)):
    _require_configured(svc)
    updated = await svc.refresh_statuses()
    return {"ok": True, "statuses_updated": updated}


@router.post("/thermostats/{thermostat_id}/mode/toggle")
async def toggle_mode(
    thermostat_id: str,
    svc: ThermostatService = Depends(get_thermostats),
    executor: ManualCommandExecutor = Depends(get_executor),
):
    _require_configured(svc)
    _require_thermostat(svc, thermostat_id)
    if not executor.submit_toggle_mode(thermostat_id):
        raise HTTPException(status_code=409, detail="Mode change already in progress")
    return {"ok": True, "busy": True}


@router.post("/thermostats/{thermostat_id}/fan/toggle")
async def toggle_circulate(
    thermostat_id: str,
    svc: ThermostatService = Depends(get_thermostats),
    executor: ManualCommandExecutor = Depends(get_executor),
):
    _require_configured(svc)
    _require_thermostat(svc, thermostat_id)
    if not executor.submit_toggle_circulate(thermostat_id):
        raise HTTPException(status_code=409, detail="Fan circulate change already in progress")
    return {"ok": True, "busy": True}


@router.post("/monitoring/start")
async def monitoring_start(poller: PollingScheduler = Depends(get_poller)):
    try:
        await poller.start()
    except ConfigurationIncomplete as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"ok": True, "monitoring": True}


@router.post("/monitoring/stop")
async def monitoring_stop(poller: PollingScheduler = Depends(get_poller)):
    await poller.stop()
    return {"ok": True, "monitoring": False}


# --- Homes / associations ---

def _homes_payload(directory: AccessoryDirectory) -> dict:
    out = []
    for h in directory.current_homes():
        out.append({
            "id": h.id,
            "name": h.name,
            "rooms": [
                {
                    "id": r.id,
                    "name": r.name,
                    "lights": [{"id": a.id, "name": a.name} for a in directory.color_lights(h.id, r.id)],
                }
                for r in h.rooms
            ],
        })
    return {"homes": out}


@router.get("/homes")
async def get_homes(directory: AccessoryDirectory = Depends(get_directory)):
    return _homes_payload(directory)


@router.post("/homes/refresh")
async def refresh_homes(directory: AccessoryDirectory = Depends(get_directory)):
    await directory.refresh()
    return _homes_payload(directory)


@router.get("/associations")
async def list_associations(assocs: AssociationStore = Depends(get_associations)):
    return {
        "associations": [
            {"thermostat_id": a.thermostat_id, "home_id": a.home_id, "room_id": a.room_id, "light_id": a.light_id}
            for a in assocs.all()
        ]
    }


@router.put("/associations/{thermostat_id}")
async def save_association(
    thermostat_id: str,
    req: AssociationRequest,
    assocs: AssociationStore = Depends(get_associations),
    directory: AccessoryDirectory = Depends(get_directory),
):
    lights = directory.color_lights(req.home_id, req.room_id)
    if not any(a.id == req.light_id for a in lights):
        raise HTTPException(status_code=400, detail="Light not found among colour lights of that room")
    await assocs.save(thermostat_id, req.home_id, req.room_id, req.light_id)
    return {"ok": True}


@router.delete("/associations/{thermostat_id}")
async def delete_association(thermostat_id: str, assocs: AssociationStore = Depends(get_associations)):
    if not await assocs.delete(thermostat_id):
        raise HTTPException(status_code=404, detail=f"No association for {thermostat_id}")
    return {"ok": True}


@router.get("/actions")
async def actions(
    minutes: int = 240,
    limit: int = 2000,
    repo: SQLiteRepository = Depends(get_repo),
):
    end = now_utc()
    start = end - timedelta(minutes=max(1, minutes))
    rows = await repo.query_actions(start.isoformat(), end.isoformat(), limit=min(limit, 20000))
    return {
        "start_utc": start.isoformat(),
        "end_utc": end.isoformat(),
        "rows": [
            {
                "ts_utc": a.ts_utc.isoformat(),
                "thermostat_id": a.thermostat_id,
                "light_id": a.light_id,
                "kind": a.kind,
                "equipment_status": a.equipment_status,
                "power": a.state.power,
                "hue": a.state.hue,
                "saturation": a.state.saturation,
                "brightness": a.state.brightness,
            }
            for a in rows
        ],
    }


# --- Settings endpoints ---

RESTART_REQUIRED_KEYS = frozenset({
    "sqlite_path", "homes_file", "log_file", "poll_interval_seconds", "settle_delay_seconds",
    "directory_retry_attempts", "directory_retry_delay_seconds",
    "heating_status_codes", "cooling_status_codes", "idle_status_codes",
})

CREDENTIAL_KEYS = frozenset({"email", "api_key", "integrator_token", "api_base_url", "request_timeout_seconds",
                             "token_safety_margin_seconds"})

SECRET_KEYS = frozenset({"api_key", "integrator_token"})

# All Settings field names (for validation)
_SETTINGS_FIELDS = {name: field for name, field in Settings.model_fields.items()}


def cast_setting_value(key: str, raw: object) -> object:
    """Cast a raw value to the type expected by the Settings field."""
    field = _SETTINGS_FIELDS.get(key)
    if field is None:
        raise HTTPException(status_code=400, detail=f"Unknown setting key: {key}")
    annotation = field.annotation
    try:
        if annotation is bool:
            if isinstance(raw, str):
                return raw.lower() in ("true", "1", "yes")
            return bool(raw)
        if annotation is int:
            return int(raw)
        if annotation is float:
            return float(raw)
        if annotation is str:
            return str(raw)
        if annotation == list[int]:
            if isinstance(raw, str):
                raw = json.loads(raw)
            return [int(v) for v in raw]
    except (TypeError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid value for {key}: {e}")
    return raw


@router.get("/settings")
async def get_settings():
    current = {}
    for key in _SETTINGS_FIELDS:
        value = getattr(settings, key)
        current[key] = ("***" if value else "") if key in SECRET_KEYS else value
    return {
        "settings": current,
        "configured": settings.is_configured,
        "restart_required_keys": sorted(RESTART_REQUIRED_KEYS),
    }


@router.put("/settings")
async def update_settings(
    req: SettingsUpdateRequest,
    repo: SQLiteRepository = Depends(get_repo),
    svc: ThermostatService = Depends(get_thermostats),
):
    updated_keys = []
    db_updates: dict[str, str] = {}
    runtime_applied: list[str] = []

    for key, raw_value in req.updates.items():
        if key not in _SETTINGS_FIELDS:
            raise HTTPException(status_code=400, detail=f"Unknown setting key: {key}")

        typed_value = cast_setting_value(key, raw_value)
        setattr(settings, key, typed_value)
        db_updates[key] = json.dumps(typed_value)
        updated_keys.append(key)

        if key not in RESTART_REQUIRED_KEYS:
            runtime_applied.append(key)

    if CREDENTIAL_KEYS & set(updated_keys):
        svc.reconfigure()
        logger.info("Rebuilt vendor client after credential change")

    await repo.set_settings_batch(db_updates)

    return {"ok": True, "updated_keys": updated_keys, "runtime_applied": runtime_applied}
