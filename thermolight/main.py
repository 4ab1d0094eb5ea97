from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .core.log import configure_logging

from .api.routes import router as api_router
import thermolight.api.routes as routes_module

from .domain.policy import EffectPolicy
from .drivers.homes_sim import SimulatedHomePlatform
from .services.associations import AssociationStore
from .services.commands import ManualCommandExecutor
from .services.directory import AccessoryDirectory
from .services.poller import PollingScheduler
from .services.reconciler import LightReconciler
from .services.status_cache import StatusCache
from .services.thermostats import ThermostatService
from .storage.sqlite_repo import SQLiteRepository


logger = logging.getLogger(__name__)


# --- Singletons ---
repo = SQLiteRepository(settings.sqlite_path)
platform = SimulatedHomePlatform.from_file(settings.homes_file or None)
directory = AccessoryDirectory(
    platform,
    retry_attempts=settings.directory_retry_attempts,
    retry_delay=settings.directory_retry_delay_seconds,
)
associations = AssociationStore(repo)
cache = StatusCache()
thermostats = ThermostatService(settings, cache)
executor: ManualCommandExecutor | None = None
reconciler: LightReconciler | None = None
poller: PollingScheduler | None = None


async def apply_persisted_settings() -> None:
    stored = await repo.get_all_settings()
    changed = False
    for key, raw in stored.items():
        if key not in type(settings).model_fields:
            continue
        try:
            setattr(settings, key, routes_module.cast_setting_value(key, json.loads(raw)))
            changed = True
        except Exception as e:
            logger.warning("Ignoring persisted setting %s: %s", key, e)
    if changed:
        thermostats.reconfigure()


def get_poller() -> PollingScheduler:
    assert poller is not None
    return poller


def get_reconciler() -> LightReconciler:
    assert reconciler is not None
    return reconciler


def get_thermostats() -> ThermostatService:
    return thermostats


def get_executor() -> ManualCommandExecutor:
    assert executor is not None
    return executor


def get_directory() -> AccessoryDirectory:
    return directory


def get_associations() -> AssociationStore:
    return associations


def get_repo() -> SQLiteRepository:
    return repo


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("Starting %s", settings.app_name)

    await repo.init()
    await apply_persisted_settings()
    await associations.load()

    unsubscribe = associations.bind(directory)
    await directory.refresh()

    global reconciler, poller, executor
    executor = ManualCommandExecutor(thermostats, settle_delay=settings.settle_delay_seconds)
    reconciler = LightReconciler(
        platform=platform,
        directory=directory,
        associations=associations,
        cache=cache,
        policy=EffectPolicy.from_settings(settings),
        repo=repo,
    )
    poller = PollingScheduler(thermostats, reconciler, interval_seconds=settings.poll_interval_seconds)

    try:
        yield
    finally:
        if poller:
            await poller.stop()
        if executor:
            await executor.wait_idle()
        unsubscribe()

        logger.info("Shutdown complete")


app = FastAPI(title=settings.app_name, lifespan=lifespan)

# Make the dependency functions in routes resolve to the real ones
app.dependency_overrides[routes_module.get_thermostats] = get_thermostats
app.dependency_overrides[routes_module.get_poller] = get_poller
app.dependency_overrides[routes_module.get_reconciler] = get_reconciler
app.dependency_overrides[routes_module.get_executor] = get_executor
app.dependency_overrides[routes_module.get_directory] = get_directory
app.dependency_overrides[routes_module.get_associations] = get_associations
app.dependency_overrides[routes_module.get_repo] = get_repo

app.include_router(api_router, prefix="/api")
