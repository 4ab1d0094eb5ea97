#!/usr/bin/env python3
"""
Command line access to the thermostat account and the light sync loop.

Usage:
    thermolight devices                 # list locations and thermostats
    thermolight status                  # describe every thermostat's status
    thermolight status ID [ID ...]      # only these thermostats
    thermolight watch --interval 60     # run the poll loop headless

Credentials come from THERMOLIGHT_EMAIL / THERMOLIGHT_API_KEY /
THERMOLIGHT_INTEGRATOR_TOKEN (or a .env file).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .core.config import settings
from .domain.describe import describe_status, section_header
from .domain.errors import ConfigurationIncomplete, RemoteError
from .domain.policy import EffectPolicy
from .drivers.homes_sim import SimulatedHomePlatform
from .services.associations import AssociationStore
from .services.directory import AccessoryDirectory
from .services.poller import PollingScheduler
from .services.reconciler import LightReconciler
from .services.status_cache import StatusCache
from .services.thermostats import ThermostatService
from .storage.sqlite_repo import SQLiteRepository

log = logging.getLogger("thermolight")


async def cmd_devices(svc: ThermostatService) -> int:
    await svc.load()
    for loc in svc.locations:
        print(loc.name or "(unnamed location)")
        for t in loc.thermostats:
            print(f"  {t.id}  {t.name or '-'}  model={t.model} fw={t.firmware_version}")
    return 0


async def cmd_status(svc: ThermostatService, ids: list[str]) -> int:
    await svc.load()
    wanted = ids or [t.id for t in svc.thermostats]
    for tid in wanted:
        t = svc.find(tid)
        if t is None:
            print(f"{tid}: unknown thermostat", file=sys.stderr)
            continue
        status = await svc.refresh_status(tid)
        print(section_header(svc.location_of(tid), t))
        for key, value in describe_status(status).items():
            if value is not None:
                print(f"  {key:14s} {value}")
    return 0


async def cmd_watch(svc: ThermostatService, interval: float) -> int:
    repo = SQLiteRepository(settings.sqlite_path)
    await repo.init()
    platform = SimulatedHomePlatform.from_file(settings.homes_file or None)
    directory = AccessoryDirectory(
        platform,
        retry_attempts=settings.directory_retry_attempts,
        retry_delay=settings.directory_retry_delay_seconds,
    )
    associations = AssociationStore(repo)
    await associations.load()
    associations.bind(directory)
    await directory.refresh()

    reconciler = LightReconciler(
        platform, directory, associations, svc.cache, EffectPolicy.from_settings(settings), repo=repo
    )
    poller = PollingScheduler(svc, reconciler, interval_seconds=interval)

    for a in associations.all():
        log.info("Association %s -> %s/%s/%s", a.thermostat_id, a.home_id, a.room_id, a.light_id)
    log.info("Watching; Ctrl-C to stop")
    await poller.start()
    try:
        await asyncio.Event().wait()
    finally:
        await poller.stop()
    return 0


async def _main(args: argparse.Namespace) -> int:
    svc = ThermostatService(settings, StatusCache())
    try:
        if args.command == "devices":
            return await cmd_devices(svc)
        if args.command == "status":
            return await cmd_status(svc, args.ids)
        if args.command == "watch":
            return await cmd_watch(svc, args.interval)
    except ConfigurationIncomplete as e:
        log.error("Not configured: %s", e)
        return 2
    except RemoteError as e:
        log.error("Vendor API error: %s", e)
        return 1
    return 0


def main() -> None:
    p = argparse.ArgumentParser(description="Thermostat status to smart light sync")
    p.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    sub = p.add_subparsers(dest="command", required=True)
    sub.add_parser("devices", help="List locations and thermostats")

    sp = sub.add_parser("status", help="Print thermostat status")
    sp.add_argument("ids", nargs="*", help="Thermostat ids (default: all)")

    wp = sub.add_parser("watch", help="Run the poll loop against the simulated home platform")
    wp.add_argument("--interval", type=float, default=float(settings.poll_interval_seconds),
                    help="Seconds between polls")

    args = p.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)-5s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        sys.exit(asyncio.run(_main(args)))
    except KeyboardInterrupt:
        log.info("Shutting down")


if __name__ == "__main__":
    main()
