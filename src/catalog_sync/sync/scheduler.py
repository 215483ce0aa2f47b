"""Scheduled sync runs.

Each run recomputes pending work from the catalogs, so running on a fixed
interval is how assets dropped by a failed batch or a silent import failure are
eventually picked up.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config import Settings
from .driver import RunReport, SyncDriver

logger = logging.getLogger("catalog_sync.sync.scheduler")

JOB_ID = "catalog-sync"


async def run_sync(settings: Settings) -> RunReport:
    """Execute one sync cycle."""
    report = await SyncDriver(settings).run()
    if not report.succeeded:
        logger.error({"event": "scheduler.run.aborted", "reason": report.reason})
    return report


def get_sync_schedule(settings: Settings) -> IntervalTrigger:
    """Build the interval trigger from settings."""
    if settings.sync_interval_minutes < 1:
        raise ValueError("sync_interval_minutes must be at least 1")
    return IntervalTrigger(minutes=settings.sync_interval_minutes)


def build_scheduler(
    settings: Settings,
    run_job: Optional[Callable[[], Awaitable[object]]] = None,
) -> AsyncIOScheduler:
    """Configure the scheduler; runs never overlap and missed runs collapse into one."""
    scheduler = AsyncIOScheduler(timezone="UTC")

    async def _job() -> None:
        if run_job is not None:
            await run_job()
        else:
            await run_sync(settings)

    scheduler.add_job(
        _job,
        trigger=get_sync_schedule(settings),
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        next_run_time=datetime.now(timezone.utc),
    )
    logger.info({"event": "scheduler.configured", "interval_minutes": settings.sync_interval_minutes})
    return scheduler


async def run_forever(
    settings: Settings,
    run_job: Optional[Callable[[], Awaitable[object]]] = None,
    stop_event: Optional[asyncio.Event] = None,
) -> None:
    """Run the first sync immediately, then one every interval, until ``stop_event`` is set."""
    stop = stop_event or asyncio.Event()
    scheduler = build_scheduler(settings, run_job)
    scheduler.start()
    try:
        await stop.wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info({"event": "scheduler.stopped"})
