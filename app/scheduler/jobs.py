"""
app/scheduler/jobs.py

APScheduler-based housekeeping for the upload scratch area.

Staged upload files are removed by the request that created them. A process
that dies mid-request can still leave one behind; the sweep job deletes
scratch files older than ``SCRATCH_MAX_AGE_MINUTES``.

Lifecycle
----------
Call ``build_scheduler()`` once to get a configured ``BackgroundScheduler``.
Start it on app boot; shut it down on app shutdown. The scheduler is wired
into FastAPI via the ``lifespan`` context in main.py.
"""

from __future__ import annotations

import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import ScratchSweepSettings
from db.repositories.storage import ScratchStorage

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Job: scratch sweep
# ---------------------------------------------------------------------------


def run_scratch_sweep(scratch: ScratchStorage, max_age_minutes: int) -> int:
    """
    Delete scratch files older than ``max_age_minutes``. Returns how many went.
    """
    logger.info("Scheduler: scratch_sweep starting root=%s", scratch.root_dir)
    try:
        removed = scratch.sweep(timedelta(minutes=max_age_minutes))
    except OSError as exc:
        logger.warning("Scheduler: scratch_sweep failed: %s", exc)
        return 0
    logger.info("Scheduler: scratch_sweep complete removed=%d", removed)
    return removed


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler(scratch: ScratchStorage, settings: ScratchSweepSettings) -> BackgroundScheduler:
    """
    Returns a configured but *not yet started* ``BackgroundScheduler``.
    """
    scheduler = BackgroundScheduler(timezone="UTC")

    scheduler.add_job(
        run_scratch_sweep,
        trigger="interval",
        minutes=settings.interval_minutes,
        args=(scratch, settings.max_age_minutes),
        id="scratch_sweep",
        name="Scratch area sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )

    return scheduler
