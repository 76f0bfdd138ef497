"""
APScheduler Configuration for Expiry Sweeps

Runs the periodic subscription housekeeping job:
- active subscriptions past their end date become expired
- unpaid pending subscriptions abandoned at the gateway become expired
- long-inactive sessions are deleted

The job is re-registered on every startup, so an in-memory job store is
enough.
"""
import logging
from datetime import timedelta
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.executors.asyncio import AsyncIOExecutor

from ..config import Settings, settings as default_settings
from ..db.init_db import AsyncSessionLocal
from .session_service import delete_inactive_sessions
from .subscription_service import expire_lapsed_subscriptions, expire_orphaned_pending

logger = logging.getLogger(__name__)

EXPIRY_SWEEP_JOB_ID = "subscription_expiry_sweep"


async def run_expiry_sweep(settings: Settings = default_settings) -> dict:
    """
    Run every expiry sweep once.

    Returns:
        Counts per sweep: {"lapsed": int, "orphaned_pending": int, "sessions": int}
    """
    counts = {"lapsed": 0, "orphaned_pending": 0, "sessions": 0}

    async with AsyncSessionLocal() as db:
        counts["lapsed"] = await expire_lapsed_subscriptions(db)

        if settings.pending_expiry_minutes > 0:
            counts["orphaned_pending"] = await expire_orphaned_pending(
                db, timedelta(minutes=settings.pending_expiry_minutes)
            )

        counts["sessions"] = await delete_inactive_sessions(db)

    logger.debug(f"Expiry sweep finished: {counts}")
    return counts


class ExpiryScheduler:
    """
    Singleton scheduler for the expiry sweep.

    Example:
        scheduler = ExpiryScheduler()
        scheduler.start(interval_minutes=15)
    """

    _instance: Optional["ExpiryScheduler"] = None
    _scheduler: Optional[AsyncIOScheduler] = None

    def __new__(cls):
        """Singleton pattern to ensure only one scheduler instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        """Initialize scheduler if not already initialized."""
        if self._scheduler is None:
            self._initialize_scheduler()

    def _initialize_scheduler(self):
        """
        Configure APScheduler.

        Configuration:
        - AsyncIOScheduler for async job execution on the app's event loop
        - Coalesce: True (collapse missed runs into one)
        - Max instances: 1 (sweeps never overlap)
        """
        job_defaults = {
            'coalesce': True,
            'max_instances': 1,
            'misfire_grace_time': 300  # 5 minutes grace period for misfires
        }

        self._scheduler = AsyncIOScheduler(
            executors={'default': AsyncIOExecutor()},
            job_defaults=job_defaults,
            timezone='UTC'
        )

        logger.info("APScheduler initialized for expiry sweeps")

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self, interval_minutes: int, settings: Settings = default_settings):
        """
        Register the sweep job and start the scheduler.

        Args:
            interval_minutes: Minutes between sweeps
            settings: Settings passed to each sweep run
        """
        self._scheduler.add_job(
            run_expiry_sweep,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=EXPIRY_SWEEP_JOB_ID,
            name="Subscription expiry sweep",
            replace_existing=True,
            kwargs={"settings": settings}
        )

        if not self._scheduler.running:
            self._scheduler.start()
            logger.info(f"Scheduler started: expiry sweep every {interval_minutes}min")
        else:
            logger.warning("Scheduler already running")

    def shutdown(self, wait: bool = True):
        """
        Shutdown the scheduler gracefully.

        Args:
            wait: Wait for a running sweep to complete before shutdown
        """
        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
            logger.info(f"Scheduler shutdown (wait={wait})")

    def get_job(self):
        """Return the sweep job, or None if not registered."""
        return self._scheduler.get_job(EXPIRY_SWEEP_JOB_ID)


# ============================================================================
# Scheduler Lifecycle Functions (for FastAPI integration)
# ============================================================================

def start_scheduler(settings: Settings = default_settings) -> bool:
    """
    Start the expiry scheduler during app startup.

    Returns:
        False when sweeps are disabled (interval of 0)
    """
    if settings.expiry_sweep_interval_minutes <= 0:
        logger.info("Expiry sweeps disabled (EXPIRY_SWEEP_INTERVAL_MINUTES=0)")
        return False

    ExpiryScheduler().start(settings.expiry_sweep_interval_minutes, settings)
    return True


def shutdown_scheduler(wait: bool = True):
    """Shutdown the scheduler during app shutdown."""
    ExpiryScheduler().shutdown(wait=wait)
