"""APScheduler configuration and job management."""

from apscheduler.jobstores.base import JobLookupError
from apscheduler.jobstores.memory import MemoryJobStore
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from cineco.logging import get_logger

logger = get_logger(__name__)

_scheduler: AsyncIOScheduler | None = None

SESSION_SWEEP_JOB_ID = "feed_session_sweep"


def get_scheduler() -> AsyncIOScheduler:
    """Get or create the scheduler instance."""
    global _scheduler

    if _scheduler is None:
        logger.info("Creating scheduler")
        _scheduler = AsyncIOScheduler(
            jobstores={"default": MemoryJobStore()},
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 60,
            },
        )

    return _scheduler


def start_scheduler() -> None:
    """Start the scheduler if not already running."""
    scheduler = get_scheduler()
    if not scheduler.running:
        logger.info("Starting scheduler")
        scheduler.start()


def shutdown_scheduler() -> None:
    """Shutdown the scheduler gracefully."""
    global _scheduler
    if _scheduler is not None and _scheduler.running:
        logger.info("Shutting down scheduler")
        _scheduler.shutdown(wait=False)
    _scheduler = None


def add_job(func, trigger: str, **kwargs) -> str:
    """Add a job to the scheduler."""
    scheduler = get_scheduler()
    job = scheduler.add_job(func, trigger, **kwargs)
    logger.info(f"Added job {job.id} with trigger {trigger}")
    return job.id


def remove_job(job_id: str) -> bool:
    """Remove a job from the scheduler."""
    scheduler = get_scheduler()
    try:
        scheduler.remove_job(job_id)
        logger.info(f"Removed job {job_id}")
        return True
    except JobLookupError:
        logger.warning(f"Job {job_id} not found")
        return False


def setup_session_sweeper_job(interval_seconds: int | None = None) -> str | None:
    """Schedule the idle feed-session sweeper.

    Args:
        interval_seconds: Override for FEED_SWEEP_INTERVAL_SECONDS

    Returns:
        Job ID, or None if sweeping is disabled (interval <= 0)
    """
    from cineco.config import config
    from cineco.jobs.session_sweeper import run_session_sweep

    interval = config.feed_sweep_interval_seconds if interval_seconds is None else interval_seconds
    if interval <= 0:
        logger.info("Feed session sweeper not scheduled: FEED_SWEEP_INTERVAL_SECONDS <= 0")
        return None

    job_id = add_job(
        run_session_sweep,
        "interval",
        seconds=interval,
        id=SESSION_SWEEP_JOB_ID,
        name="Feed Session Sweeper",
        replace_existing=True,
    )
    logger.info(f"Scheduled feed session sweeper: every {interval}s, job_id={job_id}")
    return job_id


def setup_all_jobs() -> None:
    """Setup all scheduled jobs."""
    setup_session_sweeper_job()
    logger.info("All jobs configured")
