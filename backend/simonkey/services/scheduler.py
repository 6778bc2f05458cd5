"""
Scheduled Job Configuration

Configures periodic jobs using APScheduler:
- Ranking refresh every settings.RANKING_REFRESH_MINUTES (30) minutes

Execution Context:
    The scheduler runs IN-PROCESS with FastAPI, sharing its event loop.
    It is started/stopped via FastAPI's lifespan context manager in
    simonkey/main.py, which passes in the process's ProgressEngine.

Limitations:
    - Single instance only: with several API replicas each one refreshes
      its own rankings. With the Redis cache backend this duplicates work
      but keeps the shared cache consistent.

Usage:
    # Automatic (via FastAPI lifespan in main.py):
    start_scheduler(engine)  # On app startup
    stop_scheduler()         # On app shutdown

    # Manual trigger for testing:
    from simonkey.services.scheduler import trigger_job_now
    trigger_job_now("ranking_refresh")
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from simonkey.config import settings
from simonkey.services.progress.engine import ProgressEngine

logger = logging.getLogger(__name__)

RANKING_REFRESH_JOB_ID = "ranking_refresh"

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def refresh_rankings(engine: ProgressEngine) -> int:
    """Recompute and re-cache every materia ranking."""
    count = await engine.rankings.refresh_all_rankings()
    logger.info(f"Ranking refresh complete: {count} materias")
    return count


def setup_scheduled_jobs(engine: ProgressEngine, interval_minutes: Optional[int] = None) -> None:
    """Configure all scheduled jobs."""
    minutes = interval_minutes or settings.RANKING_REFRESH_MINUTES

    scheduler.add_job(
        refresh_rankings,
        IntervalTrigger(minutes=minutes),
        args=[engine],
        id=RANKING_REFRESH_JOB_ID,
        name="Materia Ranking Refresh",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=300,
    )

    logger.info("Scheduled jobs configured:")
    logger.info(f"  - Ranking refresh: every {minutes} minutes")


def start_scheduler(engine: ProgressEngine) -> None:
    """Start the scheduler and configure jobs."""
    if scheduler.running:
        logger.warning("Scheduler already running")
        return

    setup_scheduled_jobs(engine)
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler() -> None:
    """Stop the scheduler gracefully."""
    if not scheduler.running:
        logger.warning("Scheduler not running")
        return

    scheduler.shutdown(wait=True)
    logger.info("Scheduler stopped")


def get_scheduled_jobs() -> list[dict]:
    """Get list of scheduled jobs with their next run times."""
    jobs = []
    for job in scheduler.get_jobs():
        jobs.append(
            {
                "id": job.id,
                "name": job.name,
                "next_run": (
                    job.next_run_time.isoformat() if job.next_run_time else None
                ),
                "trigger": str(job.trigger),
            }
        )
    return jobs


def trigger_job_now(job_id: str) -> bool:
    """
    Manually trigger a scheduled job immediately.

    Args:
        job_id: ID of the job to trigger

    Returns:
        True if triggered successfully
    """
    job = scheduler.get_job(job_id)
    if job:
        job.modify(next_run_time=datetime.now(timezone.utc))
        logger.info(f"Manually triggered job: {job_id}")
        return True

    logger.warning(f"Job not found: {job_id}")
    return False
