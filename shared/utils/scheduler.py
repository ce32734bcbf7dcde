from apscheduler.schedulers.asyncio import AsyncIOScheduler
import structlog

logger = structlog.get_logger()

# Jobs never overlap themselves; a firing that lands while the previous run
# is still going is dropped, and missed firings collapse into one.
scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={"max_instances": 1, "coalesce": True, "misfire_grace_time": 30},
)


def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("scheduler_started", jobs=[job.id for job in scheduler.get_jobs()])


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("scheduler_stopped")
