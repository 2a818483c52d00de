"""
Background worker for processing scheduled jobs.

Usage:
    python -m leadflow.worker

The worker polls for due jobs and dispatches them by job type.
For production, run this as a separate process (e.g., systemd service, Docker container).
"""

import asyncio
import logging
from datetime import datetime

from leadflow.core.config import settings
from leadflow.core.structured_logging import build_log_context
from leadflow.db.session import SessionLocal
from leadflow.jobs.registry import resolve_job_handler
from leadflow.services import job_service

logger = logging.getLogger(__name__)


async def process_job(db, job) -> None:
    """Process a single job based on its type."""
    logger.info("Processing job %s (type=%s, attempt=%s)", job.id, job.job_type, job.attempts)
    handler = resolve_job_handler(job.job_type)
    await handler(db, job)


async def run_due_jobs(db, now: datetime | None = None, limit: int | None = None) -> int:
    """
    Claim and run one batch of due jobs.

    Returns the number of jobs processed (completed or failed).
    """
    jobs = job_service.claim_pending_jobs(
        db, limit=limit or settings.WORKER_BATCH_SIZE, now=now
    )
    if jobs:
        logger.info("Found %s pending jobs", len(jobs))

    for job in jobs:
        try:
            await process_job(db, job)
            job_service.mark_job_completed(db, job)
            logger.info("Job %s completed successfully", job.id)
        except Exception as e:
            db.rollback()
            job_service.mark_job_failed(db, job, str(e))
            logger.error(
                "Job %s failed: %s",
                job.id,
                type(e).__name__,
                extra=build_log_context(job_id=str(job.id)),
            )
    return len(jobs)


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        settings.WORKER_POLL_INTERVAL,
        settings.WORKER_BATCH_SIZE,
    )

    if not settings.RESEND_API_KEY:
        logger.warning("RESEND_API_KEY not set - emails will be logged but not sent")

    while True:
        with SessionLocal() as db:
            try:
                await run_due_jobs(db)
            except Exception as e:
                logger.error("Error in worker loop: %s", e)

        await asyncio.sleep(settings.WORKER_POLL_INTERVAL)


def main() -> None:
    """Entry point for the worker."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")
    except Exception:
        logger.exception("Worker crashed", extra=build_log_context(request_id="worker"))
        raise


if __name__ == "__main__":
    main()
