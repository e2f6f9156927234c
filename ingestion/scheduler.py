import logging
from datetime import datetime, timezone
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from core.config import settings
from core.database import async_session_maker
from core.exceptions import IngestionError
from ingestion.events import BroadcasterRegistry
from ingestion.loaders.customer_loader import CustomerLoader
from ingestion.loaders.job_repository import JobRepository
from ingestion.runner import ImportRunner
from ingestion.storage import UploadStorage

logger = logging.getLogger(__name__)


class ImportScheduler:
    """
    Single-slot worker over the jobs table.

    Pending jobs are the queue: each run claims the oldest pending job,
    processes it to the end, then looks for the next one. At most one run
    is active at a time, so jobs are handled one by one in FIFO order.
    """

    JOB_ID = "import_worker"

    def __init__(self, registry: BroadcasterRegistry, storage: UploadStorage = None, session_factory=None):
        self.scheduler = AsyncIOScheduler()
        self.registry = registry
        self.storage = storage or UploadStorage(settings.UPLOAD_DIR)
        self.SessionLocal = session_factory or async_session_maker

    async def run_pending_jobs(self) -> int:
        """Drain the pending queue; returns how many jobs were run"""
        processed = 0
        attempted = set()
        while True:
            async with self.SessionLocal() as session:
                jobs = JobRepository(session)
                job_id = await jobs.next_pending_id()
                if job_id is None:
                    break
                if job_id in attempted:
                    # Still pending after a run: the status write itself is failing
                    logger.error(f"Worker: job {job_id} could not leave pending, stopping this run")
                    break
                attempted.add(job_id)

                logger.info(f"Worker: picked job {job_id}")
                runner = ImportRunner(
                    job_repository=jobs,
                    customer_loader=CustomerLoader(session),
                    storage=self.storage,
                    registry=self.registry,
                    decode_chunk_size=settings.decode_chunk_size,
                )
                try:
                    await runner.run(job_id)
                except IngestionError as e:
                    logger.error(f"Worker: job {job_id} failed - {e}")
            processed += 1

        if processed:
            logger.info(f"Worker: queue drained after {processed} job(s)")
        return processed

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self.run_pending_jobs,
            trigger=IntervalTrigger(seconds=settings.WORKER_POLL_SECONDS),
            id=self.JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()
        logger.info("Import worker started (concurrency=1, FIFO order)")

    def notify(self):
        """Run the worker now instead of waiting for the next poll"""
        if not self.scheduler.running:
            return
        self.scheduler.modify_job(self.JOB_ID, next_run_time=datetime.now(timezone.utc))

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Import worker stopped")
