"""
Accept an uploaded file as a new import job
"""

from typing import BinaryIO, Callable, Optional
from uuid import UUID, uuid4
from ingestion.storage import UploadStorage
import logging

logger = logging.getLogger(__name__)


class JobSubmissionService:
    """
    Store the upload, create a pending job, wake the worker.

    Args:
        job_repository: Store for job records
        storage: Upload storage
        notify: Called after the job is committed (e.g. ImportScheduler.notify)
    """

    def __init__(self, job_repository, storage: UploadStorage, notify: Optional[Callable[[], None]] = None):
        self.jobs = job_repository
        self.storage = storage
        self.notify = notify

    async def submit(self, source: BinaryIO, filename: Optional[str]) -> UUID:
        job_id = uuid4()
        await self.storage.save(job_id, source)
        await self.jobs.create(job_id, filename or f"{job_id}.csv")
        logger.info(f"Job {job_id} queued for {filename!r}")

        if self.notify is not None:
            self.notify()
        return job_id
