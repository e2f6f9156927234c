"""
Store access for import jobs
"""

from typing import Any, List, Optional
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from models.job import ImportJob
from models.base import JobStatus
import logging

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "status",
    "total_rows",
    "processed_rows",
    "success_count",
    "failed_count",
    "errors",
    "completed_at",
}


class JobRepository:
    """Create, look up and partially update job records"""

    def __init__(self, db_session: AsyncSession):
        self.db = db_session

    async def create(self, job_id: UUID, filename: str) -> ImportJob:
        job = ImportJob(
            id=job_id,
            filename=filename,
            status=JobStatus.PENDING,
            total_rows=0,
            processed_rows=0,
            success_count=0,
            failed_count=0,
            errors=[],
        )
        self.db.add(job)
        await self.db.commit()
        await self.db.refresh(job)
        return job

    async def find_by_id(self, job_id: UUID) -> Optional[ImportJob]:
        result = await self.db.execute(
            select(ImportJob).where(ImportJob.id == job_id)
        )
        return result.scalar_one_or_none()

    async def list_jobs(self) -> List[ImportJob]:
        result = await self.db.execute(
            select(ImportJob).order_by(ImportJob.created_at.desc())
        )
        return list(result.scalars().all())

    async def next_pending_id(self) -> Optional[UUID]:
        """Oldest pending job, i.e. the head of the FIFO queue"""
        result = await self.db.execute(
            select(ImportJob.id)
            .where(ImportJob.status == JobStatus.PENDING)
            .order_by(ImportJob.created_at.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def update_progress(self, job_id: UUID, **fields: Any) -> None:
        """
        Write only the given fields.

        Accepts status, total_rows, processed_rows, success_count,
        failed_count, errors and completed_at.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")
        if not fields:
            return

        await self.db.execute(
            update(ImportJob)
            .where(ImportJob.id == job_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
