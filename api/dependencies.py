"""
FastAPI dependencies shared by the routes
"""

from typing import AsyncGenerator
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from core.database import async_session_maker
from ingestion.events import BroadcasterRegistry
from ingestion.loaders.job_repository import JobRepository
from ingestion.storage import UploadStorage
from ingestion.submission import JobSubmissionService


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


def get_job_repository(db: AsyncSession = Depends(get_db)) -> JobRepository:
    return JobRepository(db)


def get_registry(request: Request) -> BroadcasterRegistry:
    return request.app.state.registry


def get_storage(request: Request) -> UploadStorage:
    return request.app.state.storage


def get_submission_service(
    request: Request,
    jobs: JobRepository = Depends(get_job_repository),
    storage: UploadStorage = Depends(get_storage)
) -> JobSubmissionService:
    scheduler = getattr(request.app.state, "scheduler", None)
    notify = scheduler.notify if scheduler is not None else None
    return JobSubmissionService(jobs, storage, notify=notify)
