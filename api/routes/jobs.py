"""
Job endpoints: upload, read, live progress stream and error export
"""

import asyncio
import json
from typing import List, Optional
from uuid import UUID
from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import Response, StreamingResponse
from api.dependencies import get_job_repository, get_registry, get_submission_service
from core.config import settings
from core.database import async_session_maker
from core.exceptions import JobNotFoundError
from ingestion.events import BroadcasterRegistry
from ingestion.exporters import render_errors_csv
from ingestion.loaders.job_repository import JobRepository
from ingestion.submission import JobSubmissionService
from schemas.job import JobProgressEvent, JobResponse, UploadResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])


async def _load_job(job_id: UUID, jobs: JobRepository):
    job = await jobs.find_by_id(job_id)
    if job is None:
        raise JobNotFoundError("Job not found", context={"job_id": str(job_id)})
    return job


@router.post("/upload", response_model=UploadResponse)
async def upload(
    request: Request,
    file: Optional[UploadFile] = File(None),
    service: JobSubmissionService = Depends(get_submission_service)
):
    """Queue an uploaded CSV for import"""
    if file is None:
        raise HTTPException(status_code=400, detail="file is required")

    job_id = await service.submit(file.file, file.filename or "upload.csv")
    request_id = getattr(request.state, "request_id", "-")
    logger.info(f"[{request_id}] Upload accepted as job {job_id}")
    return UploadResponse(job_id=str(job_id))


@router.get("", response_model=List[JobResponse])
async def list_jobs(jobs: JobRepository = Depends(get_job_repository)):
    return [JobResponse.model_validate(job) for job in await jobs.list_jobs()]


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: UUID, jobs: JobRepository = Depends(get_job_repository)):
    return JobResponse.model_validate(await _load_job(job_id, jobs))


@router.get("/{job_id}/stream")
async def stream_job(
    job_id: UUID,
    jobs: JobRepository = Depends(get_job_repository),
    registry: BroadcasterRegistry = Depends(get_registry)
):
    """
    Server-sent events for one job.

    Sends the current snapshot first, then throttled progress, then the
    terminal event, then ends the stream.
    """
    job = await _load_job(job_id, jobs)
    snapshot = JobProgressEvent.from_job(job)

    return StreamingResponse(
        _event_stream(job_id, snapshot, registry, settings.STREAM_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"}
    )


@router.get("/{job_id}/errors.csv")
async def export_errors(job_id: UUID, jobs: JobRepository = Depends(get_job_repository)):
    job = await _load_job(job_id, jobs)
    return Response(
        content=render_errors_csv(job.errors or []),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="job-{job_id}-errors.csv"'}
    )


def _sse(event: JobProgressEvent) -> str:
    return f"data: {json.dumps(event.to_payload())}\n\n"


async def _event_stream(
    job_id: UUID,
    snapshot: JobProgressEvent,
    registry: BroadcasterRegistry,
    keepalive_seconds: float,
    session_factory=async_session_maker
):
    subscription = registry.subscribe(str(job_id), fallback=snapshot)
    try:
        while True:
            try:
                event = await asyncio.wait_for(subscription.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                # Quiet channel: the job may have ended before we subscribed
                async with session_factory() as session:
                    current = await JobRepository(session).find_by_id(job_id)
                if current is not None and current.status.is_terminal:
                    yield _sse(JobProgressEvent.from_job(current))
                    break
                yield ": keepalive\n\n"
                continue

            if event is None:
                break
            yield _sse(event)
    finally:
        registry.release(subscription)
