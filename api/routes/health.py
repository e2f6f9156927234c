"""
Health check endpoint with database and worker status
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, text
from api.dependencies import get_db
from schemas.api import HealthCheckResponse
from models.job import ImportJob
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(request: Request, db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Whether the import worker is running in this process
    - Job counts per status
    """
    db_connected = False
    jobs_by_status = {}

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    if db_connected:
        try:
            result = await db.execute(
                select(ImportJob.status, func.count()).group_by(ImportJob.status)
            )
            jobs_by_status = {status.value: count for status, count in result.all()}
        except Exception as e:
            logger.error(f"Failed to count jobs: {str(e)}")

    scheduler = getattr(request.app.state, "scheduler", None)

    return HealthCheckResponse(
        database_connected=db_connected,
        worker_running=bool(scheduler is not None and scheduler.scheduler.running),
        jobs_by_status=jobs_by_status
    )
