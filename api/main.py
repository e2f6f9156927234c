"""
FastAPI application initialization
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from api.routes import health, jobs
from api.middleware import RequestContextMiddleware
from core.config import settings
from core.exceptions import JobNotFoundError
from core.logging import setup_logging
from ingestion.events import BroadcasterRegistry
from ingestion.scheduler import ImportScheduler
from ingestion.storage import UploadStorage
import logging

setup_logging()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Customer Import API",
    description="Upload customer CSV files and follow their import progress",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"]
)
app.add_middleware(RequestContextMiddleware)

# Progress channels live in this process; the worker must run here for
# stream subscribers to see live events
app.state.registry = BroadcasterRegistry(throttle_ms=settings.PROGRESS_THROTTLE_MS)
app.state.storage = UploadStorage(settings.UPLOAD_DIR)
app.state.scheduler = None

app.include_router(health.router)
app.include_router(jobs.router)


@app.exception_handler(JobNotFoundError)
async def job_not_found_handler(request: Request, exc: JobNotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info("Starting Customer Import API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Database: {settings.DATABASE_URL.split('@')[1] if '@' in settings.DATABASE_URL else 'configured'}")

    if settings.RUN_WORKER_IN_API:
        scheduler = ImportScheduler(app.state.registry, storage=app.state.storage)
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info("Shutting down Customer Import API")
    if app.state.scheduler is not None:
        app.state.scheduler.stop()


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Customer Import API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/health",
        "endpoints": {
            "upload": "/jobs/upload",
            "jobs": "/jobs",
            "stream": "/jobs/{id}/stream",
            "errors": "/jobs/{id}/errors.csv"
        }
    }
