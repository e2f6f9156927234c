"""
Streaming import pipeline for uploaded customer files.

Modules:
    backpressure: Bounded row buffer with an explicit batch state machine
    events: Per-job progress broadcaster with throttled delivery
    progress: Job counters, checkpoints and the status state machine
    runner: Orchestrator driving one job through the pipeline
    scheduler: Single-slot FIFO worker over pending jobs (APScheduler)
    storage: Upload files on disk, the byte source of a job
    submission: Turning an upload into a pending job
    exporters: CSV export of a job's recorded errors

Subpackages:
    extractors: CSV decoding (pandas, chunked)
    transformers: Row validation and in-batch deduplication
    loaders: Job repository and bulk customer insert

Architecture:
    bytes → decoder → buffer → batch cut → validate + dedup → bulk insert
    → counters → (every N batches) checkpoint + (always) broadcast → yield

    Row problems become job errors and never stop the job. Only a missing
    required column or an unreadable upload fails the whole job.

Usage:
    from ingestion.runner import ImportRunner
    from ingestion.events import BroadcasterRegistry

    registry = BroadcasterRegistry(throttle_ms=500)
    runner = ImportRunner(JobRepository(session), CustomerLoader(session),
                          UploadStorage("uploads"), registry)
    status = await runner.run(job_id)
"""

__all__ = [
    "ImportRunner",
    "BatchProcessor",
    "ImportScheduler",
    "BroadcasterRegistry",
    "ProgressBroadcaster",
    "ProgressTracker",
    "BackpressureController",
    "CSVDecoder",
    "RowValidator",
    "BatchDeduplicator",
    "CustomerLoader",
    "JobRepository",
    "UploadStorage",
    "JobSubmissionService",
]
