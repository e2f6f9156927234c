# ============================================================================
# File: ingestion/runner.py
# Description: Import orchestrator driving one job through the pipeline
# ============================================================================
"""
Import Runner - decode → buffer → validate → dedup → load → track.

This module provides the per-job orchestration with:
- A single cooperative loop per job, batches strictly sequential
- Backpressure: the decoder is not pulled while a batch is in flight
- Partial failure support at row granularity
- Fatal handling for a bad header or an unreadable upload
- An explicit yield to the event loop after every batch
"""

from typing import Awaitable, Callable, List, Optional
from uuid import UUID
import logging

from core.config import settings
from core.exceptions import FatalJobError, IngestionError, PersistenceError
from ingestion.backpressure import BackpressureController, cooperative_yield
from ingestion.events import BroadcasterRegistry
from ingestion.extractors.csv_decoder import CSVDecoder, DecodedRow
from ingestion.loaders.customer_loader import reconcile
from ingestion.progress import BatchOutcome, ProgressTracker, RowFailure
from ingestion.transformers.deduplicator import BatchDeduplicator
from ingestion.transformers.row_validator import RowValidator
from models.base import JobStatus

logger = logging.getLogger(__name__)

DATABASE_ERROR = "database error"


class BatchProcessor:
    """
    Classify and persist one batch of decoded rows.

    Every row of the batch ends up either counted as a success or
    recorded as exactly one RowFailure.
    """

    def __init__(
        self,
        job_id: UUID,
        loader,
        validator: Optional[RowValidator] = None,
        deduplicator: Optional[BatchDeduplicator] = None
    ):
        self.job_id = job_id
        self.loader = loader
        self.validator = validator or RowValidator()
        self.deduplicator = deduplicator or BatchDeduplicator()

    async def process(self, batch: List[DecodedRow]) -> BatchOutcome:
        outcome = BatchOutcome(size=len(batch))

        valid, invalid = self.validator.validate_batch(batch)
        accepted, duplicates = self.deduplicator.split(valid)
        rejected = invalid + duplicates

        if accepted:
            try:
                inserted = await self.loader.insert_batch(
                    self.job_id, [row.customer for row in accepted]
                )
            except PersistenceError as e:
                logger.error(
                    f"Batch insert failed for job {self.job_id}: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                outcome.failures.extend(
                    RowFailure(row.row_number, DATABASE_ERROR, row.original)
                    for row in accepted
                )
            else:
                stored, conflicts = reconcile(accepted, inserted)
                outcome.success_count = len(stored)
                rejected = rejected + conflicts

        outcome.failures.extend(
            RowFailure(row.row_number, row.message, row.original) for row in rejected
        )
        outcome.failures.sort(key=lambda failure: failure.row_number)
        return outcome


class ImportRunner:
    """
    Import orchestrator for one job at a time.

    Responsibilities:
    - Move the job pending → processing → completed | failed
    - Keep at most one batch of rows buffered
    - Turn recoverable problems into row errors, fatal ones into a failed job
    - Own the job's progress channel for the duration of the run

    Args:
        job_repository: Store for job records
        customer_loader: Persistence adapter for customers
        storage: Byte source, open(job_id) → binary file
        registry: Progress channels shared with observers
        batch_size: Rows per batch
        checkpoint_every: Batches between durable checkpoints
        decode_chunk_size: Rows pandas materialises per read
        yield_control: Awaitable run after every batch
    """

    def __init__(
        self,
        job_repository,
        customer_loader,
        storage,
        registry: BroadcasterRegistry,
        batch_size: int = settings.IMPORT_BATCH_SIZE,
        checkpoint_every: int = settings.CHECKPOINT_EVERY_BATCHES,
        decode_chunk_size: Optional[int] = None,
        yield_control: Callable[[], Awaitable[None]] = cooperative_yield
    ):
        self.jobs = job_repository
        self.loader = customer_loader
        self.storage = storage
        self.registry = registry
        self.batch_size = batch_size
        self.checkpoint_every = checkpoint_every
        self.decode_chunk_size = decode_chunk_size or batch_size
        self.yield_control = yield_control

    async def run(self, job_id: UUID) -> Optional[JobStatus]:
        """
        Process one job to a terminal state.

        Returns:
            Final status, or None when the job was missing or not pending

        Raises:
            IngestionError: Unexpected failure; the job is marked failed first
        """
        job = await self.jobs.find_by_id(job_id)
        if job is None:
            logger.error(f"Job {job_id} not found")
            return None
        if job.status != JobStatus.PENDING:
            logger.warning(f"Job {job_id} is {job.status.value}, skipping")
            return None

        key = str(job_id)
        broadcaster = self.registry.open(key)
        tracker = ProgressTracker(
            job_id=job_id,
            repository=self.jobs,
            broadcaster=broadcaster,
            checkpoint_every=self.checkpoint_every,
        )
        controller: BackpressureController[DecodedRow] = BackpressureController(self.batch_size)
        processor = BatchProcessor(job_id, self.loader)
        stream = None
        decoder = None

        try:
            await tracker.start()
            logger.info(f"Processing job {job_id} ({job.filename})")

            stream = self.storage.open(job_id)
            decoder = CSVDecoder(stream, self.decode_chunk_size, source_name=key)
            headers = await decoder.open()
            processor.validator.validate_headers(headers)

            async for row in decoder.rows():
                if controller.push(row):
                    await self._run_batch(controller.begin_batch(), processor, tracker)
                    controller.end_batch()

            controller.end_stream()
            while True:
                batch = controller.next_drain_batch()
                if batch is None:
                    break
                await self._run_batch(batch, processor, tracker)

            await tracker.complete()
            return tracker.status

        except FatalJobError as e:
            controller.fail()
            try:
                await tracker.fail(e.message)
            except Exception as write_error:
                logger.exception(f"Could not record failure of job {job_id}")
                raise IngestionError(
                    "Failed to record job failure",
                    context={"job_id": key, "reason": e.message},
                    original_exception=write_error
                )
            return tracker.status

        except Exception as e:
            logger.exception(f"Unexpected error while processing job {job_id}")
            controller.fail()
            if not tracker.status.is_terminal:
                try:
                    await tracker.fail(str(e) or type(e).__name__)
                except Exception:
                    logger.exception(f"Could not record failure of job {job_id}")
            raise IngestionError(
                "Unexpected error in import pipeline",
                context={
                    "job_id": key,
                    "processed_rows": tracker.stats.processed_rows,
                    "batches": tracker.batch_count
                },
                original_exception=e
            )

        finally:
            if decoder is not None:
                decoder.close()
            if stream is not None:
                stream.close()
            self.registry.dispose(key)

    async def _run_batch(self, batch: List[DecodedRow], processor: BatchProcessor, tracker: ProgressTracker):
        outcome = await processor.process(batch)
        await tracker.record_batch(outcome)
        await self.yield_control()
