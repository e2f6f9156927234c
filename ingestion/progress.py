"""
Job progress tracking and status state machine
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID
from models.base import JobStatus, ALLOWED_TRANSITIONS
from schemas.job import JobProgressEvent
from core.exceptions import InvalidStatusTransition
from ingestion.events import ProgressBroadcaster
import logging

logger = logging.getLogger(__name__)


@dataclass
class RowFailure:
    row_number: int
    message: str
    row: Optional[Dict[str, str]] = None

    def to_job_error(self) -> Dict[str, Any]:
        error: Dict[str, Any] = {"rowNumber": self.row_number, "message": self.message}
        if self.row is not None:
            error["row"] = self.row
        return error


@dataclass
class BatchOutcome:
    """What happened to every row of one batch"""
    size: int
    success_count: int = 0
    failures: List[RowFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)


@dataclass
class JobStats:
    processed_rows: int = 0
    total_rows: int = 0
    success_count: int = 0
    failed_count: int = 0

    def as_fields(self) -> Dict[str, int]:
        return {
            "processed_rows": self.processed_rows,
            "total_rows": self.total_rows,
            "success_count": self.success_count,
            "failed_count": self.failed_count,
        }


class ProgressTracker:
    """
    Owns a running job's counters, errors and status.

    Responsibilities:
    - Enforce pending → processing → completed | failed
    - Accumulate batch outcomes, keeping processed == success + failed
    - Checkpoint counters and errors every N batches
    - Offer a snapshot to the job's broadcaster after every change

    Args:
        job_id: Job being tracked
        repository: Store with update_progress(job_id, **fields)
        broadcaster: Channel for live snapshots
        checkpoint_every: Batches between durable checkpoints
        status: Status the job is in when tracking begins
    """

    def __init__(
        self,
        job_id: UUID,
        repository,
        broadcaster: ProgressBroadcaster,
        checkpoint_every: int,
        status: JobStatus = JobStatus.PENDING
    ):
        if checkpoint_every < 1:
            raise ValueError("checkpoint_every must be positive")
        self.job_id = job_id
        self.repository = repository
        self.broadcaster = broadcaster
        self.checkpoint_every = checkpoint_every
        self.status = status
        self.stats = JobStats()
        self.errors: List[Dict[str, Any]] = []
        self.batch_count = 0
        self.checkpoints = 0

    def snapshot(self) -> JobProgressEvent:
        return JobProgressEvent(
            job_id=str(self.job_id),
            processed_rows=self.stats.processed_rows,
            total_rows=self.stats.total_rows,
            success_count=self.stats.success_count,
            failed_count=self.stats.failed_count,
            status=self.status,
        )

    async def start(self):
        """Enter processing; persisted before any row is read"""
        await self._persist_transition(JobStatus.PROCESSING)
        self.broadcaster.publish(self.snapshot())
        logger.info(f"Job {self.job_id} processing")

    async def record_batch(self, outcome: BatchOutcome):
        if self.status != JobStatus.PROCESSING:
            raise InvalidStatusTransition(
                "Batches can only be recorded while processing",
                context={"job_id": str(self.job_id), "status": self.status.value}
            )

        self.stats.processed_rows += outcome.size
        self.stats.success_count += outcome.success_count
        self.stats.failed_count += outcome.failed_count
        # Length is unknown until end of stream
        self.stats.total_rows = self.stats.processed_rows
        self.errors.extend(failure.to_job_error() for failure in outcome.failures)
        self.batch_count += 1

        if self.batch_count % self.checkpoint_every == 0:
            await self.checkpoint()

        self.broadcaster.publish(self.snapshot())

    async def checkpoint(self):
        """Durable write of counters and errors while still processing"""
        await self.repository.update_progress(
            self.job_id,
            status=self.status,
            errors=list(self.errors),
            **self.stats.as_fields()
        )
        self.checkpoints += 1
        logger.debug(
            f"Job {self.job_id} checkpoint {self.checkpoints}: "
            f"processed={self.stats.processed_rows}"
        )

    async def complete(self):
        self.stats.total_rows = self.stats.processed_rows
        await self._persist_transition(
            JobStatus.COMPLETED,
            errors=list(self.errors),
            completed_at=datetime.now(timezone.utc),
            **self.stats.as_fields()
        )
        self.broadcaster.publish(self.snapshot())
        logger.info(
            f"Job {self.job_id} completed: processed={self.stats.processed_rows}, "
            f"success={self.stats.success_count}, failed={self.stats.failed_count}"
        )

    async def fail(self, message: str):
        """Record a whole-job error; completed_at stays unset"""
        self._check_transition(JobStatus.FAILED)
        job_error = RowFailure(row_number=0, message=message).to_job_error()
        await self._persist_transition(
            JobStatus.FAILED,
            errors=self.errors + [job_error],
            **self.stats.as_fields()
        )
        self.errors.append(job_error)
        self.broadcaster.publish(self.snapshot())
        logger.error(f"Job {self.job_id} failed: {message}")

    async def _persist_transition(self, target: JobStatus, **fields):
        # The in-memory status only moves once the store has accepted it
        self._check_transition(target)
        await self.repository.update_progress(self.job_id, status=target, **fields)
        self.status = target

    def _check_transition(self, target: JobStatus):
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidStatusTransition(
                f"Illegal job status change {self.status.value} -> {target.value}",
                context={"job_id": str(self.job_id)}
            )
