"""
Pytest configuration and fixtures
"""

import io
import pytest
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set
from uuid import UUID, uuid4

from core.exceptions import PersistenceError, StreamReadError
from ingestion.events import BroadcasterRegistry
from ingestion.runner import ImportRunner
from models.base import JobStatus
from models.job import ImportJob
from schemas.customer import CustomerRow


class InMemoryJobRepository:
    """JobRepository stand-in that remembers every write"""

    def __init__(self):
        self.jobs: Dict[UUID, ImportJob] = {}
        self.updates: List[tuple] = []
        self._clock = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)

    async def create(self, job_id: UUID, filename: str) -> ImportJob:
        self._clock += timedelta(seconds=1)
        job = ImportJob(
            id=job_id,
            filename=filename,
            status=JobStatus.PENDING,
            total_rows=0,
            processed_rows=0,
            success_count=0,
            failed_count=0,
            errors=[],
            created_at=self._clock,
            completed_at=None,
        )
        self.jobs[job_id] = job
        return job

    async def find_by_id(self, job_id: UUID) -> Optional[ImportJob]:
        return self.jobs.get(job_id)

    async def list_jobs(self) -> List[ImportJob]:
        return sorted(self.jobs.values(), key=lambda job: job.created_at, reverse=True)

    async def next_pending_id(self) -> Optional[UUID]:
        pending = [job for job in self.jobs.values() if job.status == JobStatus.PENDING]
        if not pending:
            return None
        return min(pending, key=lambda job: job.created_at).id

    async def update_progress(self, job_id: UUID, **fields) -> None:
        self.updates.append((job_id, dict(fields)))
        job = self.jobs[job_id]
        for key, value in fields.items():
            setattr(job, key, value)

    def updates_for(self, job_id: UUID) -> List[dict]:
        return [fields for update_id, fields in self.updates if update_id == job_id]


class InMemoryCustomerStore:
    """Customer loader stand-in with a global unique email index"""

    def __init__(self):
        self.emails: Set[str] = set()
        self.calls: List[tuple] = []
        self.fail_calls: Set[int] = set()

    async def insert_batch(self, job_id: UUID, customers: Sequence[CustomerRow]) -> Set[str]:
        self.calls.append((job_id, [c.email for c in customers]))
        if len(self.calls) in self.fail_calls:
            raise PersistenceError("Bulk customer insert failed", context={"job_id": str(job_id)})
        inserted = set()
        for customer in customers:
            if customer.email not in self.emails:
                self.emails.add(customer.email)
                inserted.add(customer.email)
        return inserted


class InMemoryStorage:
    """Upload storage stand-in keeping bytes per job"""

    def __init__(self):
        self.files: Dict[UUID, bytes] = {}
        self.streams: Dict[UUID, io.BytesIO] = {}

    async def save(self, job_id: UUID, source) -> None:
        self.files[job_id] = source.read()

    def open(self, job_id: UUID):
        if job_id in self.streams:
            return self.streams[job_id]
        if job_id not in self.files:
            raise StreamReadError(f"Upload for job {job_id} could not be opened")
        return io.BytesIO(self.files[job_id])


class YieldCounter:
    """Replacement for the cooperative yield that counts calls"""

    def __init__(self, hook=None):
        self.calls = 0
        self.hook = hook

    async def __call__(self):
        self.calls += 1
        if self.hook is not None:
            await self.hook(self.calls)


def make_csv(header: str, rows: List[str]) -> bytes:
    return ("\n".join([header] + rows) + "\n").encode("utf-8")


@pytest.fixture
def job_repository():
    return InMemoryJobRepository()


@pytest.fixture
def customer_store():
    return InMemoryCustomerStore()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def registry():
    # Frozen clock: only the first non-terminal event per subscriber passes
    return BroadcasterRegistry(throttle_ms=500, clock=lambda: 0.0)


@pytest.fixture
def make_runner(job_repository, customer_store, storage, registry):
    def _make(batch_size: int = 200, checkpoint_every: int = 10, yield_control=None):
        return ImportRunner(
            job_repository=job_repository,
            customer_loader=customer_store,
            storage=storage,
            registry=registry,
            batch_size=batch_size,
            checkpoint_every=checkpoint_every,
            yield_control=yield_control or YieldCounter(),
        )
    return _make


@pytest.fixture
def submit_csv(job_repository, storage):
    async def _submit(payload: bytes, filename: str = "customers.csv") -> UUID:
        job_id = uuid4()
        storage.files[job_id] = payload
        await job_repository.create(job_id, filename)
        return job_id
    return _submit


@pytest.fixture
def sample_csv():
    """Three-row upload: one good row, one bad email, one repeated email"""
    return make_csv(
        "name,email,phone,company",
        [
            "Alice,a@x.com,,Acme",
            "Bob,not-an-email,555,Acme",
            "Alice2,a@x.com,,Acme",
        ]
    )
