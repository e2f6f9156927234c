"""
Unit tests for the progress tracker and job status machine
"""

import pytest
from uuid import uuid4
from core.exceptions import InvalidStatusTransition
from ingestion.events import ProgressBroadcaster
from ingestion.progress import BatchOutcome, ProgressTracker, RowFailure
from models.base import JobStatus


class RecordingRepository:
    def __init__(self):
        self.updates = []

    async def update_progress(self, job_id, **fields):
        self.updates.append(fields)


@pytest.fixture
def repository():
    return RecordingRepository()


@pytest.fixture
def broadcaster():
    return ProgressBroadcaster("job", throttle_ms=0)


def _tracker(repository, broadcaster, checkpoint_every=2):
    return ProgressTracker(uuid4(), repository, broadcaster, checkpoint_every=checkpoint_every)


def _outcome(size, failed_rows=()):
    failures = [RowFailure(n, "invalid email", {"email": "bad"}) for n in failed_rows]
    return BatchOutcome(size=size, success_count=size - len(failures), failures=failures)


class TestRowFailure:

    def test_row_error_carries_original_row(self):
        error = RowFailure(4, "invalid email", {"email": "bad"}).to_job_error()

        assert error == {"rowNumber": 4, "message": "invalid email", "row": {"email": "bad"}}

    def test_job_error_has_no_row(self):
        assert RowFailure(0, "boom").to_job_error() == {"rowNumber": 0, "message": "boom"}


class TestProgressTracker:

    @pytest.mark.asyncio
    async def test_start_persists_processing(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)

        await tracker.start()

        assert tracker.status == JobStatus.PROCESSING
        assert repository.updates == [{"status": JobStatus.PROCESSING}]
        assert broadcaster.latest.status == JobStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_counters_balance_after_every_batch(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)
        await tracker.start()

        for outcome in [_outcome(3, [2]), _outcome(3), _outcome(2, [7, 8])]:
            await tracker.record_batch(outcome)
            stats = tracker.stats
            assert stats.processed_rows == stats.success_count + stats.failed_count
            assert stats.total_rows == stats.processed_rows

        assert tracker.stats.processed_rows == 8
        assert tracker.stats.failed_count == 3
        assert [e["rowNumber"] for e in tracker.errors] == [2, 7, 8]

    @pytest.mark.asyncio
    async def test_checkpoint_every_n_batches(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster, checkpoint_every=2)
        await tracker.start()

        for _ in range(5):
            await tracker.record_batch(_outcome(1))

        assert tracker.checkpoints == 2
        checkpoints = repository.updates[1:]
        assert [update["processed_rows"] for update in checkpoints] == [2, 4]
        assert all(update["status"] == JobStatus.PROCESSING for update in checkpoints)

    @pytest.mark.asyncio
    async def test_every_batch_is_published(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster, checkpoint_every=100)
        subscription = broadcaster.subscribe()
        await tracker.start()

        await tracker.record_batch(_outcome(2))
        await tracker.record_batch(_outcome(2))

        events = subscription.pending()
        assert [event.processed_rows for event in events] == [0, 2, 4]

    @pytest.mark.asyncio
    async def test_complete_writes_final_state(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)
        await tracker.start()
        await tracker.record_batch(_outcome(3, [1]))

        await tracker.complete()

        final = repository.updates[-1]
        assert final["status"] == JobStatus.COMPLETED
        assert final["completed_at"] is not None
        assert final["processed_rows"] == 3
        assert final["errors"] == [{"rowNumber": 1, "message": "invalid email", "row": {"email": "bad"}}]
        assert broadcaster.closed

    @pytest.mark.asyncio
    async def test_fail_records_job_error(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)
        await tracker.start()

        await tracker.fail("Missing required headers: company")

        final = repository.updates[-1]
        assert final["status"] == JobStatus.FAILED
        assert "completed_at" not in final
        assert final["errors"][-1] == {"rowNumber": 0, "message": "Missing required headers: company"}

    @pytest.mark.asyncio
    async def test_terminal_state_is_final(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)
        await tracker.start()
        await tracker.complete()

        with pytest.raises(InvalidStatusTransition):
            await tracker.fail("late")
        with pytest.raises(InvalidStatusTransition):
            await tracker.record_batch(_outcome(1))

    @pytest.mark.asyncio
    async def test_cannot_complete_before_start(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)

        with pytest.raises(InvalidStatusTransition):
            await tracker.complete()

    @pytest.mark.asyncio
    async def test_status_unchanged_when_write_fails(self, broadcaster):
        class FailingRepository:
            async def update_progress(self, job_id, **fields):
                raise RuntimeError("database unavailable")

        tracker = _tracker(FailingRepository(), broadcaster)

        with pytest.raises(RuntimeError):
            await tracker.start()

        assert tracker.status == JobStatus.PENDING
        assert broadcaster.latest is None

    @pytest.mark.asyncio
    async def test_failed_write_keeps_job_processing(self, repository, broadcaster):
        tracker = _tracker(repository, broadcaster)
        await tracker.start()

        async def refuse(job_id, **fields):
            raise RuntimeError("database unavailable")

        repository.update_progress = refuse

        with pytest.raises(RuntimeError):
            await tracker.fail("Missing required headers: company")

        assert tracker.status == JobStatus.PROCESSING
        assert tracker.errors == []

    def test_checkpoint_interval_must_be_positive(self, repository, broadcaster):
        with pytest.raises(ValueError):
            _tracker(repository, broadcaster, checkpoint_every=0)
