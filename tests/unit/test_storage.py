"""
Unit tests for upload storage and job submission
"""

import io
import pytest
from uuid import uuid4
from core.exceptions import StreamReadError
from ingestion.storage import UploadStorage
from ingestion.submission import JobSubmissionService
from models.base import JobStatus


class TestUploadStorage:

    @pytest.mark.asyncio
    async def test_saved_upload_reads_back(self, tmp_path):
        storage = UploadStorage(str(tmp_path / "uploads"))
        job_id = uuid4()

        path = await storage.save(job_id, io.BytesIO(b"name,email\n"))

        assert path == tmp_path / "uploads" / f"{job_id}.csv"
        with storage.open(job_id) as stream:
            assert stream.read() == b"name,email\n"

    def test_missing_upload_raises_stream_error(self, tmp_path):
        storage = UploadStorage(str(tmp_path))

        with pytest.raises(StreamReadError):
            storage.open(uuid4())


class TestJobSubmissionService:

    @pytest.mark.asyncio
    async def test_submit_creates_pending_job_and_notifies(self, tmp_path, job_repository):
        notified = []
        service = JobSubmissionService(
            job_repository,
            UploadStorage(str(tmp_path)),
            notify=lambda: notified.append(True)
        )

        job_id = await service.submit(io.BytesIO(b"name\n"), "people.csv")

        job = await job_repository.find_by_id(job_id)
        assert job.status == JobStatus.PENDING
        assert job.filename == "people.csv"
        assert (tmp_path / f"{job_id}.csv").exists()
        assert notified == [True]

    @pytest.mark.asyncio
    async def test_submit_without_filename_uses_job_id(self, storage, job_repository):
        service = JobSubmissionService(job_repository, storage)

        job_id = await service.submit(io.BytesIO(b"name\n"), None)

        job = await job_repository.find_by_id(job_id)
        assert job.filename == f"{job_id}.csv"
