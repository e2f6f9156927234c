"""
Upload storage on the local filesystem
"""

import asyncio
import shutil
from pathlib import Path
from typing import BinaryIO
from uuid import UUID
from core.exceptions import StreamReadError
import logging

logger = logging.getLogger(__name__)


class UploadStorage:
    """
    Keeps each upload as <upload_dir>/<job_id>.csv until its job runs.

    The stored file is the byte source of the job: read once, front to
    back, no seeking required.
    """

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)

    def path_for(self, job_id: UUID) -> Path:
        return self.upload_dir / f"{job_id}.csv"

    async def save(self, job_id: UUID, source: BinaryIO) -> Path:
        target = self.path_for(job_id)
        await asyncio.to_thread(self._copy, source, target)
        logger.info(f"Stored upload for job {job_id} at {target}")
        return target

    def open(self, job_id: UUID) -> BinaryIO:
        path = self.path_for(job_id)
        try:
            return open(path, "rb")
        except OSError as e:
            raise StreamReadError(
                f"Upload for job {job_id} could not be opened",
                context={"job_id": str(job_id), "file_path": str(path)},
                original_exception=e
            )

    def _copy(self, source: BinaryIO, target: Path):
        self.upload_dir.mkdir(parents=True, exist_ok=True)
        with open(target, "wb") as out:
            shutil.copyfileobj(source, out)
