"""
Pydantic schemas for the job read surface and progress events
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID
from models.base import JobStatus


class JobErrorSchema(BaseModel):
    """One recorded failure; row_number 0 means the whole job failed"""
    row_number: int = Field(..., alias="rowNumber", ge=0)
    message: str
    row: Optional[Dict[str, Any]] = None

    class Config:
        populate_by_name = True


class JobResponse(BaseModel):
    """Job record as returned to clients"""
    id: UUID
    filename: str
    status: JobStatus
    total_rows: int = Field(..., alias="totalRows")
    processed_rows: int = Field(..., alias="processedRows")
    success_count: int = Field(..., alias="successCount")
    failed_count: int = Field(..., alias="failedCount")
    errors: List[JobErrorSchema] = Field(default_factory=list)
    created_at: datetime = Field(..., alias="createdAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")

    class Config:
        from_attributes = True
        populate_by_name = True


class JobProgressEvent(BaseModel):
    """
    Snapshot offered to live subscribers.

    Published after every batch and at every status change; subscribers
    receive a throttled subset, terminal events always.
    """
    job_id: str = Field(..., alias="jobId")
    processed_rows: int = Field(0, alias="processedRows")
    total_rows: int = Field(0, alias="totalRows")
    success_count: int = Field(0, alias="successCount")
    failed_count: int = Field(0, alias="failedCount")
    status: JobStatus

    class Config:
        populate_by_name = True

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @classmethod
    def from_job(cls, job) -> "JobProgressEvent":
        return cls(
            job_id=str(job.id),
            processed_rows=job.processed_rows or 0,
            total_rows=job.total_rows or 0,
            success_count=job.success_count or 0,
            failed_count=job.failed_count or 0,
            status=job.status,
        )

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class UploadResponse(BaseModel):
    job_id: str = Field(..., alias="jobId")

    class Config:
        populate_by_name = True
