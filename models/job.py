from sqlalchemy import Column, Integer, Text, Enum, DateTime, Index
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
import uuid
from models.base import Base, JobStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImportJob(Base):
    """
    One uploaded file and the outcome of importing it.

    Purpose:
    - Single source of truth for status, counters and row errors
    - Read surface for clients polling or streaming progress

    Design:
    - errors is an append-only JSONB list of {rowNumber, message, row?}
    - counters are checkpointed periodically while processing, so a reader
      may see values slightly behind the live progress stream
    """
    __tablename__ = "jobs"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    filename = Column(Text, nullable=False)

    status = Column(Enum(JobStatus), default=JobStatus.PENDING, nullable=False, index=True)

    # Counters
    total_rows = Column(Integer, nullable=False, default=0)
    processed_rows = Column(Integer, nullable=False, default=0)
    success_count = Column(Integer, nullable=False, default=0)
    failed_count = Column(Integer, nullable=False, default=0)

    errors = Column(JSONB, nullable=False, default=list)

    # Timestamps
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    customers = relationship("Customer", back_populates="job")

    __table_args__ = (
        Index("idx_jobs_status_created", "status", "created_at"),
    )
