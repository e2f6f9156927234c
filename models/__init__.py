"""
SQLAlchemy ORM models for database tables.

Models:
    base: Declarative base, JobStatus enum and the allowed status transitions
    job: ImportJob, one row per uploaded file with counters and row errors
    customer: Customer, rows accepted from uploads (email unique across jobs)

Usage:
    from models.job import ImportJob
    from models.customer import Customer
    from models.base import JobStatus

Relationships:
    - ImportJob → Customer (one-to-many)
"""

from models.base import Base, JobStatus, ALLOWED_TRANSITIONS
from models.job import ImportJob
from models.customer import Customer

__all__ = [
    "Base",
    "JobStatus",
    "ALLOWED_TRANSITIONS",
    "ImportJob",
    "Customer",
]
