"""
Pydantic schemas for validation and serialization.

Schemas:
    customer: Field rules applied to every uploaded row
    job: Job read surface, job errors, progress events and upload response
    api: Health check response

Usage:
    from schemas.customer import CustomerRow
    from schemas.job import JobResponse, JobProgressEvent

Serialization:
    Client-facing models use camelCase aliases (jobId, processedRows, ...)
    and accept snake_case field names when constructed in code.
"""

__all__ = [
    "CustomerRow",
    "JobErrorSchema",
    "JobResponse",
    "JobProgressEvent",
    "UploadResponse",
    "HealthCheckResponse",
]
