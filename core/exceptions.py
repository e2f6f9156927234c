"""
Custom exceptions for the import pipeline with structured error context.

Row-level problems (bad field, duplicate email, email already stored) are
not exceptions: they are classified inside a batch and recorded as job
errors. The classes below cover failures that stop a batch or a job.

Exception Hierarchy:
    IngestionError (base)
    ├── DecodeError
    │   └── StreamReadError          (fatal)
    ├── ValidationError
    │   └── HeaderValidationError    (fatal)
    ├── LoadError
    │   └── PersistenceError
    ├── JobStateError
    │   ├── InvalidStatusTransition
    │   └── PipelineStateError
    ├── JobNotFoundError
    └── FatalJobError (mixin)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class IngestionError(Exception):
    """
    Base exception for all import-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (job id, row number, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


class FatalJobError(IngestionError):
    """
    Mixin for errors that end the whole job.

    The job is marked failed with a single whole-job error (row number 0)
    and no further buffered rows are processed.
    """
    pass


# ============================================================================
# Decode Errors
# ============================================================================

class DecodeError(IngestionError):
    """Base exception for failures turning the byte stream into rows."""
    pass


class StreamReadError(FatalJobError, DecodeError):
    """
    Raised when the byte source cannot be opened, read or tokenized.

    Context should include:
        - job_id: Job whose upload failed
        - row_number: Last row decoded before the failure (if any)
    """
    pass


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(IngestionError):
    """Base exception for schema validation failures."""
    pass


class HeaderValidationError(FatalJobError, ValidationError):
    """
    Raised when the header row lacks required columns.

    Context should include:
        - missing: List of missing column names
        - headers: Header names actually found
    """
    pass


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(IngestionError):
    """Base exception for store write failures."""
    pass


class PersistenceError(LoadError):
    """
    Raised when a bulk insert fails as a whole.

    Context should include:
        - job_id: Owning job
        - batch_size: Number of records in the failed statement
        - table_name: Target table
    """
    pass


# ============================================================================
# Job State Errors
# ============================================================================

class JobStateError(IngestionError):
    """Base exception for illegal state machine usage."""
    pass


class InvalidStatusTransition(JobStateError):
    """Raised when a job status change breaks pending → processing → terminal."""
    pass


class PipelineStateError(JobStateError):
    """Raised when the backpressure controller is driven out of order."""
    pass


class JobNotFoundError(IngestionError):
    """Raised when a job id has no stored record."""
    pass
