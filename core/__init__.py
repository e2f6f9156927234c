"""
Core utilities and configuration for the customer import service.

Modules:
    config: Application configuration and environment variable management
    database: Database engine and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import HeaderValidationError, StreamReadError
    from core.logging import setup_logging
"""

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "IngestionError",
    "FatalJobError",
    "DecodeError",
    "StreamReadError",
    "ValidationError",
    "HeaderValidationError",
    "LoadError",
    "PersistenceError",
    "JobStateError",
    "InvalidStatusTransition",
    "PipelineStateError",
    "JobNotFoundError",
]
