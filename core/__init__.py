"""
Core utilities and configuration for the registry ingestion service.

This package provides foundational components used throughout ingestion:

Modules:
    config: Application configuration and environment variable management
    database: Database engine, session factory and session dependency
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import MetadataFetchError, NotFoundError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

__all__ = [
    "settings",
    "async_session_maker",
    "create_session_factory",
    "setup_logging",
    # Exceptions
    "IngestionException",
    "SelectionError",
    "NotFoundError",
    "FetchError",
    "MetadataFetchError",
    "MergeError",
    "MissingRepositoryMetadataError",
    "ReadmeCacheError",
    "PersistenceError",
    "MetricsPushError",
    "RetryableError",
    "NonRetryableError",
    "NetworkError",
    "RateLimitError",
    "AuthenticationError",
    "ResourceNotFoundError",
]
