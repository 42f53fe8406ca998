"""
Custom exceptions for the ingestion pipeline with structured error context.

This module provides the exception hierarchy used while selecting candidate
packages, fetching repository metadata from the hosting API, caching READMEs
and persisting merged repository records. Each exception carries context
information for logging and monitoring.

Exception Hierarchy:
    IngestionException (base)
    ├── SelectionError
    │   └── NotFoundError
    ├── FetchError
    │   ├── MetadataFetchError
    │   ├── NetworkError / RateLimitError (retryable)
    │   └── AuthenticationError / ResourceNotFoundError (non-retryable)
    ├── MergeError
    │   └── MissingRepositoryMetadataError
    ├── ReadmeCacheError
    ├── PersistenceError
    ├── MetricsPushError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class IngestionException(Exception):
    """
    Base exception for all ingestion-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (package id, url, etc.)
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
        self.timestamp = datetime.utcnow()

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


# ============================================================================
# Selection Errors
# ============================================================================

class SelectionError(IngestionException):
    """Base exception for candidate selection failures."""
    pass


class NotFoundError(SelectionError):
    """
    Raised when a requested package id does not resolve to a candidate.

    Context should include:
        - package_id: The identifier that was requested
    """
    pass


# ============================================================================
# Fetch Errors
# ============================================================================

class FetchError(IngestionException):
    """Base exception for hosting API failures."""
    pass


class MetadataFetchError(FetchError):
    """
    Raised when the repository metadata request fails.

    Fatal for the candidate being processed, never for the run.

    Context should include:
        - url: Repository URL of the package
    """
    pass


# ============================================================================
# Merge Errors
# ============================================================================

class MergeError(IngestionException):
    """Base exception for failures while merging fetched data into a record."""
    pass


class MissingRepositoryMetadataError(MergeError):
    """
    Raised when metadata was fetched but carries no repository payload.

    The remote repository no longer exists or is not accessible.
    """
    pass


# ============================================================================
# Side-cache, persistence and metrics errors
# ============================================================================

class ReadmeCacheError(IngestionException):
    """
    Raised when writing a README to the object cache fails.

    Never fatal: callers record it as an error cache state.

    Context should include:
        - bucket: Target bucket
        - key: Object key
    """
    pass


class PersistenceError(IngestionException):
    """
    Raised when loading or saving a record fails.

    Context should include:
        - operation: Type of database operation (SELECT, UPSERT, UPDATE)
        - table_name: Name of the table
        - package_id: Owning package
    """
    pass


class MetricsPushError(IngestionException):
    """Raised when pushing run metrics to the collector fails."""
    pass


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(IngestionException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """
    pass


class NonRetryableError(IngestionException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    """
    pass


class NetworkError(RetryableError, FetchError):
    """Network-related errors that should be retried."""
    pass


class RateLimitError(RetryableError, FetchError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[int] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, FetchError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class ResourceNotFoundError(NonRetryableError, FetchError):
    """Resource not found errors (HTTP 404) that should not be retried."""
    pass
