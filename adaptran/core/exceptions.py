"""
Exception hierarchy for adaptran.

Upstream failures are classified by HTTP status so the retry executor can
decide what is transient. Storage failures are never fatal.
"""

from __future__ import annotations
from typing import Optional, Dict, Any, List


class AdaptranError(Exception):
    """Base exception for all adaptran errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
        suggestion: Optional[str] = None
    ):
        """
        Initialize error.

        Args:
            message: Human-readable error message
            details: Additional error details
            recoverable: Whether error can be recovered from
            suggestion: Suggested fix or workaround
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable
        self.suggestion = suggestion

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
            "suggestion": self.suggestion
        }

    def __str__(self) -> str:
        """String representation with suggestion if available."""
        result = self.message
        if self.suggestion:
            result += f"\nSuggestion: {self.suggestion}"
        return result


class UpstreamError(AdaptranError):
    """Raised when a call to the language model fails."""

    retryable = False

    def __init__(
        self,
        backend: str,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None
    ):
        """
        Initialize upstream error.

        Args:
            backend: Backend name
            message: Error message
            status_code: HTTP status code, None for network-level failures
            original_error: Original exception if any
        """
        self.backend = backend
        self.status_code = status_code
        self.original_error = original_error
        full_message = f"Backend '{backend}' failed: {message}"
        details = {
            "backend": backend,
            "status_code": status_code,
            "original_error": str(original_error) if original_error else None,
        }
        super().__init__(full_message, details, recoverable=self.retryable, suggestion=self._suggest(backend))

    def _suggest(self, backend: str) -> Optional[str]:
        return None


class NetworkFailure(UpstreamError):
    """No response was received (connection error, timeout, empty body)."""

    retryable = True

    def __init__(self, backend: str, message: str, original_error: Optional[BaseException] = None):
        super().__init__(backend, message, status_code=None, original_error=original_error)

    def _suggest(self, backend: str) -> Optional[str]:
        return "Check your network connection or the API endpoint URL."


class RateLimited(UpstreamError):
    """HTTP 429."""

    retryable = True

    def _suggest(self, backend: str) -> Optional[str]:
        return f"The {backend} API is rate limiting requests. Reduce batch frequency or upgrade your plan."


class ServerError(UpstreamError):
    """HTTP 5xx."""

    retryable = True


class ClientError(UpstreamError):
    """HTTP 4xx other than 429; not transient."""

    retryable = False

    def _suggest(self, backend: str) -> Optional[str]:
        if self.status_code in (401, 403):
            return f"Check API key for {backend}. Set it in the config file or via environment variable."
        return "Check the model name and request parameters."


def classify_status(
    backend: str,
    status_code: Optional[int],
    message: str,
    original_error: Optional[BaseException] = None
) -> UpstreamError:
    """
    Build the upstream error matching an HTTP status.

    Args:
        backend: Backend name
        status_code: HTTP status code or None
        message: Error message
        original_error: Original exception if any

    Returns:
        NetworkFailure, RateLimited, ServerError or ClientError
    """
    if status_code is None:
        return NetworkFailure(backend, message, original_error=original_error)
    if status_code == 429:
        return RateLimited(backend, message, status_code, original_error)
    if status_code >= 500:
        return ServerError(backend, message, status_code, original_error)
    return ClientError(backend, message, status_code, original_error)


class ParseFailure(AdaptranError):
    """Raised when the model response is not the expected JSON."""

    retryable = False

    def __init__(self, message: str, raw_content: Optional[str] = None):
        details = {"raw_content": raw_content[:500] if raw_content else None}
        super().__init__(
            message,
            details,
            recoverable=False,
            suggestion="The model returned malformed JSON. Try a stronger model or smaller batches."
        )
        self.raw_content = raw_content


class StorageFailure(AdaptranError):
    """Raised when the persistent store is unavailable."""

    def __init__(self, message: str, operation: Optional[str] = None, keys: Optional[List[str]] = None):
        details = {"operation": operation, "keys": keys}
        super().__init__(
            message,
            details,
            recoverable=True,
            suggestion="Storage errors are non-fatal. State is kept in memory for this session."
        )
        self.operation = operation
        self.keys = keys


class BatchFailure(AdaptranError):
    """Raised when a whole batch could not be translated."""

    def __init__(self, paragraph_ids: List[str], cause: BaseException):
        message = f"Batch of {len(paragraph_ids)} paragraphs failed: {cause}"
        details = {"paragraph_ids": paragraph_ids, "cause": cause.__class__.__name__}
        super().__init__(message, details, recoverable=True, suggestion="Resubmit the paragraphs individually.")
        self.paragraph_ids = paragraph_ids
        self.cause = cause


class ConfigurationError(AdaptranError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        invalid_value: Optional[Any] = None,
        valid_values: Optional[List[Any]] = None
    ):
        """
        Initialize configuration error.

        Args:
            message: Error message
            config_key: Configuration key that's invalid
            invalid_value: Invalid value provided
            valid_values: List of valid values
        """
        details = {
            "config_key": config_key,
            "invalid_value": invalid_value,
            "valid_values": valid_values
        }

        suggestion = None
        if config_key and valid_values:
            suggestion = f"Valid values for {config_key}: {', '.join(map(str, valid_values))}"
        elif config_key:
            suggestion = f"Check configuration for '{config_key}'"

        super().__init__(message, details, recoverable=True, suggestion=suggestion)
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.valid_values = valid_values
