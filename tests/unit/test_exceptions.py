"""Unit tests for the error hierarchy."""

import pytest

from adaptran.core.exceptions import (
    AdaptranError, BatchFailure, ClientError, ConfigurationError, NetworkFailure, ParseFailure,
    RateLimited, ServerError, StorageFailure, UpstreamError, classify_status
)


@pytest.mark.parametrize("status,cls,retryable", [
    (None, NetworkFailure, True),
    (429, RateLimited, True),
    (500, ServerError, True),
    (503, ServerError, True),
    (400, ClientError, False),
    (401, ClientError, False),
])
def test_classify_status(status, cls, retryable):
    """Test HTTP statuses map onto error classes."""
    error = classify_status("openai", status, "failed")

    assert type(error) is cls
    assert isinstance(error, UpstreamError)
    assert error.retryable is retryable
    assert error.status_code == status


def test_upstream_error_message_and_details():
    """Test upstream errors carry backend context."""
    original = ValueError("boom")
    error = RateLimited("anthropic", "too many requests", 429, original)

    assert "anthropic" in error.message
    assert error.details["status_code"] == 429
    assert error.original_error is original
    assert error.recoverable is True
    assert "Suggestion" in str(error)


def test_client_error_auth_suggestion():
    """Test auth failures suggest checking the key."""
    error = ClientError("gemini", "unauthorized", 401)

    assert "API key" in error.suggestion


def test_parse_failure_truncates_raw_content():
    """Test stored raw content is bounded in details."""
    error = ParseFailure("bad", raw_content="x" * 1000)

    assert len(error.details["raw_content"]) == 500
    assert len(error.raw_content) == 1000
    assert error.retryable is False


def test_batch_failure():
    """Test batch failures keep their cause and paragraph ids."""
    cause = NetworkFailure("openai", "timeout")
    error = BatchFailure(["p1", "p2"], cause)

    assert error.paragraph_ids == ["p1", "p2"]
    assert error.cause is cause
    assert error.details["cause"] == "NetworkFailure"


def test_configuration_error_suggestion():
    """Test valid values are listed in the suggestion."""
    error = ConfigurationError("bad mode", config_key="mode", invalid_value="x", valid_values=["a", "b"])

    assert error.suggestion == "Valid values for mode: a, b"


def test_all_errors_share_base():
    """Test every error derives from AdaptranError."""
    for error in [StorageFailure("disk full"), ParseFailure("bad"), ConfigurationError("bad")]:
        assert isinstance(error, AdaptranError)
        assert error.to_dict()["error_type"] == type(error).__name__
