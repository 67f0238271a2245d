"""Unit tests for exception handling."""

import pytest

from cvelookup.utils.exceptions import (
    CVELookupError, ConfigError, EnrichmentError, InvalidConfigError,
    InvalidCVEIdError, NVDAPIError, NVDHTTPError, NVDResponseError
)


def test_base_exception():
    """Test base exception."""
    error = CVELookupError(
        "Test error",
        details={"key": "value"},
        suggestion="Try this fix"
    )

    message = str(error)
    assert "Test error" in message
    assert "key: value" in message
    assert "Try this fix" in message


def test_config_error():
    """Test config error."""
    error = InvalidConfigError(
        "Invalid timeout",
        suggestion="Set timeout > 0"
    )

    assert isinstance(error, ConfigError)
    assert "Invalid timeout" in str(error)
    assert "Set timeout > 0" in str(error)


def test_invalid_cve_id_error_carries_identifier():
    error = InvalidCVEIdError("not-a-cve")

    assert isinstance(error, EnrichmentError)
    assert error.cve_id == "not-a-cve"
    assert "Invalid CVE ID format: not-a-cve" in str(error)
    assert error.suggestion


@pytest.mark.parametrize("status", [429, 500, 503])
def test_http_error_retryable_statuses(status):
    error = NVDHTTPError("boom", status_code=status)

    assert error.retryable
    assert f"status: {status}" in str(error)


@pytest.mark.parametrize("status", [400, 401, 403, 502])
def test_http_error_non_retryable_statuses(status):
    assert not NVDHTTPError("boom", status_code=status).retryable


def test_network_error_is_retryable():
    """No status means no response at all: treated as service unavailable."""
    error = NVDHTTPError("connection refused")

    assert error.status_code is None
    assert error.retryable


def test_response_error_is_fatal_api_error():
    error = NVDResponseError("bad json")

    assert isinstance(error, NVDAPIError)
    assert not isinstance(error, NVDHTTPError)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
