"""Exception hierarchy for CVE lookups."""

from typing import Optional, Dict, Any


class CVELookupError(Exception):
    """Base exception for all cvelookup errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        suggestion: Optional[str] = None
    ):
        """
        Initialize exception with context.

        Args:
            message: Error message
            details: Additional error details
            suggestion: Suggested fix for the user
        """
        self.message = message
        self.details = details or {}
        self.suggestion = suggestion
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format complete error message."""
        parts = [self.message]

        if self.details:
            parts.append("\nDetails:")
            for key, value in self.details.items():
                parts.append(f"  {key}: {value}")

        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")

        return "\n".join(parts)


# Configuration errors
class ConfigError(CVELookupError):
    """Configuration-related error."""
    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration value."""
    pass


class MissingConfigError(ConfigError):
    """Required configuration is missing."""
    pass


# Lookup errors
class EnrichmentError(CVELookupError):
    """CVE lookup error."""
    pass


class InvalidCVEIdError(EnrichmentError):
    """Identifier does not look like CVE-YYYY-NNNN. Never retried."""

    def __init__(self, cve_id: str):
        self.cve_id = cve_id
        super().__init__(
            f"Invalid CVE ID format: {cve_id}",
            suggestion="Use the form CVE-YYYY-NNNN (e.g., CVE-2021-44228)"
        )


class NVDAPIError(EnrichmentError):
    """NVD API error that reached the caller."""
    pass


# 429 rate limited, 500 server error, 503 unavailable
RETRYABLE_STATUS_CODES = frozenset({429, 500, 503})


class NVDHTTPError(NVDAPIError):
    """
    Non-2xx answer (other than 404) or a network failure.

    ``status_code`` is None when no response was received at all; those
    are treated like "service unavailable" and retried.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.status_code = status_code
        details = dict(details or {})
        if status_code is not None:
            details.setdefault("status", status_code)
        super().__init__(message, details=details)

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code in RETRYABLE_STATUS_CODES


class NVDResponseError(NVDAPIError):
    """2xx answer whose payload could not be understood."""
    pass
