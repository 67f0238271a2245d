"""CVE lookup against the NVD: validation, caching, rate limiting, retries."""

from .models import Severity, VulnerabilityRecord, LookupStatus, LookupResult
from .cve_id import is_valid_cve_id, normalize_cve_id
from .cache_manager import CacheManager
from .rate_limiter import (
    RateLimiter,
    FixedWindowRateLimiter,
    SlidingWindowRateLimiter,
    create_rate_limiter,
)
from .retry import RetryPolicy
from .cvss_calculator import CVSSCalculator
from .nvd_client import NVDClient
from .cve_service import CVEService
from .enrichment_engine import EnrichmentEngine

__all__ = [
    "Severity",
    "VulnerabilityRecord",
    "LookupStatus",
    "LookupResult",
    "is_valid_cve_id",
    "normalize_cve_id",
    "CacheManager",
    "RateLimiter",
    "FixedWindowRateLimiter",
    "SlidingWindowRateLimiter",
    "create_rate_limiter",
    "RetryPolicy",
    "CVSSCalculator",
    "NVDClient",
    "CVEService",
    "EnrichmentEngine",
]
