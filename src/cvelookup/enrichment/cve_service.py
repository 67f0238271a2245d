"""CVE lookup service: validation, cache, rate gate and retries."""

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional

from .cache_manager import CacheManager
from .cve_id import normalize_cve_id
from .models import LookupResult, LookupStatus, VulnerabilityRecord
from .nvd_client import NVDClient
from .rate_limiter import DEFAULT_KEY, RateLimiter, create_rate_limiter
from .retry import RetryPolicy
from ..utils.config import Config
from ..utils.exceptions import CVELookupError, InvalidCVEIdError
from ..utils.logger import get_logger, PerformanceLogger

logger = get_logger(__name__)


class CVEService:
    """
    Resolves CVE identifiers against the NVD.

    Pipeline per lookup:
    1. Validate and normalize the identifier (no I/O)
    2. Return a cached record if present
    3. Take a rate limit slot (may block)
    4. Fetch through the retry policy; every attempt takes its own slot
    5. Cache found records; "not found" and errors are never cached

    One instance is meant to be shared by the whole process. Its cache and
    rate limiter are plain attributes, so tests build their own instance.
    """

    def __init__(
        self,
        client: Optional[NVDClient] = None,
        cache: Optional[CacheManager] = None,
        rate_limiter: Optional[RateLimiter] = None,
        retry_policy: Optional[RetryPolicy] = None,
        batch_workers: int = 3,
        single_flight: bool = False,
        rate_limit_key: str = DEFAULT_KEY
    ):
        """
        Initialize lookup service.

        Args:
            client: NVD API client
            cache: Record cache (default: 1-hour TTL)
            rate_limiter: Shared gate (default: 5 requests / 30s, fixed window)
            retry_policy: Backoff policy (default: 3 retries, 1s base delay)
            batch_workers: Threads used by lookup_batch
            single_flight: Share one fetch between concurrent lookups of
                the same uncached CVE
            rate_limit_key: Endpoint key on the rate limiter
        """
        self.client = client or NVDClient()
        self.cache = cache or CacheManager()
        self.rate_limiter = rate_limiter or create_rate_limiter()
        self.retry_policy = retry_policy or RetryPolicy()
        self.batch_workers = max(1, batch_workers)
        self.single_flight = single_flight
        self.rate_limit_key = rate_limit_key

        self._inflight: Dict[str, Future] = {}
        self._inflight_lock = threading.Lock()

        logger.info("CVE service initialized")

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "CVEService":
        """Build a service and its collaborators from configuration."""
        config = config or Config()

        client = NVDClient(
            api_key=config.nvd.api_key,
            base_url=config.nvd.base_url,
            timeout=config.nvd.timeout,
        )
        cache = CacheManager(
            ttl_seconds=config.cache.ttl_seconds,
            check_period_seconds=config.cache.check_period_seconds,
        )
        rate_limiter = create_rate_limiter(
            config.nvd.rate_limit_strategy,
            max_requests=config.nvd.effective_rate_limit,
            window_seconds=config.nvd.window_seconds,
        )
        retry_policy = RetryPolicy(
            max_retries=config.retry.max_retries,
            base_delay=config.retry.base_delay_seconds,
        )
        return cls(
            client=client,
            cache=cache,
            rate_limiter=rate_limiter,
            retry_policy=retry_policy,
            batch_workers=config.lookup.batch_workers,
            single_flight=config.lookup.single_flight,
        )

    def lookup(self, cve_id: str) -> Optional[VulnerabilityRecord]:
        """
        Look up one CVE.

        Args:
            cve_id: CVE ID, any case (e.g., "cve-2021-44228")

        Returns:
            The record, or None if the NVD has no such CVE

        Raises:
            InvalidCVEIdError: Bad format; raised before any network call
            NVDAPIError: Remote failure that survived the retry policy
        """
        normalized = normalize_cve_id(cve_id)

        cached = self.cache.get(normalized)
        if cached is not None:
            logger.debug(f"Cache hit for CVE: {normalized}")
            return cached

        if self.single_flight:
            return self._fetch_single_flight(normalized)
        return self._fetch_and_cache(normalized)

    def lookup_batch(
        self,
        cve_ids: Iterable[str],
        max_workers: Optional[int] = None
    ) -> Dict[str, LookupResult]:
        """
        Look up several CVEs; one failure never aborts the others.

        Args:
            cve_ids: Identifiers as given by the caller
            max_workers: Worker threads (default: batch_workers; 1 = sequential)

        Returns:
            Result per input identifier, keyed as given, in input order
        """
        ids: List[str] = list(dict.fromkeys(cve_ids))
        if not ids:
            return {}

        workers = min(max_workers or self.batch_workers, len(ids))

        with PerformanceLogger(logger, f"batch lookup of {len(ids)} CVEs"):
            if workers == 1:
                outcomes = [self._lookup_result(cve_id) for cve_id in ids]
            else:
                with ThreadPoolExecutor(
                    max_workers=workers,
                    thread_name_prefix="cvelookup"
                ) as executor:
                    outcomes = list(executor.map(self._lookup_result, ids))

        results = {result.cve_id: result for result in outcomes}

        found = sum(1 for r in outcomes if r.status is LookupStatus.FOUND)
        missing = sum(1 for r in outcomes if r.status is LookupStatus.NOT_FOUND)
        failed = len(outcomes) - found - missing
        logger.info(
            f"Batch lookup: {found} found, {missing} not found, {failed} failed"
        )
        return results

    def clear_cache(self) -> int:
        """Drop every cached record (manual refresh)."""
        return self.cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def close(self) -> None:
        """Stop the cache sweeper and release the HTTP session."""
        self.cache.close()
        self.client.close()

    def __enter__(self) -> "CVEService":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _lookup_result(self, cve_id: str) -> LookupResult:
        try:
            record = self.lookup(cve_id)
        except InvalidCVEIdError as e:
            logger.warning(f"Skipping invalid CVE ID: {cve_id}")
            return LookupResult(cve_id, LookupStatus.ERROR, error=e.message)
        except CVELookupError as e:
            logger.error(f"Failed to lookup CVE {cve_id}: {e.message}")
            return LookupResult(cve_id, LookupStatus.ERROR, error=e.message)
        except Exception as e:
            logger.exception(f"Unexpected error looking up CVE {cve_id}")
            return LookupResult(cve_id, LookupStatus.ERROR, error=str(e))

        if record is None:
            return LookupResult(cve_id, LookupStatus.NOT_FOUND)
        return LookupResult(cve_id, LookupStatus.FOUND, record=record)

    def _fetch_once(self, cve_id: str) -> List[VulnerabilityRecord]:
        self.rate_limiter.acquire(self.rate_limit_key)
        return self.client.fetch_cve(cve_id)

    def _fetch_and_cache(self, cve_id: str) -> Optional[VulnerabilityRecord]:
        records = self.retry_policy.execute(
            self._fetch_once, cve_id, description=f"CVE lookup for {cve_id}"
        )
        record = self._select_record(cve_id, records)

        if record is not None:
            self.cache.set(cve_id, record)
            logger.info(f"Successfully fetched and cached CVE: {cve_id}")
        return record

    def _fetch_single_flight(self, cve_id: str) -> Optional[VulnerabilityRecord]:
        with self._inflight_lock:
            future = self._inflight.get(cve_id)
            leader = future is None
            if leader:
                future = Future()
                self._inflight[cve_id] = future

        if not leader:
            logger.debug(f"Joining in-flight lookup for {cve_id}")
            return future.result()

        try:
            record = self._fetch_and_cache(cve_id)
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(record)
            return record
        finally:
            with self._inflight_lock:
                self._inflight.pop(cve_id, None)

    @staticmethod
    def _select_record(
        cve_id: str,
        records: List[VulnerabilityRecord]
    ) -> Optional[VulnerabilityRecord]:
        if not records:
            return None
        for record in records:
            if record.cve_id == cve_id:
                return record
        return records[0]
