"""Integration tests for the lookup pipeline against a mocked NVD."""

from unittest.mock import MagicMock

import pytest
import requests

from cvelookup.enrichment.cache_manager import CacheManager
from cvelookup.enrichment.cve_service import CVEService
from cvelookup.enrichment.enrichment_engine import EnrichmentEngine
from cvelookup.enrichment.models import LookupStatus, Severity
from cvelookup.enrichment.nvd_client import NVDClient
from cvelookup.enrichment.rate_limiter import SlidingWindowRateLimiter
from cvelookup.enrichment.retry import RetryPolicy
from conftest import make_cve, make_payload, make_response


@pytest.fixture
def nvd(fake_clock):
    """Session that answers like the NVD for a few well-known CVEs."""
    catalog = {
        "CVE-2021-44228": make_cve("CVE-2021-44228", configurations=[{"nodes": [{"cpeMatch": [
            {"vulnerable": True, "criteria": "cpe:2.3:a:apache:log4j:*:*:*:*:*:*:*:*"},
        ]}]}]),
        "CVE-2014-0160": make_cve(
            "CVE-2014-0160", score=7.5, severity=None, metric_key="cvssMetricV2",
            vector="AV:N/AC:L/Au:N/C:P/I:N/A:N"
        ),
        "CVE-2017-5638": make_cve("CVE-2017-5638", score=None),
    }
    flaky = {"CVE-2017-5638": 1}

    def respond(url, params, headers, timeout):
        cve_id = params["cveId"]
        if cve_id == "CVE-2099-00404":
            return make_response(404, reason="Not Found")
        if cve_id == "CVE-2099-00503":
            return make_response(503, reason="Service Unavailable")
        if flaky.get(cve_id):
            flaky[cve_id] -= 1
            return make_response(503, reason="Service Unavailable")
        if cve_id not in catalog:
            return make_response(200, make_payload())
        return make_response(200, make_payload(catalog[cve_id]))

    session = MagicMock(spec=requests.Session)
    session.get.side_effect = respond
    return session


@pytest.fixture
def service(nvd, fake_clock):
    service = CVEService(
        client=NVDClient(session=nvd),
        cache=CacheManager(check_period_seconds=0, clock=fake_clock),
        rate_limiter=SlidingWindowRateLimiter(
            max_requests=2, window_seconds=30.0, clock=fake_clock, sleep=fake_clock.sleep
        ),
        retry_policy=RetryPolicy(sleep=fake_clock.sleep),
        batch_workers=1,
    )
    yield service
    service.close()


def test_batch_lookup_end_to_end(service, nvd, fake_clock):
    results = service.lookup_batch(
        ["CVE-2021-44228", "CVE-2014-0160", "CVE-2017-5638", "CVE-2099-00001"]
    )

    log4shell = results["CVE-2021-44228"].record
    assert log4shell.severity is Severity.CRITICAL
    assert log4shell.affected_products == ("apache log4j",)

    heartbleed = results["CVE-2014-0160"].record
    assert heartbleed.cvss_version == "2.0"
    assert heartbleed.severity is Severity.HIGH

    struts = results["CVE-2017-5638"].record
    assert struts.severity is Severity.INFO
    assert struts.cvss_vector == "N/A"

    assert results["CVE-2099-00001"].status is LookupStatus.NOT_FOUND

    # five requests (one retry) at 2 per 30s never exceed the rolling ceiling
    assert nvd.get.call_count == 5
    assert sum(fake_clock.sleeps) >= 60.0


def test_enrichment_reuses_cached_batch(service, nvd):
    engine = EnrichmentEngine(service=service)
    findings = [
        {"title": "JNDI lookup", "cve_id": "CVE-2021-44228"},
        {"title": "Heartbeat over-read", "cve_id": "cve-2014-0160"},
        {"title": "SQL injection"},
    ]

    enriched = engine.enrich_findings(findings)

    assert nvd.get.call_count == 2
    assert enriched[0]["cve_data"]["severity"] == "CRITICAL"
    assert enriched[1]["cve_data"]["id"] == "CVE-2014-0160"
    assert "cve_data" not in enriched[2]

    stats = engine.get_enrichment_stats(enriched)
    assert stats["enriched_findings"] == 2
    assert stats["max_cvss"] == 10.0


def test_enrichment_does_not_refetch_missing_cve(service, nvd):
    engine = EnrichmentEngine(service=service)

    [finding] = engine.enrich_findings([{"title": "Unknown", "cve_id": "CVE-2099-00404"}])

    assert finding["cve_data_available"] is False
    assert nvd.get.call_count == 1


def test_enrichment_does_not_retry_failed_cve_twice(service, nvd, fake_clock):
    engine = EnrichmentEngine(service=service)

    [finding] = engine.enrich_findings([{"title": "Flaky", "cve_id": "CVE-2099-00503"}])

    assert finding["cve_identifier"] == "CVE-2099-00503"
    assert finding["cve_data_available"] is False
    assert nvd.get.call_count == 4
    # third attempt waits for the t=1000 slot to leave the 30s window
    assert fake_clock.sleeps == [1.0, 2.0, 27.0, 4.0]
