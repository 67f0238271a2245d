"""Attach CVE data to findings without ever failing the finding flow."""

from typing import Any, Dict, List, Optional

from .cve_service import CVEService
from .models import LookupResult, LookupStatus, Severity, VulnerabilityRecord
from ..utils.exceptions import CVELookupError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class EnrichmentEngine:
    """
    Enriches finding dictionaries that carry a ``cve_id``.

    A finding gains:
    - cve_data: record mapped for the finding/report flow
    - cvss_score: score of the CVE (None when unavailable)
    - cve_identifier: the CVE ID that was looked up
    - cve_data_available: whether data was found

    Lookup errors (bad format, NVD down after retries) are logged and the
    finding proceeds without CVE data.
    """

    def __init__(self, service: Optional[CVEService] = None):
        """
        Initialize enrichment engine.

        Args:
            service: Shared lookup service (default: built from config)
        """
        self.service = service or CVEService.from_config()

    @staticmethod
    def to_finding_data(record: VulnerabilityRecord) -> Dict[str, Any]:
        """Map a record onto the keys the finding flow expects."""
        return {
            "id": record.cve_id,
            "description": record.description,
            "cvss_score": record.cvss_score,
            "cvss_vector": record.cvss_vector,
            "severity": record.severity.value,
            "published_date": record.published.isoformat() if record.published else None,
            "references": list(record.references),
            "affected_products": list(record.affected_products),
        }

    def enrich_finding(self, finding: Dict[str, Any]) -> Dict[str, Any]:
        """
        Enrich a single finding in place.

        Args:
            finding: Finding dictionary, optionally with "cve_id"

        Returns:
            The same finding, enriched when possible
        """
        cve_id = finding.get("cve_id")
        if not cve_id:
            logger.debug(f"Skipping finding without CVE: {finding.get('title')}")
            return finding

        finding["cve_identifier"] = cve_id
        record = None

        try:
            logger.info(f"Looking up CVE data for: {cve_id}")
            record = self.service.lookup(cve_id)
        except CVELookupError as e:
            logger.error(f"CVE lookup failed for {cve_id}: {e.message}")
            logger.info("Proceeding without CVE data")

        return self._attach(finding, record)

    def _attach(
        self,
        finding: Dict[str, Any],
        record: Optional[VulnerabilityRecord]
    ) -> Dict[str, Any]:
        if record is None:
            finding["cve_data"] = None
            finding["cvss_score"] = None
            finding["cve_data_available"] = False
            return finding

        logger.info(
            f"CVE data found: {record.cve_id}, Score: {record.cvss_score}, "
            f"Severity: {record.severity.value}"
        )
        finding["cve_data"] = self.to_finding_data(record)
        finding["cvss_score"] = record.cvss_score
        finding["cve_data_available"] = True
        return finding

    def enrich_findings(self, findings: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Enrich all findings; CVEs are resolved with one batch lookup.

        Args:
            findings: List of finding dictionaries

        Returns:
            List of findings (same objects, enriched)
        """
        if not findings:
            return []

        cve_ids = [f["cve_id"] for f in findings if f.get("cve_id")]
        results: Dict[str, LookupResult] = {}
        if cve_ids:
            logger.info(f"Enriching {len(cve_ids)}/{len(findings)} findings with CVE data...")
            results = self.service.lookup_batch(cve_ids)

        enriched = []
        for finding in findings:
            cve_id = finding.get("cve_id")
            if not cve_id:
                enriched.append(finding)
                continue

            finding["cve_identifier"] = cve_id
            result = results.get(cve_id)
            if result is not None and result.status is LookupStatus.ERROR:
                logger.info(f"Proceeding without CVE data for {cve_id}: {result.error}")
            enriched.append(self._attach(finding, result.record if result else None))

        available = sum(1 for f in enriched if f.get("cve_data_available"))
        logger.info(f"Enrichment complete: {available} findings with CVE data")
        return enriched

    def get_enrichment_stats(self, findings: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Get enrichment statistics."""
        with_cve = [f for f in findings if f.get("cve_identifier")]
        enriched = [f for f in with_cve if f.get("cve_data_available")]
        scores = [f["cvss_score"] for f in enriched if f.get("cvss_score") is not None]

        severity_breakdown = {severity.value: 0 for severity in Severity}
        for finding in enriched:
            severity = finding["cve_data"]["severity"]
            severity_breakdown[severity] = severity_breakdown.get(severity, 0) + 1

        return {
            "total_findings": len(findings),
            "findings_with_cve": len(with_cve),
            "enriched_findings": len(enriched),
            "enrichment_rate": len(enriched) / len(with_cve) if with_cve else 0,
            "avg_cvss": sum(scores) / len(scores) if scores else None,
            "max_cvss": max(scores) if scores else None,
            "severity_breakdown": severity_breakdown,
        }
