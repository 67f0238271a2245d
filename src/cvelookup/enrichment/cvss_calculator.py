"""CVSS metric selection and severity banding."""

from typing import Any, Dict, Optional, Tuple

from .models import Severity, NO_VECTOR
from ..utils.logger import get_logger

logger = get_logger(__name__)


# NVD metric keys, newest scoring standard first
CVSS_METRIC_KEYS: Tuple[Tuple[str, str], ...] = (
    ("cvssMetricV40", "4.0"),
    ("cvssMetricV31", "3.1"),
    ("cvssMetricV30", "3.0"),
    ("cvssMetricV2", "2.0"),
)


class CVSSCalculator:
    """Pick the newest CVSS metric present and derive its severity tier."""

    @staticmethod
    def severity_from_score(score: Optional[float]) -> Severity:
        """
        Standard CVSS v3 qualitative bands.

        Args:
            score: Base score (0-10)

        Returns:
            Severity tier (INFO for None or 0.0)
        """
        if score is None or score <= 0:
            return Severity.INFO
        if score >= 9.0:
            return Severity.CRITICAL
        if score >= 7.0:
            return Severity.HIGH
        if score >= 4.0:
            return Severity.MEDIUM
        return Severity.LOW

    @staticmethod
    def _primary_entry(entries: Any) -> Optional[Dict[str, Any]]:
        """NVD lists the Primary source first, but not always; prefer it."""
        if not isinstance(entries, list) or not entries:
            return None
        for entry in entries:
            if isinstance(entry, dict) and entry.get("type") == "Primary":
                return entry
        first = entries[0]
        return first if isinstance(first, dict) else None

    @classmethod
    def select_metric(
        cls,
        metrics: Optional[Dict[str, Any]]
    ) -> Tuple[float, Severity, str, Optional[str]]:
        """
        Extract score, severity, vector and version from an NVD metrics object.

        Args:
            metrics: The ``metrics`` object of a CVE item

        Returns:
            (score, severity, vector, version); unscored entries yield
            (0.0, INFO, "N/A", None)
        """
        if not isinstance(metrics, dict):
            return 0.0, Severity.INFO, NO_VECTOR, None

        for key, version in CVSS_METRIC_KEYS:
            entry = cls._primary_entry(metrics.get(key))
            if entry is None:
                continue

            cvss_data = entry.get("cvssData") or {}
            score = cvss_data.get("baseScore")
            try:
                score = float(score) if score is not None else None
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric baseScore in {key}: {score!r}")
                score = None

            # v2 keeps baseSeverity beside cvssData rather than inside it
            raw_severity = cvss_data.get("baseSeverity") or entry.get("baseSeverity")
            if raw_severity:
                severity = Severity.normalize(raw_severity)
            else:
                severity = cls.severity_from_score(score)

            vector = cvss_data.get("vectorString") or NO_VECTOR
            return (score if score is not None else 0.0), severity, vector, version

        return 0.0, Severity.INFO, NO_VECTOR, None

