"""Domain records returned by CVE lookups."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class Severity(str, Enum):
    """Severity tier of a vulnerability."""

    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    INFO = "INFO"

    @classmethod
    def normalize(cls, value: Optional[str]) -> "Severity":
        """Map any severity string to a tier; unknown or missing -> INFO."""
        if not value:
            return cls.INFO
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.INFO


NO_DESCRIPTION = "No description available"
NO_VECTOR = "N/A"


@dataclass(frozen=True)
class VulnerabilityRecord:
    """Normalized view of one CVE as published by the NVD."""

    cve_id: str
    description: str = NO_DESCRIPTION
    cvss_score: float = 0.0
    severity: Severity = Severity.INFO
    cvss_vector: str = NO_VECTOR
    published: Optional[datetime] = None
    references: Tuple[str, ...] = field(default_factory=tuple)
    affected_products: Tuple[str, ...] = field(default_factory=tuple)
    cvss_version: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly representation."""
        return {
            "cve_id": self.cve_id,
            "description": self.description,
            "cvss_score": self.cvss_score,
            "severity": self.severity.value,
            "cvss_vector": self.cvss_vector,
            "cvss_version": self.cvss_version,
            "published": self.published.isoformat() if self.published else None,
            "references": list(self.references),
            "affected_products": list(self.affected_products),
        }


class LookupStatus(str, Enum):
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass
class LookupResult:
    """Outcome of one identifier inside a batch lookup."""

    cve_id: str
    status: LookupStatus
    record: Optional[VulnerabilityRecord] = None
    error: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cve_id": self.cve_id,
            "status": self.status.value,
            "record": self.record.to_dict() if self.record else None,
            "error": self.error,
        }
