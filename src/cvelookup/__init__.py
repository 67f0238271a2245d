"""cvelookup - resilient CVE lookups against the NVD registry."""

from .version import VERSION
from .enrichment import CVEService, VulnerabilityRecord, Severity

__version__ = VERSION

__all__ = ["CVEService", "VulnerabilityRecord", "Severity", "VERSION"]
