"""NVD API v2.0 client for CVE data."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import unquote

import requests

from .cvss_calculator import CVSSCalculator
from .models import VulnerabilityRecord, NO_DESCRIPTION
from ..utils.config import NVD_API_URL
from ..utils.exceptions import NVDAPIError, NVDHTTPError, NVDResponseError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NVDClient:
    """
    NIST National Vulnerability Database (NVD) API v2.0 client.

    One call, one HTTP GET. Caching, rate limiting and retries belong to
    the lookup service; this class only talks to the API and turns its
    JSON into ``VulnerabilityRecord`` objects.

    Response classification:
    - 404: not found, returns []
    - other non-2xx: raises NVDHTTPError carrying the status
    - network failure: raises NVDHTTPError without status
    - 2xx: parsed records (an empty ``vulnerabilities`` array gives [])

    API key: Get free at https://nvd.nist.gov/developers/request-an-api-key
    """

    BASE_URL = NVD_API_URL

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize NVD client.

        Args:
            api_key: NVD API key (optional, higher quota tier)
            base_url: Override the API endpoint
            timeout: Per-request timeout in seconds
            session: HTTP session (default: new requests.Session)
        """
        self.api_key = api_key
        self.base_url = base_url or self.BASE_URL
        self.timeout = timeout
        self.session = session or requests.Session()

        if self.api_key:
            logger.info("NVD client initialized with API key")
        else:
            logger.info("NVD client initialized without API key")

    def fetch_cve(self, cve_id: str) -> List[VulnerabilityRecord]:
        """
        Fetch records for a normalized CVE ID.

        Args:
            cve_id: Uppercase CVE ID (e.g., "CVE-2021-44228")

        Returns:
            Parsed records; empty when the NVD does not know the CVE

        Raises:
            NVDHTTPError: Non-2xx (except 404) or network failure
            NVDResponseError: Payload is not the expected JSON
        """
        headers = {}
        if self.api_key:
            headers["apiKey"] = self.api_key

        logger.info(f"Fetching CVE data from NVD API: {cve_id}")

        try:
            response = self.session.get(
                self.base_url,
                params={"cveId": cve_id},
                headers=headers,
                timeout=self.timeout
            )
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NVDHTTPError(
                f"NVD API unreachable: {e}",
                details={"cve_id": cve_id}
            ) from e
        except requests.exceptions.RequestException as e:
            raise NVDAPIError(
                f"NVD API request failed: {e}",
                details={"cve_id": cve_id}
            ) from e

        if response.status_code == 404:
            logger.warning(f"CVE not found: {cve_id}")
            return []

        if not 200 <= response.status_code < 300:
            raise NVDHTTPError(
                f"NVD API error: {response.status_code} {response.reason or ''}".rstrip(),
                status_code=response.status_code,
                details={"cve_id": cve_id}
            )

        try:
            data = response.json()
        except ValueError as e:
            raise NVDResponseError(
                "NVD API returned invalid JSON",
                details={"cve_id": cve_id, "error": str(e)}
            ) from e

        records = self.parse_response(data)
        if not records:
            logger.warning(f"No vulnerability data found for CVE: {cve_id}")
        return records

    def parse_response(self, data: Any) -> List[VulnerabilityRecord]:
        """Parse a full NVD response body."""
        if not isinstance(data, dict):
            raise NVDResponseError("NVD API response is not a JSON object")

        vulnerabilities = data.get("vulnerabilities") or []
        if not isinstance(vulnerabilities, list):
            raise NVDResponseError("NVD API 'vulnerabilities' is not a list")

        records = []
        for vuln in vulnerabilities:
            cve_data = vuln.get("cve") if isinstance(vuln, dict) else None
            if not isinstance(cve_data, dict) or not cve_data.get("id"):
                logger.debug("Skipping vulnerability entry without CVE id")
                continue
            try:
                records.append(self._parse_cve(cve_data))
            except (AttributeError, TypeError, KeyError, ValueError) as e:
                raise NVDResponseError(
                    "NVD API returned a malformed CVE entry",
                    details={"cve_id": str(cve_data.get("id")), "error": str(e)}
                ) from e
        return records

    def _parse_cve(self, cve_data: Dict[str, Any]) -> VulnerabilityRecord:
        """Parse one CVE object from the NVD API response."""
        description = NO_DESCRIPTION
        for desc in cve_data.get("descriptions") or []:
            if desc.get("lang") == "en" and desc.get("value"):
                description = desc["value"]
                break

        score, severity, vector, version = CVSSCalculator.select_metric(
            cve_data.get("metrics")
        )

        references = tuple(
            ref["url"] for ref in cve_data.get("references") or []
            if isinstance(ref, dict) and ref.get("url")
        )

        return VulnerabilityRecord(
            cve_id=cve_data["id"].upper(),
            description=description,
            cvss_score=score,
            severity=severity,
            cvss_vector=vector,
            published=self._parse_timestamp(cve_data.get("published")),
            references=references,
            affected_products=tuple(self._extract_affected_products(cve_data)),
            cvss_version=version,
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        """NVD uses ISO-8601, usually without zone (e.g. 2021-12-10T10:15:09.143)."""
        if not value:
            return None
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except (TypeError, ValueError):
            logger.debug(f"Unparseable published timestamp: {value!r}")
            return None

    def _extract_affected_products(self, cve_data: Dict[str, Any]) -> List[str]:
        """Vendor/product(/version) names from vulnerable CPE matches, de-duplicated."""
        configurations = cve_data.get("configurations")
        if isinstance(configurations, dict):
            configurations = [configurations]

        products: List[str] = []
        seen = set()
        for config in configurations or []:
            if not isinstance(config, dict):
                continue
            for match in self._iter_cpe_matches(config.get("nodes") or []):
                if not match.get("vulnerable") or not match.get("criteria"):
                    continue
                product = self.parse_cpe(match["criteria"])
                if product and product not in seen:
                    seen.add(product)
                    products.append(product)
        return products

    @staticmethod
    def _iter_cpe_matches(nodes: Iterable[Any]) -> Iterable[Dict[str, Any]]:
        for node in nodes:
            if not isinstance(node, dict):
                continue
            for match in node.get("cpeMatch") or []:
                if isinstance(match, dict):
                    yield match

    @staticmethod
    def parse_cpe(cpe: str) -> Optional[str]:
        """
        Turn a CPE 2.3 string into a readable product name.

        cpe:2.3:part:vendor:product:version:update:... becomes
        "vendor product version"; the version is omitted when it is "*".
        """
        parts = NVDClient._split_cpe(cpe)
        if len(parts) < 5:
            logger.debug(f"Unparseable CPE: {cpe}")
            return None

        vendor, product = parts[3], parts[4]
        version = parts[5] if len(parts) > 5 and parts[5] else "*"

        def clean(field: str) -> str:
            return unquote(field).replace("_", " ")

        if version == "*":
            return f"{clean(vendor)} {clean(product)}"
        return f"{clean(vendor)} {clean(product)} {clean(version)}"

    @staticmethod
    def _split_cpe(cpe: str) -> List[str]:
        """Split on ':' honouring CPE backslash escapes (e.g. ``\\:``)."""
        parts, current, escaped = [], [], False
        for char in cpe:
            if escaped:
                current.append(char)
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == ":":
                parts.append("".join(current))
                current = []
            else:
                current.append(char)
        parts.append("".join(current))
        return parts

    def close(self) -> None:
        self.session.close()
