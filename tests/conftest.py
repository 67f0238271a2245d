"""Shared fixtures for cvelookup tests."""

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


def make_cve(
    cve_id: str = "CVE-2021-44228",
    score: Optional[float] = 10.0,
    severity: Optional[str] = "CRITICAL",
    vector: str = "CVSS:3.1/AV:N/AC:L/PR:N/UI:N/S:C/C:H/I:H/A:H",
    metric_key: str = "cvssMetricV31",
    **extra: Any
) -> Dict[str, Any]:
    """One entry of the NVD ``vulnerabilities`` array."""
    cve: Dict[str, Any] = {
        "id": cve_id,
        "published": "2021-12-10T10:15:09.143",
        "descriptions": [
            {"lang": "es", "value": "Descripcion en espanol"},
            {"lang": "en", "value": "Apache Log4j2 JNDI features do not protect against attacker controlled LDAP."},
        ],
        "references": [
            {"url": "https://logging.apache.org/log4j/2.x/security.html", "source": "apache"},
            {"url": "https://www.cisa.gov/known-exploited-vulnerabilities-catalog"},
        ],
        "metrics": {},
    }
    if score is not None:
        cvss_data = {"baseScore": score, "vectorString": vector}
        if severity is not None:
            cvss_data["baseSeverity"] = severity
        cve["metrics"][metric_key] = [{"source": "nvd@nist.gov", "type": "Primary", "cvssData": cvss_data}]
    cve.update(extra)
    return {"cve": cve}


def make_payload(*vulnerabilities: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "resultsPerPage": len(vulnerabilities),
        "totalResults": len(vulnerabilities),
        "vulnerabilities": list(vulnerabilities),
    }


def make_response(status_code: int = 200, payload: Any = None, reason: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    if isinstance(payload, Exception):
        response.json.side_effect = payload
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def clean_env(monkeypatch):
    """Remove cvelookup/NVD environment variables."""
    import os

    for name in list(os.environ):
        if name.startswith("CVELOOKUP_") or name == "NVD_API_KEY":
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def nvd_cve():
    return make_cve


@pytest.fixture
def nvd_payload():
    return make_payload


@pytest.fixture
def nvd_response():
    return make_response
