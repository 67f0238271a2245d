"""Unit tests for CVE identifier validation."""

import pytest

from cvelookup.enrichment.cve_id import is_valid_cve_id, normalize_cve_id
from cvelookup.utils.exceptions import InvalidCVEIdError


@pytest.mark.parametrize("cve_id", [
    "CVE-2021-44228",
    "CVE-1999-0001",
    "CVE-2024-1234567",
    "cve-2014-0160",
    "Cve-2017-5638",
])
def test_valid_ids_are_accepted(cve_id):
    assert is_valid_cve_id(cve_id)
    assert normalize_cve_id(cve_id) == cve_id.upper()


@pytest.mark.parametrize("cve_id", [
    "not-a-cve",
    "",
    "CVE-21-44228",
    "CVE-2021-123",
    "CVE-2021-44228\n",
    " CVE-2021-44228",
    "CVE-2021-44228-extra",
    "CWE-2021-44228",
    "CVE_2021_44228",
])
def test_invalid_ids_are_rejected(cve_id):
    assert not is_valid_cve_id(cve_id)
    with pytest.raises(InvalidCVEIdError):
        normalize_cve_id(cve_id)


def test_non_string_is_rejected():
    assert not is_valid_cve_id(None)
    with pytest.raises(InvalidCVEIdError):
        normalize_cve_id(20214428)
