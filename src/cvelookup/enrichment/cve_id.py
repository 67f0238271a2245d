"""CVE identifier validation."""

import re

from ..utils.exceptions import InvalidCVEIdError

CVE_ID_PATTERN = re.compile(r"CVE-\d{4}-\d{4,}", re.IGNORECASE | re.ASCII)


def is_valid_cve_id(cve_id: str) -> bool:
    """Check CVE-YYYY-NNNN+ format (case-insensitive)."""
    return isinstance(cve_id, str) and CVE_ID_PATTERN.fullmatch(cve_id) is not None


def normalize_cve_id(cve_id: str) -> str:
    """
    Validate and uppercase a CVE identifier.

    Surrounding whitespace is not accepted; callers pass identifiers
    exactly as stored on the finding.

    Raises:
        InvalidCVEIdError: If the identifier does not match the format
    """
    if not is_valid_cve_id(cve_id):
        raise InvalidCVEIdError(str(cve_id))
    return cve_id.upper()
