"""Heuristic fraud and signature checks shared by the form and the submission API.

These are pattern matches against known placeholder and test values, not a
statistical model. The server runs :func:`is_suspicious` over the whole payload
independently of whatever the client already checked.
"""

import re
from typing import Any, Mapping, Optional

# Placeholder values people type when they are not filling a form in earnest.
PLACEHOLDER_PATTERNS = [
    re.compile(r"test", re.IGNORECASE),
    re.compile(r"demo", re.IGNORECASE),
    re.compile(r"fake", re.IGNORECASE),
    re.compile(r"john\s+doe", re.IGNORECASE),
    re.compile(r"123 Main St", re.IGNORECASE),
    re.compile(r"555-555-5555"),
]

SEQUENTIAL_DIGIT_PATTERNS = [
    re.compile(r"123456789"),
    re.compile(r"987654321"),
    re.compile(r"000000000"),
]

# Fields checked against each detector by the stepped form.
PLACEHOLDER_FIELDS = ("fullName", "phone", "address")
SEQUENTIAL_FIELDS = ("ssn", "routingNumber", "accountNumber")

_NON_DIGIT_RE = re.compile(r"\D")


def find_placeholder(value: str) -> Optional[str]:
    """Return the placeholder text matched in ``value``, or None."""
    for pattern in PLACEHOLDER_PATTERNS:
        if match := pattern.search(value or ""):
            return match.group(0)
    return None


def is_sequential_digits(value: str) -> bool:
    """True for obviously fabricated identifiers (123456789, 987654321, zeros).

    Separators are ignored, so ``000-00-0000`` counts as all zeros.
    """
    digits = _NON_DIGIT_RE.sub("", value or "")
    if not digits:
        return False
    if set(digits) == {"0"}:
        return True
    return any(p.search(digits) for p in SEQUENTIAL_DIGIT_PATTERNS)


def _flatten(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def is_suspicious(payload: Mapping[str, Any]) -> bool:
    """Scan every payload value, joined with spaces, for placeholder data."""
    joined = " ".join(_flatten(v) for v in payload.values())
    if find_placeholder(joined):
        return True
    return any(p.search(joined) for p in SEQUENTIAL_DIGIT_PATTERNS)


def signature_matches(signature: Optional[str], full_name: Optional[str]) -> bool:
    """Typed signature equals the full name, ignoring case and outer spaces."""
    if not signature or not full_name:
        return False
    return signature.strip().lower() == full_name.strip().lower()
