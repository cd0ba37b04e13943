"""
Claim code tables and derived-field helpers.

This module maps free-text claim attributes onto the codes used in
Transparency-in-Coverage machine-readable files:

- Claim type -> billing class (professional / institutional)
- Place of service label -> CMS place of service code
- Procedure code -> billing code type (CPT / HCPCS)
"""

import hashlib
import math
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional

# Place of service label (lowercased) -> service code
# Only professional claims carry a service code into MRF output.
SERVICE_CODE_MAP: Dict[str, str] = {
    "inpatient hospital": "21",
    "outpatient hospital": "22",
    "emergency room - hospital": "23",
    "ambulatory surgical center": "24",
    "urgent care": "20",
    "office": "11",
}

# Sentinel for places of service missing from the table
UNMAPPED_SERVICE_CODE = "99"

# Claim status values (lowercased) that mark a claim as denied
DENIED_STATUSES = frozenset({"denied", "reject", "rejected"})

BILLING_CLASSES = ("professional", "institutional")

UNKNOWN_CUSTOMER = "unknown"

_CENT = Decimal("0.01")
_LETTER_RE = re.compile(r"[A-Za-z]")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_LEADING_INT_RE = re.compile(r"\s*([+-]?[0-9]+)")


def get_billing_class(claim_type: Optional[str]) -> str:
    """Return 'professional' for professional claims, otherwise 'institutional'."""
    return "professional" if (claim_type or "").strip().lower() == "professional" else "institutional"


def get_service_code(place_of_service: Optional[str]) -> str:
    """
    Map a place of service label to its service code.

    Args:
        place_of_service: Label such as "Office" or "Urgent Care"

    Returns:
        Two-digit service code, or "99" when the label is not in the table
    """
    normalized = (place_of_service or "").strip().lower()
    return SERVICE_CODE_MAP.get(normalized, UNMAPPED_SERVICE_CODE)


def get_claim_service_code(claim_type: Optional[str], place_of_service: Optional[str]) -> Optional[str]:
    """Service code for professional claims; institutional claims have none."""
    if get_billing_class(claim_type) != "professional":
        return None
    return get_service_code(place_of_service)


def get_billing_code_type(procedure_code: str) -> str:
    """HCPCS codes contain a letter (e.g. J1100); pure numeric codes are CPT."""
    return "HCPCS" if _LETTER_RE.search(procedure_code or "") else "CPT"


def is_denied_status(status: Optional[str]) -> bool:
    return (status or "").strip().lower() in DENIED_STATUSES


def get_customer_id(group_id: Optional[str], group_name: Optional[str]) -> str:
    """Customer identity: group id, else group name, else 'unknown'."""
    return (group_id or "").strip() or (group_name or "").strip() or UNKNOWN_CUSTOMER


def round_currency(value: float) -> float:
    """
    Round a currency amount to cents, half away from zero.

    The exact binary value of the float is rounded, which matches standard
    fixed-point formatting. Non-finite values round to 0.
    """
    if value is None or not math.isfinite(value):
        return 0.0
    return float(Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP))


def parse_provider_npi(provider_id: Optional[str]) -> Optional[int]:
    """Parse the leading integer of a provider id, or None when there is none."""
    match = _LEADING_INT_RE.match(provider_id or "")
    if not match:
        return None
    return int(match.group(1))


def slugify(value: Optional[str]) -> str:
    """
    Make a filesystem-safe slug.

    Lowercases, collapses runs of non-alphanumeric characters to a single
    hyphen and trims hyphens from both ends. Empty results become "unknown".

    >>> slugify("Alpha Group!!")
    'alpha-group'
    """
    trimmed = (value or "").strip().lower()
    slug = _NON_ALNUM_RE.sub("-", trimmed).strip("-")
    return slug or "unknown"


def disambiguate_key(key: str, customer_id: str) -> str:
    """
    Suffix a customer key with a short digest of the customer id.

    Used when two distinct customer ids slug to the same key, e.g.
    "Alpha Group" and "ALPHA GROUP".
    """
    digest = hashlib.sha1(customer_id.encode("utf-8")).hexdigest()[:8]
    return f"{key}-{digest}"
