"""
Claim normalization and validation.

Turns raw tabular rows (column header -> text) into ``ClaimRecord`` objects
and checks every record against the claim schema. Validation never raises:
each failure becomes a ``ValidationIssue`` attached to the row, and a claim
is valid exactly when it has no issues.
"""

import logging
import math
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

import pandas as pd
from pydantic import BaseModel, Field, ValidationError, field_validator

from .codes import BILLING_CLASSES
from .models import ClaimRecord, ValidationIssue

logger = logging.getLogger(__name__)

# Source column header -> claim field
CSV_COLUMNS: Dict[str, str] = {
    "Claim ID": "claim_id",
    "Subscriber ID": "subscriber_id",
    "Member Sequence": "member_sequence",
    "Claim Status": "claim_status",
    "Billed": "billed",
    "Allowed": "allowed",
    "Paid": "paid",
    "Payment Status Date": "payment_status_date",
    "Service Date": "service_date",
    "Received Date": "received_date",
    "Entry Date": "entry_date",
    "Processed Date": "processed_date",
    "Paid Date": "paid_date",
    "Payment Status": "payment_status",
    "Group Name": "group_name",
    "Group ID": "group_id",
    "Division Name": "division_name",
    "Division ID": "division_id",
    "Plan": "plan_name",
    "Plan ID": "plan_id",
    "Place of Service": "place_of_service",
    "Claim Type": "claim_type",
    "Procedure Code": "procedure_code",
    "Member Gender": "member_gender",
    "Provider ID": "provider_id",
    "Provider Name": "provider_name",
}

NUMBER_FIELDS = frozenset({"member_sequence", "billed", "allowed", "paid"})

DATE_PATTERN = r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$"

_NUMBER_PREFIX_RE = re.compile(r"[+-]?(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?")
_PROVIDER_ID_RE = re.compile(r"^[0-9]{10}$")


class ClaimSchema(BaseModel):
    """
    Structural rules for a claim.

    Field order defines the order in which issues are reported.
    """

    claim_id: str = Field(..., min_length=1)
    subscriber_id: str = Field(..., min_length=1)
    member_sequence: int = Field(..., ge=0)
    claim_status: str = Field(..., min_length=1)
    billed: float = Field(..., ge=0, allow_inf_nan=False)
    allowed: float = Field(..., ge=0, allow_inf_nan=False)
    paid: float = Field(..., ge=0, allow_inf_nan=False)
    payment_status_date: str = Field(..., pattern=DATE_PATTERN)
    service_date: str = Field(..., pattern=DATE_PATTERN)
    received_date: str = Field(..., pattern=DATE_PATTERN)
    entry_date: str = Field(..., pattern=DATE_PATTERN)
    processed_date: str = Field(..., pattern=DATE_PATTERN)
    paid_date: str = Field(..., pattern=DATE_PATTERN)
    payment_status: str = Field(..., min_length=1)
    group_name: str
    group_id: str
    division_name: str = Field(..., min_length=1)
    division_id: str = Field(..., min_length=1)
    plan_name: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)
    place_of_service: str = Field(..., min_length=1)
    claim_type: str = Field(..., min_length=1)
    procedure_code: str = Field(..., min_length=1)
    member_gender: str = Field(..., min_length=1)
    provider_id: str
    provider_name: str = Field(..., min_length=1)

    @field_validator("claim_type")
    @classmethod
    def validate_claim_type(cls, v: str) -> str:
        if v.strip().lower() not in BILLING_CLASSES:
            raise ValueError("Claim Type must be Professional or Institutional.")
        return v

    @field_validator("provider_id")
    @classmethod
    def validate_provider_id(cls, v: str) -> str:
        if not _PROVIDER_ID_RE.match(v):
            raise ValueError("Provider ID must be a 10-digit NPI.")
        return v


SCHEMA_FIELDS = tuple(ClaimSchema.model_fields)


def parse_number(value: Any) -> float:
    """
    Parse a numeric cell such as "1,250.00".

    Thousands separators and surrounding whitespace are ignored and a leading
    number is accepted ("12abc" -> 12.0). Anything unparseable or non-finite
    becomes NaN, never 0.
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else math.nan
    if value is None:
        return math.nan

    normalized = str(value).replace(",", "").strip()
    match = _NUMBER_PREFIX_RE.match(normalized)
    if not match:
        return math.nan
    parsed = float(match.group(0))
    return parsed if math.isfinite(parsed) else math.nan


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and math.isnan(value):
        return ""
    return str(value).strip()


def normalize_row(row: Mapping[str, Any], row_index: int) -> ClaimRecord:
    """
    Convert one raw row into a claim record.

    Args:
        row: Column header -> raw cell value
        row_index: 0-based position of the row in the source

    Returns:
        ClaimRecord with trimmed text and parsed numbers (is_valid not yet checked)
    """
    values: Dict[str, Any] = {}
    for column, field in CSV_COLUMNS.items():
        raw = row.get(column)
        values[field] = parse_number(raw) if field in NUMBER_FIELDS else _text(raw)

    return ClaimRecord(
        id=values["claim_id"] or f"row-{row_index + 1}",
        row_index=row_index + 1,
        is_valid=True,
        **values,
    )


def _issue_message(error: Mapping[str, Any]) -> str:
    if error.get("type") == "value_error" and "error" in error.get("ctx", {}):
        return str(error["ctx"]["error"])
    return error["msg"]


def validate_claim(claim: ClaimRecord) -> List[ValidationIssue]:
    """
    Check a claim against the schema.

    Field issues are reported in schema order; the group id / group name rule
    is always evaluated and reported last, against ``group_id``.

    Args:
        claim: Claim to check

    Returns:
        List of issues (empty when the claim is valid)
    """
    issues: List[ValidationIssue] = []
    try:
        ClaimSchema.model_validate(claim.model_dump(include=set(SCHEMA_FIELDS)))
    except ValidationError as e:
        for error in e.errors():
            loc = error.get("loc") or ()
            issues.append(ValidationIssue(
                row_index=claim.row_index,
                field=".".join(str(part) for part in loc) or "unknown",
                message=_issue_message(error),
            ))

    if not claim.group_id.strip() and not claim.group_name.strip():
        issues.append(ValidationIssue(
            row_index=claim.row_index,
            field="group_id",
            message="Group ID or Group Name is required.",
        ))

    return issues


def load_claims(rows: Iterable[Mapping[str, Any]]) -> Tuple[List[ClaimRecord], Dict[str, List[ValidationIssue]]]:
    """
    Normalize and validate a batch of rows.

    Returns:
        Tuple of (claims, issues keyed by claim row id)
    """
    claims: List[ClaimRecord] = []
    row_issues: Dict[str, List[ValidationIssue]] = {}

    for index, row in enumerate(rows):
        claim = normalize_row(row, index)
        issues = validate_claim(claim)
        claim.is_valid = not issues
        if issues:
            row_issues[claim.id] = issues
        claims.append(claim)

    logger.debug("Loaded %d claims, %d with validation issues", len(claims), len(row_issues))
    return claims, row_issues


def read_claim_rows(source: Union[str, Path, Any]) -> List[Dict[str, str]]:
    """
    Read a claims CSV into raw rows.

    Every cell is read as text; empty cells stay empty strings and blank
    lines are skipped.
    """
    df = pd.read_csv(source, dtype=str, keep_default_na=False, skip_blank_lines=True)
    df.columns = [str(column).strip() for column in df.columns]
    missing = [column for column in CSV_COLUMNS if column not in df.columns]
    if missing:
        logger.warning("Claims file is missing columns: %s", ", ".join(missing))
    return df.to_dict(orient="records")


def read_claims_csv(source: Union[str, Path, Any]) -> Tuple[List[ClaimRecord], Dict[str, List[ValidationIssue]]]:
    """Read, normalize and validate a claims CSV."""
    return load_claims(read_claim_rows(source))
