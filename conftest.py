"""Pytest configuration and fixtures."""

from pathlib import Path

import pytest

from tic_mrf.models import ClaimRecord
from tic_mrf.normalizer import CSV_COLUMNS, normalize_row, validate_claim

SAMPLE_CSV = Path(__file__).parent / "data" / "sample_claims.csv"

FIELD_TO_COLUMN = {field: column for column, field in CSV_COLUMNS.items()}

VALID_ROW = {
    "Claim ID": "CLM-1",
    "Subscriber ID": "SUB-1",
    "Member Sequence": "1",
    "Claim Status": "Paid",
    "Billed": "100.00",
    "Allowed": "80.00",
    "Paid": "60.00",
    "Payment Status Date": "2024-01-20",
    "Service Date": "2024-01-02",
    "Received Date": "2024-01-05",
    "Entry Date": "2024-01-06",
    "Processed Date": "2024-01-15",
    "Paid Date": "2024-01-20",
    "Payment Status": "Cleared",
    "Group Name": "Alpha Group",
    "Group ID": "GRP-1",
    "Division Name": "North",
    "Division ID": "DIV-1",
    "Plan": "Plan A",
    "Plan ID": "PLA001",
    "Place of Service": "Office",
    "Claim Type": "Professional",
    "Procedure Code": "99213",
    "Member Gender": "F",
    "Provider ID": "1111111111",
    "Provider Name": "Provider One",
}


def build_row(**overrides) -> dict:
    """A valid raw row, with overrides given by claim field name."""
    row = dict(VALID_ROW)
    for field, value in overrides.items():
        row[FIELD_TO_COLUMN[field]] = value
    return row


@pytest.fixture
def sample_csv() -> Path:
    return SAMPLE_CSV


@pytest.fixture
def make_row():
    """Factory for raw rows: make_row(claim_id="C-2", group_id="")."""
    return build_row


@pytest.fixture
def make_claim():
    """Factory for normalized claims with is_valid already computed."""
    counter = {"index": 0}

    def _make(**overrides) -> ClaimRecord:
        claim = normalize_row(build_row(**overrides), counter["index"])
        counter["index"] += 1
        claim.is_valid = not validate_claim(claim)
        return claim

    return _make
