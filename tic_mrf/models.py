"""
Data models for claims, MRF documents and the MRF file manifest.
"""

import math
from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class ClaimRecord(BaseModel):
    """
    A single billing event read from a claims extract.

    Values are stored as read (trimmed text, parsed numbers) and may be
    invalid; structural checks live in ``normalizer.validate_claim``.
    Numeric fields hold NaN when the source value could not be parsed.
    """

    # Working-set metadata
    id: str = Field(..., description="Stable row identifier (claim id, or row-<n> fallback)")
    row_index: int = Field(..., description="1-based source row index used in error reporting", ge=1)
    is_valid: bool = Field(True, description="True when validation produced no issues")

    claim_id: str = Field("", description="Claim identifier")
    subscriber_id: str = Field("", description="Subscriber identifier")
    member_sequence: float = Field(math.nan, description="Member sequence number")
    claim_status: str = Field("", description="Claim status, e.g. 'Paid' or 'Denied'")
    billed: float = Field(math.nan, description="Billed charge")
    allowed: float = Field(math.nan, description="Allowed amount")
    paid: float = Field(math.nan, description="Paid amount")
    payment_status_date: str = Field("", description="Payment status date (YYYY-MM-DD)")
    service_date: str = Field("", description="Service date (YYYY-MM-DD)")
    received_date: str = Field("", description="Received date (YYYY-MM-DD)")
    entry_date: str = Field("", description="Entry date (YYYY-MM-DD)")
    processed_date: str = Field("", description="Processed date (YYYY-MM-DD)")
    paid_date: str = Field("", description="Paid date (YYYY-MM-DD)")
    payment_status: str = Field("", description="Payment status")
    group_name: str = Field("", description="Employer group (customer) name")
    group_id: str = Field("", description="Employer group (customer) identifier")
    division_name: str = Field("", description="Division name")
    division_id: str = Field("", description="Division identifier")
    plan_name: str = Field("", description="Plan name")
    plan_id: str = Field("", description="Plan identifier")
    place_of_service: str = Field("", description="Place of service label, e.g. 'Office'")
    claim_type: str = Field("", description="'Professional' or 'Institutional'")
    procedure_code: str = Field("", description="CPT or HCPCS procedure code")
    member_gender: str = Field("", description="Member gender")
    provider_id: str = Field("", description="Provider NPI (10 digits)")
    provider_name: str = Field("", description="Provider name")


class ValidationIssue(BaseModel):
    """A validation failure for one field of one source row."""

    row_index: int
    field: str
    message: str


class MrfProvider(BaseModel):
    billed_charge: float
    npi: List[int]


class MrfPayment(BaseModel):
    allowed_amount: float
    providers: List[MrfProvider]
    billing_code_modifier: Optional[List[str]] = None


class MrfTin(BaseModel):
    type: str = Field(..., description="'ein' or 'npi'")
    value: str


class MrfAllowedAmount(BaseModel):
    """Averaged amounts for one provider / billing class / service code bucket."""

    tin: MrfTin
    billing_class: str
    service_code: Optional[List[str]] = None
    payments: List[MrfPayment]


class MrfOutOfNetwork(BaseModel):
    """One procedure-code section of an MRF document."""

    name: str
    billing_code_type: str
    billing_code_type_version: str
    billing_code: str
    description: str
    allowed_amounts: List[MrfAllowedAmount]


class MrfFile(BaseModel):
    """Allowed-amount machine-readable file (subset of the TiC schema)."""

    reporting_entity_name: str
    reporting_entity_type: str
    plan_name: Optional[str] = None
    issuer_name: Optional[str] = None
    plan_sponsor_name: Optional[str] = None
    plan_id_type: Optional[str] = None
    plan_id: Optional[str] = None
    plan_market_type: Optional[str] = None
    last_updated_on: str
    version: str
    out_of_network: List[MrfOutOfNetwork]

    def to_json(self) -> str:
        """Pretty-printed JSON with unset optional fields omitted."""
        return self.model_dump_json(indent=2, exclude_none=True)


class GeneratedMrf(BaseModel):
    """An MRF document for one customer, ready to be persisted."""

    customer_id: str
    customer_key: str
    customer_name: str
    file_name: str
    claim_count: int
    data: MrfFile


class MrfFileRecord(BaseModel):
    """Manifest entry for one persisted MRF document."""

    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId")
    customer_key: str = Field(..., alias="customerKey")
    customer_name: str = Field(..., alias="customerName")
    file_name: str = Field(..., alias="fileName")
    created_at: str = Field(..., alias="createdAt", description="ISO-8601 UTC timestamp")
    claim_count: int = Field(..., alias="claimCount")
    size: int = Field(..., description="File size in bytes")


class MrfCustomerRecord(BaseModel):
    """All persisted documents for one customer, most recent first."""

    id: str
    key: str
    name: str
    files: List[MrfFileRecord] = Field(default_factory=list)


class MrfIndex(BaseModel):
    """The manifest: customer id -> customer record."""

    customers: Dict[str, MrfCustomerRecord] = Field(default_factory=dict)
