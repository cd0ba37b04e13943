"""
Pricing Group Data Models

This module defines the grouping methodologies used to partition claims into
pricing groups, the accumulator used while aggregating, and the pricing group
summary presented for review and approval.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field


class GroupingMethod(str, Enum):
    """Grouping methodologies, by the claim attributes forming the group key."""

    MRF = "mrf"
    PROVIDER_PROCEDURE = "providerProcedure"
    PROVIDER = "provider"
    PROCEDURE = "procedure"
    PLAN_PROCEDURE = "planProcedure"


@dataclass(frozen=True)
class GroupingDefinition:
    """Label, description and ordered key fields for a grouping method."""

    method: GroupingMethod
    label: str
    description: str
    key_fields: Tuple[str, ...]


GROUPING_DEFINITIONS: List[GroupingDefinition] = [
    GroupingDefinition(
        method=GroupingMethod.MRF,
        label="MRF standard",
        description="Groups by provider, procedure, place of service (service code), and billing class per customer.",
        key_fields=("customer_id", "provider_id", "procedure_code", "billing_class", "service_code"),
    ),
    GroupingDefinition(
        method=GroupingMethod.PROVIDER_PROCEDURE,
        label="Provider + procedure",
        description="Groups by provider, procedure, and billing class per customer.",
        key_fields=("customer_id", "provider_id", "procedure_code", "billing_class"),
    ),
    GroupingDefinition(
        method=GroupingMethod.PROVIDER,
        label="Provider",
        description="Groups by provider and billing class per customer.",
        key_fields=("customer_id", "provider_id", "billing_class"),
    ),
    GroupingDefinition(
        method=GroupingMethod.PROCEDURE,
        label="Procedure",
        description="Groups by procedure and billing class per customer.",
        key_fields=("customer_id", "procedure_code", "billing_class"),
    ),
    GroupingDefinition(
        method=GroupingMethod.PLAN_PROCEDURE,
        label="Plan + procedure",
        description="Groups by plan, procedure, and billing class per customer.",
        key_fields=("customer_id", "plan_id", "procedure_code", "billing_class"),
    ),
]

GROUPING_CONFIGS: Dict[GroupingMethod, GroupingDefinition] = {
    definition.method: definition for definition in GROUPING_DEFINITIONS
}


@dataclass
class GroupKeyParts:
    """Resolved claim attributes that may contribute to a group key."""

    customer_id: str
    provider_id: str
    procedure_code: str
    billing_class: str
    service_code: Optional[str]
    plan_id: str


def _ordered_set() -> Dict[str, None]:
    return {}


@dataclass
class GroupAccumulator:
    """
    Running totals for one pricing group.

    Multi-value fields are kept as insertion-ordered dicts used as sets so
    that "first value" and "Multiple (N)" display stay reproducible.
    """

    id: str
    customer_id: str
    customer_name: str
    customer_name_resolved: bool = False
    provider_ids: Dict[str, None] = field(default_factory=_ordered_set)
    provider_names: Dict[str, None] = field(default_factory=_ordered_set)
    procedure_codes: Dict[str, None] = field(default_factory=_ordered_set)
    place_of_services: Dict[str, None] = field(default_factory=_ordered_set)
    billing_classes: Dict[str, None] = field(default_factory=_ordered_set)
    claim_types: Dict[str, None] = field(default_factory=_ordered_set)
    service_codes: Dict[str, None] = field(default_factory=_ordered_set)
    plan_ids: Dict[str, None] = field(default_factory=_ordered_set)
    plan_names: Dict[str, None] = field(default_factory=_ordered_set)
    claim_count: int = 0
    valid_claim_count: int = 0
    eligible_claim_count: int = 0
    invalid_claim_count: int = 0
    denied_claim_count: int = 0
    sum_allowed: float = 0.0
    sum_billed: float = 0.0
    sum_paid: float = 0.0

    @property
    def is_eligible(self) -> bool:
        """At least one eligible claim and no invalid or denied claims."""
        return (
            self.eligible_claim_count > 0
            and self.invalid_claim_count == 0
            and self.denied_claim_count == 0
        )


class PricingGroup(BaseModel):
    """
    Summary of the claims sharing one group key.

    Multi-valued attributes show the single value, "Multiple (N)", or "-".
    Averages cover eligible claims only and are NaN when there are none.
    """

    id: str = Field(..., description="Raw group key")
    customer_id: str
    customer_name: str
    procedure_code: str
    provider_id: str
    provider_name: str
    plan_name: str
    plan_id: str
    place_of_service: str
    claim_type: str
    billing_class: str
    service_code: Optional[str] = Field(
        default=None,
        description="Service code(s); None when the group holds only institutional claims"
    )
    search_text: str = Field(..., description="Lowercased, space-separated search tokens")

    claim_count: int = 0
    valid_claim_count: int = 0
    eligible_claim_count: int = 0
    invalid_claim_count: int = 0
    denied_claim_count: int = 0

    average_allowed: float = math.nan
    average_billed: float = math.nan
    average_paid: float = math.nan

    approved: bool = False
    is_eligible: bool = False
