"""
MRF document generation.

Builds allowed-amount machine-readable files from approved claims, one
document per customer.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Dict, Iterable, List, Optional

from .codes import (
    disambiguate_key,
    get_billing_class,
    get_billing_code_type,
    get_claim_service_code,
    get_customer_id,
    parse_provider_npi,
    round_currency,
    slugify,
)
from .grouper import KEY_DELIMITER
from .models import (
    ClaimRecord,
    GeneratedMrf,
    MrfAllowedAmount,
    MrfFile,
    MrfOutOfNetwork,
    MrfPayment,
    MrfProvider,
    MrfTin,
)

logger = logging.getLogger(__name__)

DEFAULT_REPORTING_ENTITY_TYPE = "group"
DEFAULT_VERSION = "1.0.0"
BILLING_CODE_TYPE_VERSION = "2024"


@dataclass
class AggregationBucket:
    """Running allowed/billed totals for one provider, billing class and service code."""

    billing_class: str
    service_code: Optional[str]
    provider_id: str
    provider_npi: int
    sum_allowed: float = 0.0
    sum_billed: float = 0.0
    count: int = 0


def _amount(value: float) -> float:
    return value if value is not None and math.isfinite(value) else 0.0


def group_claims_by_customer(claims: Iterable[ClaimRecord]) -> Dict[str, List[ClaimRecord]]:
    """Customer id -> claims, in first-seen order."""
    groups: Dict[str, List[ClaimRecord]] = {}
    for claim in claims:
        groups.setdefault(get_customer_id(claim.group_id, claim.group_name), []).append(claim)
    return groups


def group_claims_by_procedure(claims: Iterable[ClaimRecord]) -> Dict[str, List[ClaimRecord]]:
    """Procedure code -> claims. Claims without a procedure code are skipped."""
    groups: Dict[str, List[ClaimRecord]] = {}
    for claim in claims:
        if not claim.procedure_code:
            continue
        groups.setdefault(claim.procedure_code, []).append(claim)
    return groups


def resolve_customer_name(customer_id: str, claims: Iterable[ClaimRecord]) -> str:
    """First non-empty group name among the claims, else the customer id."""
    for claim in claims:
        name = claim.group_name.strip()
        if name:
            return name
    return customer_id


def build_allowed_amounts(claims: Iterable[ClaimRecord]) -> List[MrfAllowedAmount]:
    """
    Average allowed and billed amounts per provider / billing class / service code.

    Claims without a numeric provider id are skipped.

    Args:
        claims: Claims for a single procedure code

    Returns:
        One allowed-amount entry per bucket, in first-seen order
    """
    buckets: Dict[str, AggregationBucket] = {}

    for claim in claims:
        provider_npi = parse_provider_npi(claim.provider_id)
        if not claim.provider_id or provider_npi is None:
            logger.warning("Skipping claim %s: provider id %r is not numeric", claim.id, claim.provider_id)
            continue

        billing_class = get_billing_class(claim.claim_type)
        service_code = get_claim_service_code(claim.claim_type, claim.place_of_service)
        key = KEY_DELIMITER.join([claim.provider_id, billing_class, service_code or "none"])

        bucket = buckets.get(key)
        if bucket is None:
            bucket = AggregationBucket(
                billing_class=billing_class,
                service_code=service_code,
                provider_id=claim.provider_id,
                provider_npi=provider_npi,
            )
            buckets[key] = bucket

        bucket.sum_allowed += _amount(claim.allowed)
        bucket.sum_billed += _amount(claim.billed)
        bucket.count += 1

    allowed_amounts: List[MrfAllowedAmount] = []
    for bucket in buckets.values():
        service_code = None
        if bucket.billing_class == "professional" and bucket.service_code:
            service_code = [bucket.service_code]

        allowed_amounts.append(MrfAllowedAmount(
            tin=MrfTin(type="npi", value=bucket.provider_id),
            billing_class=bucket.billing_class,
            service_code=service_code,
            payments=[
                MrfPayment(
                    allowed_amount=round_currency(bucket.sum_allowed / bucket.count),
                    providers=[
                        MrfProvider(
                            billed_charge=round_currency(bucket.sum_billed / bucket.count),
                            npi=[bucket.provider_npi],
                        )
                    ],
                )
            ],
        ))

    return allowed_amounts


def build_out_of_network(claims: Iterable[ClaimRecord]) -> List[MrfOutOfNetwork]:
    """One out-of-network entry per procedure code that yields any bucket."""
    out_of_network: List[MrfOutOfNetwork] = []

    for procedure_code, procedure_claims in group_claims_by_procedure(claims).items():
        allowed_amounts = build_allowed_amounts(procedure_claims)
        if not allowed_amounts:
            continue

        out_of_network.append(MrfOutOfNetwork(
            name=f"Procedure {procedure_code}",
            billing_code_type=get_billing_code_type(procedure_code),
            billing_code_type_version=BILLING_CODE_TYPE_VERSION,
            billing_code=procedure_code,
            description=f"Allowed amounts for procedure {procedure_code}.",
            allowed_amounts=allowed_amounts,
        ))

    return out_of_network


def build_file_name(customer_name: str, customer_id: str, today: str) -> str:
    """e.g. ``alpha-group-grp-001-2024-05-01.json``"""
    return f"{slugify(customer_name)}-{slugify(customer_id)}-{today}.json"


def current_date() -> str:
    """Today's UTC calendar date, ISO formatted."""
    return datetime.now(timezone.utc).date().isoformat()


class MRFGenerator:
    """
    Builds allowed-amount MRF documents from approved claims.

    Claims are split by customer, then by procedure code, then bucketed by
    provider, billing class and service code; each bucket reports average
    allowed and billed amounts.

    Example:
        >>> generator = MRFGenerator()
        >>> documents = generator.generate(session.approved_submission_claims())
        >>> print(documents[0].file_name)
    """

    def __init__(
        self,
        reporting_entity_type: str = DEFAULT_REPORTING_ENTITY_TYPE,
        version: str = DEFAULT_VERSION,
    ):
        self.reporting_entity_type = reporting_entity_type
        self.version = version

    def build_document(self, reporting_entity_name: str, out_of_network: List[MrfOutOfNetwork], today: str) -> MrfFile:
        return MrfFile(
            reporting_entity_name=reporting_entity_name,
            reporting_entity_type=self.reporting_entity_type,
            last_updated_on=today,
            version=self.version,
            out_of_network=out_of_network,
        )

    def generate(self, claims: Iterable[ClaimRecord], today: Optional[date] = None) -> List[GeneratedMrf]:
        """
        Generate one document per customer.

        Customers whose claims produce no out-of-network entries get no
        document.

        Args:
            claims: Approved, eligible claims
            today: Date stamped on documents and file names (defaults to the UTC date)

        Returns:
            Generated documents in first-seen customer order
        """
        today_str = today.isoformat() if today else current_date()
        generated: List[GeneratedMrf] = []
        used_keys: Dict[str, str] = {}

        for customer_id, customer_claims in group_claims_by_customer(claims).items():
            out_of_network = build_out_of_network(customer_claims)
            if not out_of_network:
                logger.warning("No MRF entries for customer %s; skipping", customer_id)
                continue

            customer_key = slugify(customer_id)
            if customer_key in used_keys:
                logger.warning(
                    "Customers %r and %r share the key %s",
                    used_keys[customer_key], customer_id, customer_key,
                )
                customer_key = disambiguate_key(customer_key, customer_id)
            used_keys[customer_key] = customer_id

            customer_name = resolve_customer_name(customer_id, customer_claims)
            generated.append(GeneratedMrf(
                customer_id=customer_id,
                customer_key=customer_key,
                customer_name=customer_name,
                file_name=build_file_name(customer_name, customer_id, today_str),
                claim_count=len(customer_claims),
                data=self.build_document(customer_name, out_of_network, today_str),
            ))

        logger.info("Generated %d MRF documents", len(generated))
        return generated


def generate_mrf_files(claims: Iterable[ClaimRecord], today: Optional[date] = None) -> List[GeneratedMrf]:
    """Generate MRF documents with the default reporting entity settings."""
    return MRFGenerator().generate(claims, today=today)
