"""
Pricing Grouper

This module partitions claims into pricing groups under one of the grouping
methodologies in ``grouper_models`` and aggregates each group's counts and
amounts for review.

Usage:
    from tic_mrf.grouper import summarize
    from tic_mrf.grouper_models import GroupingMethod

    groups = summarize(claims, GroupingMethod.PROVIDER_PROCEDURE)
    for group in groups:
        print(group.customer_name, group.procedure_code, group.average_allowed)

Groups are pure derived values: every call recomputes them from the claims.
"""

import logging
import math
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .codes import (
    get_billing_class,
    get_claim_service_code,
    get_customer_id,
    is_denied_status,
    round_currency,
)
from .grouper_models import (
    GROUPING_CONFIGS,
    GroupAccumulator,
    GroupingMethod,
    GroupKeyParts,
    PricingGroup,
)
from .models import ClaimRecord

logger = logging.getLogger(__name__)

KEY_DELIMITER = "|"

MethodLike = Union[GroupingMethod, str]


def resolve_method(method: MethodLike) -> GroupingMethod:
    """
    Coerce a grouping method value.

    Raises:
        ValueError: If the value is not a known grouping method
    """
    try:
        return GroupingMethod(method)
    except ValueError:
        valid = ", ".join(m.value for m in GroupingMethod)
        raise ValueError(f"Unknown grouping method '{method}' (expected one of: {valid})") from None


def is_eligible_claim(claim: ClaimRecord) -> bool:
    """A claim is eligible when it is valid and not denied."""
    return claim.is_valid and not is_denied_status(claim.claim_status)


def normalize_key_part(value: Optional[str], fallback: str = "unknown") -> str:
    trimmed = (value or "").strip()
    return trimmed or fallback


def normalize_display_value(value: Optional[str], fallback: str = "Unknown") -> str:
    trimmed = (value or "").strip()
    return trimmed or fallback


def format_set_value(values: Mapping[str, None], empty_label: str = "-") -> str:
    """Single value, "Multiple (N)" for several values, or the empty label."""
    if not values:
        return empty_label
    if len(values) == 1:
        return next(iter(values))
    return f"Multiple ({len(values)})"


def build_key_parts(claim: ClaimRecord) -> GroupKeyParts:
    return GroupKeyParts(
        customer_id=get_customer_id(claim.group_id, claim.group_name),
        provider_id=claim.provider_id,
        procedure_code=claim.procedure_code,
        billing_class=get_billing_class(claim.claim_type),
        service_code=get_claim_service_code(claim.claim_type, claim.place_of_service),
        plan_id=claim.plan_id,
    )


def build_group_key(method: MethodLike, parts: GroupKeyParts) -> str:
    """
    Build the pipe-delimited group key for the method's key fields.

    Empty parts become "unknown"; a missing service code becomes "none".
    """
    config = GROUPING_CONFIGS[resolve_method(method)]
    values = []
    for field in config.key_fields:
        if field == "service_code":
            values.append(normalize_key_part(parts.service_code, "none"))
        else:
            values.append(normalize_key_part(getattr(parts, field)))
    return KEY_DELIMITER.join(values)


def get_group_key(claim: ClaimRecord, method: MethodLike) -> str:
    """Group key of a claim under a grouping method."""
    return build_group_key(method, build_key_parts(claim))


def build_group_claim_map(claims: Iterable[ClaimRecord], method: MethodLike) -> Dict[str, List[ClaimRecord]]:
    """Group key -> claims in that group, in first-seen order."""
    method = resolve_method(method)
    groups: Dict[str, List[ClaimRecord]] = {}
    for claim in claims:
        groups.setdefault(get_group_key(claim, method), []).append(claim)
    return groups


def aggregate(claims: Iterable[ClaimRecord], method: MethodLike) -> Dict[str, GroupAccumulator]:
    """
    Aggregate claim counts and amounts per group key in a single pass.

    Amount sums only include eligible claims (valid and not denied). Denied
    claims are counted whether or not they are valid.

    Args:
        claims: Claims to aggregate
        method: Grouping methodology

    Returns:
        Group key -> accumulator, in first-seen order
    """
    method = resolve_method(method)
    groups: Dict[str, GroupAccumulator] = {}

    for claim in claims:
        parts = build_key_parts(claim)
        group_key = build_group_key(method, parts)
        group_name = claim.group_name.strip()

        group = groups.get(group_key)
        if group is None:
            group = GroupAccumulator(
                id=group_key,
                customer_id=parts.customer_id,
                customer_name=group_name or parts.customer_id,
                customer_name_resolved=bool(group_name),
            )
            groups[group_key] = group
        elif not group.customer_name_resolved and group_name:
            # First real group name replaces the customer id fallback
            group.customer_name = group_name
            group.customer_name_resolved = True

        group.claim_count += 1
        group.provider_ids[normalize_display_value(claim.provider_id)] = None
        group.provider_names[normalize_display_value(claim.provider_name)] = None
        group.procedure_codes[normalize_display_value(claim.procedure_code)] = None
        group.place_of_services[normalize_display_value(claim.place_of_service)] = None
        group.billing_classes[parts.billing_class] = None
        group.claim_types[normalize_display_value(claim.claim_type)] = None
        group.plan_ids[normalize_display_value(claim.plan_id)] = None
        group.plan_names[normalize_display_value(claim.plan_name)] = None
        if parts.service_code:
            group.service_codes[parts.service_code] = None

        denied = is_denied_status(claim.claim_status)

        if claim.is_valid:
            group.valid_claim_count += 1
            if not denied:
                group.eligible_claim_count += 1
                group.sum_allowed += _amount(claim.allowed)
                group.sum_billed += _amount(claim.billed)
                group.sum_paid += _amount(claim.paid)
        else:
            group.invalid_claim_count += 1

        if denied:
            group.denied_claim_count += 1

    return groups


def _amount(value: float) -> float:
    return value if value is not None and math.isfinite(value) else 0.0


def _average(total: float, count: int) -> float:
    return round_currency(total / count) if count > 0 else math.nan


def build_search_text(group: GroupAccumulator) -> str:
    """Unique lowercased tokens from the group's identifying values."""
    tokens: Dict[str, None] = {}

    def add(value: Optional[str]) -> None:
        trimmed = (value or "").strip()
        if trimmed:
            tokens[trimmed.lower()] = None

    add(group.customer_id)
    add(group.customer_name)
    for values in (
        group.provider_ids,
        group.provider_names,
        group.procedure_codes,
        group.place_of_services,
        group.billing_classes,
        group.claim_types,
        group.plan_ids,
        group.plan_names,
        group.service_codes,
    ):
        for value in values:
            add(value)

    return " ".join(tokens)


def to_pricing_group(group: GroupAccumulator, approved: bool = False) -> PricingGroup:
    """Convert an accumulator into a display-ready pricing group."""
    return PricingGroup(
        id=group.id,
        customer_id=group.customer_id,
        customer_name=group.customer_name,
        procedure_code=format_set_value(group.procedure_codes),
        provider_id=format_set_value(group.provider_ids),
        provider_name=format_set_value(group.provider_names),
        plan_name=format_set_value(group.plan_names),
        plan_id=format_set_value(group.plan_ids),
        place_of_service=format_set_value(group.place_of_services),
        claim_type=format_set_value(group.claim_types),
        billing_class=format_set_value(group.billing_classes),
        service_code=format_set_value(group.service_codes) if group.service_codes else None,
        search_text=build_search_text(group),
        claim_count=group.claim_count,
        valid_claim_count=group.valid_claim_count,
        eligible_claim_count=group.eligible_claim_count,
        invalid_claim_count=group.invalid_claim_count,
        denied_claim_count=group.denied_claim_count,
        average_allowed=_average(group.sum_allowed, group.eligible_claim_count),
        average_billed=_average(group.sum_billed, group.eligible_claim_count),
        average_paid=_average(group.sum_paid, group.eligible_claim_count),
        approved=approved,
        is_eligible=group.is_eligible,
    )


# Key field -> display values a group sorts by under that field
GROUP_SORT_ACCESSORS: Dict[str, Callable[[PricingGroup], Sequence[str]]] = {
    "customer_id": lambda group: (group.customer_name, group.customer_id),
    "provider_id": lambda group: (group.provider_name, group.provider_id),
    "procedure_code": lambda group: (group.procedure_code,),
    "billing_class": lambda group: (group.billing_class,),
    "service_code": lambda group: (group.service_code or "",),
    "plan_id": lambda group: (group.plan_name, group.plan_id),
}


def group_sort_key(group: PricingGroup, method: MethodLike) -> Tuple:
    """Case-insensitive sort key over the method's key fields, then the raw key."""
    config = GROUPING_CONFIGS[resolve_method(method)]
    key = []
    for field in config.key_fields:
        key.append(tuple(value.lower() for value in GROUP_SORT_ACCESSORS[field](group)))
    key.append(group.id)
    return tuple(key)


def summarize(
    claims: Iterable[ClaimRecord],
    method: MethodLike,
    group_approvals: Optional[Mapping[str, bool]] = None,
) -> List[PricingGroup]:
    """
    Aggregate claims into sorted pricing group summaries.

    Args:
        claims: Claims to group
        method: Grouping methodology
        group_approvals: Optional group key -> approved map

    Returns:
        Pricing groups sorted by the method's key fields
    """
    method = resolve_method(method)
    approvals = group_approvals or {}
    summaries = [
        to_pricing_group(group, approved=bool(approvals.get(group.id)))
        for group in aggregate(claims, method).values()
    ]
    summaries.sort(key=lambda group: group_sort_key(group, method))
    logger.debug("Summarized %d pricing groups using %s grouping", len(summaries), method.value)
    return summaries
