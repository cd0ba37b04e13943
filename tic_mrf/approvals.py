"""
Claim review session and approval ledger.

A ``ClaimSession`` holds one uploaded claim set while it is reviewed:
the claims, their validation issues, the active grouping method and the
approval state.

Approval is recorded per claim (``approved_claims``). Group approval
(``group_approvals``) is always derived from it by ``sync_group_approvals``:
a group is approved when it is eligible and every eligible claim in it is
approved. Every mutating method ends by resyncing, so the group map never
goes stale after edits, removals or a change of grouping method.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .codes import is_denied_status
from .config import MRF_GROUPING_METHOD
from .grouper import (
    MethodLike,
    aggregate,
    build_group_claim_map,
    get_group_key,
    is_eligible_claim,
    resolve_method,
    summarize,
)
from .grouper_models import GROUPING_CONFIGS, GROUPING_DEFINITIONS, GroupingMethod, PricingGroup
from .models import ClaimRecord, ValidationIssue
from .normalizer import NUMBER_FIELDS, SCHEMA_FIELDS, load_claims, parse_number, read_claim_rows, validate_claim

logger = logging.getLogger(__name__)


class ClaimSession:
    """
    Working set of claims under review, with claim-level approvals.

    Example:
        >>> session = ClaimSession()
        >>> session.load_csv("data/sample_claims.csv")
        >>> session.approve_all_groups()
        >>> claims = session.approved_submission_claims()
    """

    def __init__(self, grouping_method: Optional[MethodLike] = None):
        """
        Initialize an empty session.

        Args:
            grouping_method: Initial grouping method. Defaults to the
                             MRF_GROUPING_METHOD setting.
        """
        self.grouping_method: GroupingMethod = resolve_method(grouping_method or MRF_GROUPING_METHOD)
        self.file_name: Optional[str] = None
        self.claims: List[ClaimRecord] = []
        self.row_issues: Dict[str, List[ValidationIssue]] = {}
        self.approved_claims: Dict[str, bool] = {}
        self.group_approvals: Dict[str, bool] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_rows(self, rows: Iterable[Mapping[str, Any]], file_name: Optional[str] = None) -> None:
        """Replace the working set with normalized rows; clears all approvals."""
        claims, row_issues = load_claims(rows)
        self.file_name = file_name
        self.claims = claims
        self.row_issues = row_issues
        self.approved_claims = {}
        self.sync_group_approvals()
        logger.info(
            "Loaded %d claims (%d invalid) from %s",
            len(claims), len(row_issues), file_name or "rows",
        )

    def load_csv(self, path: Union[str, Path]) -> None:
        """Replace the working set with claims read from a CSV file."""
        self.load_rows(read_claim_rows(path), file_name=Path(path).name)

    def reset(self) -> None:
        """Drop all claims, issues and approvals."""
        self.file_name = None
        self.claims = []
        self.row_issues = {}
        self.approved_claims = {}
        self.group_approvals = {}

    # ------------------------------------------------------------------
    # Claim views
    # ------------------------------------------------------------------

    @property
    def has_claims(self) -> bool:
        return bool(self.claims)

    @property
    def valid_count(self) -> int:
        return sum(1 for claim in self.claims if claim.is_valid)

    @property
    def eligible_count(self) -> int:
        return sum(1 for claim in self.claims if is_eligible_claim(claim))

    @property
    def invalid_claims(self) -> List[ClaimRecord]:
        return [claim for claim in self.claims if not claim.is_valid]

    @property
    def denied_claims(self) -> List[ClaimRecord]:
        return [claim for claim in self.claims if is_denied_status(claim.claim_status)]

    @property
    def attention_claims(self) -> List[ClaimRecord]:
        """Claims that are invalid or denied."""
        return [
            claim for claim in self.claims
            if not claim.is_valid or is_denied_status(claim.claim_status)
        ]

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_claims)

    @property
    def denied_count(self) -> int:
        return len(self.denied_claims)

    @property
    def attention_count(self) -> int:
        return len(self.attention_claims)

    @property
    def validation_issues(self) -> List[ValidationIssue]:
        return [issue for issues in self.row_issues.values() for issue in issues]

    def get_claim(self, claim_id: str) -> Optional[ClaimRecord]:
        for claim in self.claims:
            if claim.id == claim_id:
                return claim
        return None

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------

    @staticmethod
    def grouping_options() -> List[Dict[str, str]]:
        return [{"value": d.method.value, "label": d.label} for d in GROUPING_DEFINITIONS]

    @property
    def grouping_label(self) -> str:
        return GROUPING_CONFIGS[self.grouping_method].label

    @property
    def grouping_description(self) -> str:
        return GROUPING_CONFIGS[self.grouping_method].description

    @property
    def grouping_key_fields(self) -> List[str]:
        return list(GROUPING_CONFIGS[self.grouping_method].key_fields)

    def grouping_uses(self, field: str) -> bool:
        """Whether the active method includes a key field (e.g. 'plan_id')."""
        return field in GROUPING_CONFIGS[self.grouping_method].key_fields

    def set_grouping_method(self, method: MethodLike) -> None:
        """
        Switch grouping method.

        Claims and claim approvals are untouched; group approvals are
        rebuilt from claim approvals under the new grouping.
        """
        method = resolve_method(method)
        if method == self.grouping_method:
            return
        self.grouping_method = method
        self.sync_group_approvals()
        logger.debug("Grouping method set to %s", method.value)

    @property
    def group_summaries(self) -> List[PricingGroup]:
        """Pricing groups for the active method, recomputed on every read."""
        return summarize(self.claims, self.grouping_method, self.group_approvals)

    @property
    def group_count(self) -> int:
        return len(aggregate(self.claims, self.grouping_method))

    @property
    def approved_group_count(self) -> int:
        return sum(1 for approved in self.group_approvals.values() if approved)

    @property
    def approved_claim_count(self) -> int:
        return len(self.approved_submission_claims())

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def approve_all_groups(self) -> None:
        """
        Approve every eligible group.

        The claim approval map is replaced (not extended) with the eligible
        claims of eligible groups, so repeated calls give the same result.
        """
        groups = aggregate(self.claims, self.grouping_method)
        group_claims = build_group_claim_map(self.claims, self.grouping_method)
        approved: Dict[str, bool] = {}

        for group in groups.values():
            if not group.is_eligible:
                continue
            for claim in group_claims.get(group.id, []):
                if is_eligible_claim(claim):
                    approved[claim.id] = True

        self.approved_claims = approved
        self.sync_group_approvals()
        logger.info("Approved %d eligible groups", self.approved_group_count)

    def clear_group_approvals(self) -> None:
        """Remove every claim and group approval."""
        self.approved_claims = {}
        self.sync_group_approvals()

    def set_group_approval(self, group_id: str, approved: bool) -> None:
        """
        Approve or unapprove the eligible claims of one group.

        No-op when the group does not exist or is not eligible.
        """
        groups = aggregate(self.claims, self.grouping_method)
        group = groups.get(group_id)
        if group is None or not group.is_eligible:
            logger.debug("Ignoring approval change for group %s", group_id)
            return

        group_claims = build_group_claim_map(self.claims, self.grouping_method).get(group_id, [])
        next_approved = dict(self.approved_claims)
        for claim in group_claims:
            if not is_eligible_claim(claim):
                continue
            if approved:
                next_approved[claim.id] = True
            else:
                next_approved.pop(claim.id, None)

        self.approved_claims = next_approved
        self.sync_group_approvals()

    def sync_group_approvals(self) -> None:
        """Rebuild group approvals from claim approvals under the active method."""
        groups = aggregate(self.claims, self.grouping_method)
        group_claims = build_group_claim_map(self.claims, self.grouping_method)
        approvals: Dict[str, bool] = {}

        for group in groups.values():
            if not group.is_eligible:
                approvals[group.id] = False
                continue
            eligible = [claim for claim in group_claims.get(group.id, []) if is_eligible_claim(claim)]
            approvals[group.id] = bool(eligible) and all(
                self.approved_claims.get(claim.id) for claim in eligible
            )

        self.group_approvals = approvals

    def approved_submission_claims(self) -> List[ClaimRecord]:
        """Eligible claims whose group is approved under the active method."""
        return [
            claim for claim in self.claims
            if is_eligible_claim(claim)
            and self.group_approvals.get(get_group_key(claim, self.grouping_method))
        ]

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def remove_claim(self, claim_id: str) -> None:
        """Remove a claim along with its issues and approval."""
        self.claims = [claim for claim in self.claims if claim.id != claim_id]
        self.row_issues.pop(claim_id, None)
        self.approved_claims.pop(claim_id, None)
        self.sync_group_approvals()

    def update_claim_field(self, claim_id: str, field: str, value: Any) -> None:
        """
        Edit one field of a claim and revalidate it.

        Number fields go through the same parser as file input; text is
        trimmed. A claim that becomes invalid or denied loses its approval.

        Raises:
            ValueError: If the field is not an editable claim field
        """
        if field not in SCHEMA_FIELDS:
            raise ValueError(f"Unknown claim field '{field}'")

        claim = self.get_claim(claim_id)
        if claim is None:
            return

        if field in NUMBER_FIELDS:
            setattr(claim, field, parse_number(value))
        else:
            setattr(claim, field, value.strip() if isinstance(value, str) else ("" if value is None else str(value)))

        issues = validate_claim(claim)
        claim.is_valid = not issues
        if issues:
            self.row_issues[claim.id] = issues
        else:
            self.row_issues.pop(claim.id, None)

        if not is_eligible_claim(claim) and self.approved_claims.get(claim.id):
            self.approved_claims.pop(claim.id, None)

        self.sync_group_approvals()
