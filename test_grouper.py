"""
Test Pricing Grouper

This test suite validates group keys, aggregation and sorting of pricing groups.
"""

import math

import pytest
from tic_mrf.grouper import (
    aggregate,
    build_group_claim_map,
    format_set_value,
    get_group_key,
    summarize,
)
from tic_mrf.grouper_models import GroupingMethod
from tic_mrf.normalizer import read_claims_csv


@pytest.fixture
def sample_claims(sample_csv):
    claims, _ = read_claims_csv(sample_csv)
    return claims


def test_group_keys_per_method(make_claim):
    """Each method joins its key fields in order."""
    claim = make_claim()

    assert get_group_key(claim, GroupingMethod.MRF) == "GRP-1|1111111111|99213|professional|11"
    assert get_group_key(claim, GroupingMethod.PROVIDER_PROCEDURE) == "GRP-1|1111111111|99213|professional"
    assert get_group_key(claim, GroupingMethod.PROVIDER) == "GRP-1|1111111111|professional"
    assert get_group_key(claim, GroupingMethod.PROCEDURE) == "GRP-1|99213|professional"
    assert get_group_key(claim, GroupingMethod.PLAN_PROCEDURE) == "GRP-1|PLA001|99213|professional"


def test_group_key_accepts_method_strings(make_claim):
    assert get_group_key(make_claim(), "planProcedure") == "GRP-1|PLA001|99213|professional"


def test_unknown_method_rejected(make_claim):
    with pytest.raises(ValueError, match="Unknown grouping method"):
        get_group_key(make_claim(), "byColor")


def test_institutional_claims_have_no_service_code(make_claim):
    claim = make_claim(claim_type="Institutional", place_of_service="Inpatient Hospital")
    assert get_group_key(claim, GroupingMethod.MRF) == "GRP-1|1111111111|99213|institutional|none"


def test_unmapped_place_of_service(make_claim):
    claim = make_claim(place_of_service="Telehealth")
    assert get_group_key(claim, GroupingMethod.MRF).endswith("|99")


def test_empty_key_parts_become_unknown(make_claim):
    claim = make_claim(group_id="", group_name="", provider_id="", procedure_code="")
    assert get_group_key(claim, GroupingMethod.MRF) == "unknown|unknown|unknown|professional|11"


@pytest.mark.parametrize("method", list(GroupingMethod))
def test_partition_completeness(sample_claims, method):
    """Every claim lands in exactly one group under every method."""
    groups = summarize(sample_claims, method)
    assert sum(group.claim_count for group in groups) == len(sample_claims)

    claim_map = build_group_claim_map(sample_claims, method)
    assert sorted(claim_map) == sorted(group.id for group in groups)


@pytest.mark.parametrize("method", list(GroupingMethod))
def test_aggregation_is_deterministic(sample_claims, method):
    first = [group.model_dump_json() for group in summarize(sample_claims, method)]
    second = [group.model_dump_json() for group in summarize(sample_claims, method)]
    assert first == second


@pytest.mark.parametrize("method", list(GroupingMethod))
def test_eligibility_invariant(sample_claims, method):
    """A group is eligible iff it has eligible claims and none invalid or denied."""
    for group in summarize(sample_claims, method):
        expected = (
            group.eligible_claim_count > 0
            and group.invalid_claim_count == 0
            and group.denied_claim_count == 0
        )
        assert group.is_eligible is expected


def test_average_of_eligible_claims(make_claim):
    claims = [make_claim(claim_id="A", allowed="80"), make_claim(claim_id="B", allowed="90")]

    (group,) = summarize(claims, GroupingMethod.MRF)

    assert group.claim_count == 2
    assert group.eligible_claim_count == 2
    assert group.average_allowed == 85.00
    assert group.is_eligible


def test_no_eligible_claims_gives_nan_averages(make_claim):
    claims = [make_claim(claim_status="Denied"), make_claim(claim_status="rejected")]

    (group,) = summarize(claims, GroupingMethod.MRF)

    assert group.eligible_claim_count == 0
    assert group.denied_claim_count == 2
    assert math.isnan(group.average_allowed)
    assert math.isnan(group.average_billed)
    assert math.isnan(group.average_paid)
    assert not group.is_eligible


def test_one_bad_claim_blocks_group_but_siblings_count(make_claim):
    claims = [
        make_claim(claim_id="A", allowed="100"),
        make_claim(claim_id="B", allowed="200", claim_status=" DENIED "),
        make_claim(claim_id="C", allowed="300", subscriber_id=""),
    ]

    (group,) = summarize(claims, GroupingMethod.PROCEDURE)

    assert group.claim_count == 3
    assert group.valid_claim_count == 2
    assert group.invalid_claim_count == 1
    assert group.denied_claim_count == 1
    assert group.eligible_claim_count == 1
    assert group.average_allowed == 100.00
    assert not group.is_eligible


def test_invalid_denied_claim_counts_as_both(make_claim):
    accumulator = next(iter(aggregate([make_claim(claim_status="Denied", plan_id="")], "mrf").values()))

    assert accumulator.invalid_claim_count == 1
    assert accumulator.denied_claim_count == 1
    assert accumulator.valid_claim_count == 0


def test_averages_rounded_to_cents(make_claim):
    claims = [make_claim(claim_id=str(i), allowed=value) for i, value in enumerate(["10", "10", "10.01"])]

    (group,) = summarize(claims, GroupingMethod.MRF)

    assert group.average_allowed == 10.0


def test_multiple_values_display(make_claim):
    claims = [
        make_claim(claim_id="A", provider_id="1111111111", provider_name="Provider One"),
        make_claim(claim_id="B", provider_id="2222222222", provider_name="Provider Two"),
        make_claim(claim_id="C", provider_id="3333333333", provider_name="Provider Two"),
    ]

    (group,) = summarize(claims, GroupingMethod.PROCEDURE)

    assert group.provider_id == "Multiple (3)"
    assert group.provider_name == "Multiple (2)"
    assert group.procedure_code == "99213"
    assert group.service_code == "11"


def test_format_set_value():
    assert format_set_value({}) == "-"
    assert format_set_value({"a": None}) == "a"
    assert format_set_value({"a": None, "b": None}) == "Multiple (2)"


def test_institutional_group_service_code_is_none(make_claim):
    (group,) = summarize([make_claim(claim_type="Institutional")], GroupingMethod.PROCEDURE)
    assert group.service_code is None
    assert group.billing_class == "institutional"


def test_customer_name_first_real_name_wins(make_claim):
    """A claim without a group name does not pin the customer name to the id."""
    claims = [
        make_claim(claim_id="A", group_id="G-1", group_name=""),
        make_claim(claim_id="B", group_id="G-1", group_name="Alpha"),
        make_claim(claim_id="C", group_id="G-1", group_name="Alpha Renamed"),
    ]

    (group,) = summarize(claims, GroupingMethod.PROCEDURE)

    assert group.customer_id == "G-1"
    assert group.customer_name == "Alpha"


def test_customer_name_falls_back_to_id(make_claim):
    (group,) = summarize([make_claim(group_id="G-9", group_name="")], GroupingMethod.MRF)
    assert group.customer_name == "G-9"


def test_search_text(make_claim):
    (group,) = summarize([make_claim()], GroupingMethod.MRF)

    assert group.search_text == "grp-1 alpha group 1111111111 provider one 99213 office professional pla001 plan a 11"


def test_sort_order(sample_claims):
    """Groups sort by customer name, then provider name, then procedure."""
    groups = summarize(sample_claims, GroupingMethod.MRF)

    assert [group.customer_name for group in groups] == [
        "Acme Manufacturing",
        "Acme Manufacturing",
        "Acme Manufacturing",
        "Beacon Logistics",
        "Beacon Logistics",
        "Cedar Health Partners",
        "Cedar Health Partners",
    ]
    assert [group.provider_name for group in groups[:3]] == [
        "Provider One", "Provider Three", "Riverside Hospital",
    ]


def test_sort_is_case_insensitive(make_claim):
    claims = [
        make_claim(claim_id="A", provider_id="1111111111", provider_name="beta clinic"),
        make_claim(claim_id="B", provider_id="2222222222", provider_name="Alpha Clinic"),
    ]

    groups = summarize(claims, GroupingMethod.PROVIDER)

    assert [group.provider_name for group in groups] == ["Alpha Clinic", "beta clinic"]


def test_approval_flags_applied(make_claim):
    claim = make_claim()
    key = get_group_key(claim, GroupingMethod.MRF)

    (group,) = summarize([claim], GroupingMethod.MRF, {key: True})

    assert group.approved
