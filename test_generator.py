"""
Tests for MRF document generation.

Run with: pytest test_generator.py -v
"""

import json
from datetime import date

import pytest
from tic_mrf import ClaimSession, MRFGenerator, generate_mrf_files
from tic_mrf.codes import (
    disambiguate_key,
    get_billing_code_type,
    get_service_code,
    round_currency,
    slugify,
)
from tic_mrf.generator import build_allowed_amounts, build_file_name

TODAY = date(2024, 5, 1)


class TestCodeHelpers:
    """Test derived code helpers."""

    def test_slugify(self):
        assert slugify("Alpha Group!!") == "alpha-group"
        assert slugify("  --Beacon  Logistics, LLC--  ") == "beacon-logistics-llc"
        assert slugify("") == "unknown"
        assert slugify("!!!") == "unknown"
        assert slugify(None) == "unknown"

    def test_disambiguate_key(self):
        key = disambiguate_key("alpha-group", "ALPHA GROUP")

        assert key == disambiguate_key("alpha-group", "ALPHA GROUP")
        assert key != disambiguate_key("alpha-group", "Alpha Group")
        assert len(key) == len("alpha-group-") + 8
        assert slugify(key) == key

    def test_billing_code_type(self):
        assert get_billing_code_type("99213") == "CPT"
        assert get_billing_code_type("J1100") == "HCPCS"

    def test_service_codes(self):
        assert get_service_code(" Emergency Room - Hospital ") == "23"
        assert get_service_code("office") == "11"
        assert get_service_code("Home") == "99"

    def test_round_currency(self):
        assert round_currency(85.0) == 85.0
        assert round_currency(1.005) == 1.0  # binary value is just below 1.005
        assert round_currency(0.125) == 0.13
        assert round_currency(-0.125) == -0.13
        assert round_currency(float("nan")) == 0.0
        assert round_currency(float("inf")) == 0.0


class TestGenerateMrf:
    """Test document assembly."""

    def test_one_document_per_group_name(self, make_claim):
        claims = [
            make_claim(claim_id="1", group_id="", group_name="Alpha Group", procedure_code="99213",
                       provider_id="1111111111", billed="100", allowed="80", paid="60"),
            make_claim(claim_id="2", group_id="", group_name="Beta Group", procedure_code="99214",
                       provider_id="2222222222", billed="120", allowed="90", paid="70"),
        ]

        generated = generate_mrf_files(claims, today=TODAY)

        assert len(generated) == 2
        assert [doc.claim_count for doc in generated] == [1, 1]
        assert [len(doc.data.out_of_network) for doc in generated] == [1, 1]
        assert generated[0].customer_id == "Alpha Group"
        assert generated[0].customer_key == "alpha-group"
        assert generated[0].file_name == "alpha-group-alpha-group-2024-05-01.json"

    def test_customers_with_same_slug_get_distinct_keys(self, make_claim):
        claims = [
            make_claim(claim_id="1", group_id="", group_name="Alpha Group"),
            make_claim(claim_id="2", group_id="ALPHA GROUP"),
        ]

        first, second = generate_mrf_files(claims, today=TODAY)

        assert first.customer_key == "alpha-group"
        assert second.customer_key == disambiguate_key("alpha-group", "ALPHA GROUP")
        assert second.customer_key.startswith("alpha-group-")

    def test_document_header(self, make_claim):
        (doc,) = generate_mrf_files([make_claim()], today=TODAY)

        assert doc.customer_id == "GRP-1"
        assert doc.customer_name == "Alpha Group"
        assert doc.file_name == "alpha-group-grp-1-2024-05-01.json"
        assert doc.data.reporting_entity_name == "Alpha Group"
        assert doc.data.reporting_entity_type == "group"
        assert doc.data.last_updated_on == "2024-05-01"
        assert doc.data.version == "1.0.0"

    def test_reporting_name_is_first_group_name(self, make_claim):
        claims = [
            make_claim(claim_id="1", group_id="G-1", group_name=""),
            make_claim(claim_id="2", group_id="G-1", group_name="Gamma Co"),
        ]

        (doc,) = generate_mrf_files(claims, today=TODAY)

        assert doc.customer_name == "Gamma Co"
        assert doc.data.reporting_entity_name == "Gamma Co"

    def test_out_of_network_entry(self, make_claim):
        claims = [
            make_claim(claim_id="1", procedure_code="J1100", allowed="80", billed="100"),
            make_claim(claim_id="2", procedure_code="J1100", allowed="90", billed="121"),
        ]

        (doc,) = generate_mrf_files(claims, today=TODAY)
        (entry,) = doc.data.out_of_network

        assert entry.name == "Procedure J1100"
        assert entry.billing_code == "J1100"
        assert entry.billing_code_type == "HCPCS"
        assert entry.billing_code_type_version == "2024"
        assert entry.description == "Allowed amounts for procedure J1100."

        (allowed,) = entry.allowed_amounts
        assert allowed.tin.type == "npi"
        assert allowed.tin.value == "1111111111"
        assert allowed.billing_class == "professional"
        assert allowed.service_code == ["11"]
        (payment,) = allowed.payments
        assert payment.allowed_amount == 85.0
        assert payment.providers[0].billed_charge == 110.5
        assert payment.providers[0].npi == [1111111111]

    def test_buckets_by_provider_class_and_service_code(self, make_claim):
        claims = [
            make_claim(claim_id="1", provider_id="1111111111", place_of_service="Office"),
            make_claim(claim_id="2", provider_id="1111111111", place_of_service="Urgent Care"),
            make_claim(claim_id="3", provider_id="2222222222"),
            make_claim(claim_id="4", provider_id="1111111111", claim_type="Institutional",
                       place_of_service="Inpatient Hospital"),
            make_claim(claim_id="5", provider_id="1111111111", claim_type="Institutional",
                       place_of_service="Outpatient Hospital"),
        ]

        amounts = build_allowed_amounts(claims)

        assert [(a.tin.value, a.billing_class, a.service_code) for a in amounts] == [
            ("1111111111", "professional", ["11"]),
            ("1111111111", "professional", ["20"]),
            ("2222222222", "professional", ["11"]),
            ("1111111111", "institutional", None),
        ]

    def test_claims_without_procedure_or_provider_skipped(self, make_claim):
        claims = [
            make_claim(claim_id="1", procedure_code=""),
            make_claim(claim_id="2", provider_id="NPI-UNKNOWN"),
            make_claim(claim_id="3", allowed="50"),
        ]

        (doc,) = generate_mrf_files(claims, today=TODAY)

        assert doc.claim_count == 3
        (entry,) = doc.data.out_of_network
        assert entry.allowed_amounts[0].payments[0].allowed_amount == 50.0

    def test_customer_without_entries_dropped(self, make_claim):
        claims = [
            make_claim(claim_id="1", group_id="G-1", procedure_code=""),
            make_claim(claim_id="2", group_id="G-2"),
        ]

        generated = generate_mrf_files(claims, today=TODAY)

        assert [doc.customer_id for doc in generated] == ["G-2"]

    def test_no_claims(self):
        assert generate_mrf_files([], today=TODAY) == []

    def test_json_shape(self, make_claim):
        claims = [make_claim(claim_type="Institutional", place_of_service="Inpatient Hospital")]

        (doc,) = MRFGenerator().generate(claims, today=TODAY)
        payload = json.loads(doc.data.to_json())

        assert list(payload) == [
            "reporting_entity_name",
            "reporting_entity_type",
            "last_updated_on",
            "version",
            "out_of_network",
        ]
        allowed = payload["out_of_network"][0]["allowed_amounts"][0]
        assert "service_code" not in allowed
        assert allowed["payments"][0] == {
            "allowed_amount": 80.0,
            "providers": [{"billed_charge": 100.0, "npi": [1111111111]}],
        }

    def test_custom_generator_settings(self, make_claim):
        generator = MRFGenerator(reporting_entity_type="health insurance issuer", version="1.1.0")

        (doc,) = generator.generate([make_claim()], today=TODAY)

        assert doc.data.reporting_entity_type == "health insurance issuer"
        assert doc.data.version == "1.1.0"

    def test_sample_file(self, sample_csv):
        session = ClaimSession()
        session.load_csv(sample_csv)
        session.approve_all_groups()

        generated = generate_mrf_files(session.approved_submission_claims(), today=TODAY)

        assert [doc.customer_id for doc in generated] == ["GRP-100", "GRP-200", "Cedar Health Partners"]
        assert [doc.claim_count for doc in generated] == [3, 2, 2]
        assert [len(doc.data.out_of_network) for doc in generated] == [2, 1, 2]
        assert generated[1].data.out_of_network[0].billing_code_type == "HCPCS"


@pytest.mark.parametrize("name,customer_id,expected", [
    ("Acme Manufacturing", "GRP-100", "acme-manufacturing-grp-100-2024-05-01.json"),
    ("", "", "unknown-unknown-2024-05-01.json"),
])
def test_build_file_name(name, customer_id, expected):
    assert build_file_name(name, customer_id, "2024-05-01") == expected
