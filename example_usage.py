"""
Example usage of the MRF generator.

This script walks a sample claims extract through validation, pricing
group review, approval, generation and storage.
"""

import tempfile
from datetime import date
from pathlib import Path

from tic_mrf import ClaimSession, MRFStorage, generate_mrf_files, submit_session

SAMPLE_CSV = Path(__file__).parent / "data" / "sample_claims.csv"


def example_1_validation():
    """Example 1: Load a claims extract and report validation issues."""
    print("=" * 80)
    print("Example 1: Claim Validation")
    print("=" * 80)

    session = ClaimSession()
    session.load_csv(SAMPLE_CSV)

    print(f"\nClaims loaded: {len(session.claims)}")
    print(f"Eligible:      {session.eligible_count}")
    print(f"Denied:        {session.denied_count}")
    print(f"Invalid:       {session.invalid_count}")

    print(f"\n{'Row':<6} {'Field':<20} {'Message'}")
    print("-" * 80)
    for issue in session.validation_issues:
        print(f"{issue.row_index:<6} {issue.field:<20} {issue.message}")
    print()


def example_2_grouping_methods():
    """Example 2: The same claims under each grouping method."""
    print("=" * 80)
    print("Example 2: Grouping Methods")
    print("=" * 80)

    session = ClaimSession()
    session.load_csv(SAMPLE_CSV)

    for option in ClaimSession.grouping_options():
        session.set_grouping_method(option["value"])
        print(f"\n{session.grouping_label:<28} {session.group_count:>3} groups  "
              f"key: {', '.join(session.grouping_key_fields)}")
    print()


def example_3_approval_and_generation():
    """Example 3: Approve a subset of groups and generate MRF documents."""
    print("=" * 80)
    print("Example 3: Approval and Generation")
    print("=" * 80)

    session = ClaimSession(grouping_method="procedure")
    session.load_csv(SAMPLE_CSV)
    session.approve_all_groups()

    # Hold back the evaluation and management visits
    for group in session.group_summaries:
        if group.procedure_code == "99213":
            session.set_group_approval(group.id, False)

    print(f"\nApproved groups: {session.approved_group_count} of {session.group_count}")
    print(f"Approved claims: {session.approved_claim_count}")

    documents = generate_mrf_files(session.approved_submission_claims(), today=date(2024, 6, 1))
    for document in documents:
        print(f"\n{document.file_name}")
        for entry in document.data.out_of_network:
            for allowed in entry.allowed_amounts:
                payment = allowed.payments[0]
                print(f"  {entry.billing_code:<8} {allowed.billing_class:<14} "
                      f"allowed ${payment.allowed_amount:>9.2f}  "
                      f"billed ${payment.providers[0].billed_charge:>9.2f}")
    print()


def example_4_submission():
    """Example 4: Submit approved claims and read the stored files back."""
    print("=" * 80)
    print("Example 4: Submission and Storage")
    print("=" * 80)

    session = ClaimSession()
    session.load_csv(SAMPLE_CSV)
    session.approve_all_groups()

    with tempfile.TemporaryDirectory() as tmp:
        storage = MRFStorage(tmp)
        submit_session(session, storage)

        for customer in storage.list():
            print(f"\n{customer.name} ({customer.id})")
            for record in customer.files:
                data = storage.read_file(customer.id, record.file_name)
                print(f"  {record.file_name}: {record.claim_count} claims, {len(data)} bytes")
    print()


if __name__ == "__main__":
    example_1_validation()
    example_2_grouping_methods()
    example_3_approval_and_generation()
    example_4_submission()
