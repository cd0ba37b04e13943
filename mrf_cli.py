#!/usr/bin/env python
"""
Command-line interface for MRF generation.

Validate a claims extract, review its pricing groups, and generate, list
or download allowed-amount MRF files.
"""

import argparse
import logging
import math
import sys

from tic_mrf import ClaimSession, MRFStorage, SubmissionError, submit_session
from tic_mrf.config import MRF_DATA_DIR, MRF_GROUPING_METHOD, MRF_LOG_LEVEL
from tic_mrf.grouper_models import GroupingMethod
from tic_mrf.storage import StorageError


def format_currency(value: float) -> str:
    """Format an amount as $0.00, or "--" when there is no data."""
    if value is None or not math.isfinite(value):
        return "--"
    return f"${value:.2f}"


def load_session(args) -> ClaimSession:
    session = ClaimSession(grouping_method=args.method)
    session.load_csv(args.csv)
    return session


def validate_claims(args):
    """Report validation issues in a claims file."""
    session = ClaimSession()
    session.load_csv(args.csv)

    print("\n" + "=" * 60)
    print("CLAIM VALIDATION")
    print("=" * 60)
    print(f"File:            {session.file_name}")
    print(f"Claims:          {len(session.claims)}")
    print(f"Valid:           {session.valid_count}")
    print(f"Eligible:        {session.eligible_count}")
    print(f"Denied:          {session.denied_count}")
    print(f"Invalid:         {session.invalid_count}")
    print("=" * 60)

    for issue in session.validation_issues:
        print(f"  Row {issue.row_index:>4}  {issue.field:<22} {issue.message}")
    print()

    if session.invalid_count:
        sys.exit(1)


def show_groups(args):
    """Print pricing groups under a grouping method."""
    session = load_session(args)
    if args.approve:
        session.approve_all_groups()

    print("\n" + "=" * 60)
    print(f"PRICING GROUPS - {session.grouping_label}")
    print("=" * 60)
    print(session.grouping_description)
    print()

    for group in session.group_summaries:
        status = "approved" if group.approved else ("eligible" if group.is_eligible else "blocked")
        print(f"{group.customer_name} | {group.provider_name} | {group.procedure_code} | "
              f"{group.billing_class} | {group.service_code or '-'}")
        print(f"  Claims: {group.claim_count} (eligible {group.eligible_claim_count}, "
              f"invalid {group.invalid_claim_count}, denied {group.denied_claim_count})  [{status}]")
        print(f"  Avg allowed: {format_currency(group.average_allowed)}  "
              f"Avg billed: {format_currency(group.average_billed)}  "
              f"Avg paid: {format_currency(group.average_paid)}")

    print("=" * 60)
    print(f"Groups: {session.group_count}  Approved: {session.approved_group_count}")
    print()


def submit_claims(args):
    """Approve all eligible groups and generate MRF files."""
    session = load_session(args)
    session.approve_all_groups()
    storage = MRFStorage(args.data_dir)

    try:
        records = submit_session(session, storage)
    except (SubmissionError, StorageError) as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    print("\n" + "=" * 60)
    print("GENERATED MRF FILES")
    print("=" * 60)
    for record in records:
        print(f"{record.customer_name} ({record.customer_id})")
        print(f"  File:    {record.file_name}")
        print(f"  Claims:  {record.claim_count}")
        print(f"  Size:    {record.size} bytes")
    print("=" * 60)
    print()


def list_files(args):
    """List stored MRF files."""
    storage = MRFStorage(args.data_dir)
    try:
        customers = storage.list(args.customer)
    except StorageError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if not customers:
        print("\nNo MRF files found.\n")
        return

    print()
    for customer in customers:
        print(f"{customer.name} ({customer.id})")
        for record in customer.files:
            print(f"  {record.created_at}  {record.file_name}  "
                  f"{record.claim_count} claims  {record.size} bytes")
    print()


def download_file(args):
    """Write a stored MRF file to stdout or a path."""
    storage = MRFStorage(args.data_dir)
    try:
        data = storage.read_file(args.customer, args.file_name)
    except StorageError as e:
        print(f"\nERROR: {e}", file=sys.stderr)
        sys.exit(1)

    if data is None:
        print(f"\nERROR: File {args.file_name} not found for customer {args.customer}", file=sys.stderr)
        sys.exit(1)

    if args.output:
        with open(args.output, 'wb') as f:
            f.write(data)
        print(f"Wrote {len(data)} bytes to {args.output}")
    else:
        sys.stdout.write(data.decode("utf-8"))


def main(argv=None):
    """Main CLI entry point."""
    logging.basicConfig(
        level=getattr(logging, MRF_LOG_LEVEL, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    methods = [method.value for method in GroupingMethod]

    parser = argparse.ArgumentParser(
        description="Transparency-in-Coverage MRF Generator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a claims extract
  %(prog)s validate data/sample_claims.csv

  # Review pricing groups by provider and procedure
  %(prog)s groups data/sample_claims.csv --method providerProcedure

  # Approve eligible groups and generate MRF files
  %(prog)s submit data/sample_claims.csv

  # List and download generated files
  %(prog)s list --customer GRP-100
  %(prog)s download GRP-100 acme-manufacturing-grp-100-2024-05-01.json
        """
    )
    parser.add_argument('--data-dir', default=MRF_DATA_DIR,
                        help=f'MRF storage directory (default: {MRF_DATA_DIR})')

    subparsers = parser.add_subparsers(dest='command', help='Command to execute')

    validate_parser = subparsers.add_parser('validate', help='Validate a claims CSV')
    validate_parser.add_argument('csv', help='Claims CSV file')
    validate_parser.set_defaults(func=validate_claims)

    groups_parser = subparsers.add_parser('groups', help='Show pricing groups')
    groups_parser.add_argument('csv', help='Claims CSV file')
    groups_parser.add_argument('--method', choices=methods, default=MRF_GROUPING_METHOD,
                               help=f'Grouping method (default: {MRF_GROUPING_METHOD})')
    groups_parser.add_argument('--approve', action='store_true', help='Approve all eligible groups first')
    groups_parser.set_defaults(func=show_groups)

    submit_parser = subparsers.add_parser('submit', help='Generate MRF files for eligible groups')
    submit_parser.add_argument('csv', help='Claims CSV file')
    submit_parser.add_argument('--method', choices=methods, default=MRF_GROUPING_METHOD,
                               help=f'Grouping method (default: {MRF_GROUPING_METHOD})')
    submit_parser.set_defaults(func=submit_claims)

    list_parser = subparsers.add_parser('list', help='List generated MRF files')
    list_parser.add_argument('--customer', help='Customer (group) id')
    list_parser.set_defaults(func=list_files)

    download_parser = subparsers.add_parser('download', help='Download a generated MRF file')
    download_parser.add_argument('customer', help='Customer (group) id')
    download_parser.add_argument('file_name', help='MRF file name')
    download_parser.add_argument('-o', '--output', help='Write to this path instead of stdout')
    download_parser.set_defaults(func=download_file)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
