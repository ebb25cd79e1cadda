#!/usr/bin/env python3
"""
Tenancy Billing Schedule - Main CLI Entrypoint

This script regenerates the billing schedule of one tenancy:
1. Loads the lease settings from portfolio and tenancy levels
2. Generates the monthly billing periods
3. Reconciles them with the ledger, keeping recorded payments
4. Applies the changes to the ledger as one batch
5. Prints the tenancy's payment status and optionally writes reports

Usage:
  python -m tenancy_billing.billing_schedule --tenancy_id TENANCY_ID [--ledger PATH] [--dry_run] [--report]

Examples:
  python -m tenancy_billing.billing_schedule --tenancy_id T-1001
  python -m tenancy_billing.billing_schedule --tenancy_id T-1001 --dry_run --verbose
  python -m tenancy_billing.billing_schedule --tenancy_id T-1001 --today 2024-06-01 --report
"""

import os
import sys
import argparse
import logging
import datetime
from typing import List, Optional

from tenancy_billing.exceptions import InvalidLeaseConfiguration, LedgerApplyError
from tenancy_billing.ledger_store import JsonLedgerStore
from tenancy_billing.report_generator import generate_reports
from tenancy_billing.schedule_service import update_tenancy_schedule
from tenancy_billing.settings_loader import get_ledger_path, load_lease_configuration
from tenancy_billing.status_classifier import classify, summarize_tenancy
from tenancy_billing.utils.helpers import format_currency, parse_date

logger = logging.getLogger(__name__)

LOG_DIR = 'Output'


def configure_logging(verbose: bool = False) -> None:
    """Log to stdout and to Output/billing_schedule.log."""
    os.makedirs(LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(os.path.join(LOG_DIR, 'billing_schedule.log')),
            logging.StreamHandler(sys.stdout)
        ]
    )


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='Tenancy Billing Schedule Engine')

    parser.add_argument(
        '--tenancy_id',
        type=str,
        required=True,
        help='Tenancy identifier (settings file name without .json)'
    )
    parser.add_argument(
        '--ledger',
        type=str,
        default=None,
        help='Path to the ledger JSON file (default: $TENANCY_LEDGER_PATH or Data/ledger.json)'
    )
    parser.add_argument(
        '--settings_dir',
        type=str,
        default=None,
        help='Directory holding portfolio_settings.json and Tenancies/'
    )
    parser.add_argument(
        '--today',
        type=str,
        default=None,
        help='Date to classify the tenancy against, YYYY-MM-DD (default: today)'
    )
    parser.add_argument(
        '--dry_run',
        action='store_true',
        help='Compute the changes without writing the ledger'
    )
    parser.add_argument(
        '--report',
        action='store_true',
        help='Write CSV and JSON schedule reports'
    )
    parser.add_argument(
        '--output_dir',
        type=str,
        default=os.path.join('Output', 'Reports'),
        help='Directory for output reports'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the billing schedule update."""
    args = parse_arguments(argv)
    configure_logging(args.verbose)

    today = parse_date(args.today) if args.today else datetime.date.today()
    if today is None:
        print(f"\nERROR: invalid --today value {args.today!r}")
        return 1

    store = JsonLedgerStore(get_ledger_path(args.ledger))

    try:
        lease_config = load_lease_configuration(args.tenancy_id, args.settings_dir)
        result = update_tenancy_schedule(args.tenancy_id, lease_config, store, dry_run=args.dry_run)
    except InvalidLeaseConfiguration as e:
        logger.error(f"Invalid lease for tenancy {args.tenancy_id}: {str(e)}")
        print(f"\nERROR: invalid lease configuration: {str(e)}")
        return 1
    except LedgerApplyError as e:
        logger.exception(f"Ledger update failed: {str(e)}")
        print(f"\nERROR: {str(e)} (no changes were applied; the update can be retried)")
        return 1

    if result['applied']:
        periods = store.fetch_periods(args.tenancy_id)
    else:
        # Preview the ledger as it would look after the batch
        plan = result['plan']
        preview = {p['identifier']: p for p in result['existing']}
        for period in plan['to_delete']:
            preview.pop(period['identifier'], None)
        for period in plan['to_update'] + plan['to_create']:
            preview[period['identifier']] = period
        periods = sorted(preview.values(), key=lambda p: p['due_date'])

    status = classify(periods, today, lease_config['end_date'])
    totals = summarize_tenancy(periods)
    summary = result['summary']

    print("\n" + "=" * 80)
    print(f"BILLING SCHEDULE {'PREVIEW' if args.dry_run else 'UPDATED'} - tenancy {args.tenancy_id}")
    print("=" * 80)
    print(f"Lease: {lease_config['start_date'].isoformat()} to {lease_config['end_date'].isoformat()}")
    print(f"Periods: {len(periods)} ({summary['created']} created, {summary['changed']} changed, "
          f"{summary['unchanged']} unchanged, {summary['deleted']} deleted)")
    print(f"Total due: {format_currency(totals['total_due'])}")
    print(f"Total paid: {format_currency(totals['total_paid'])}")
    print(f"Balance: {format_currency(totals['balance'])}")
    next_due = status['next_due_date']
    print(f"Status: {status['status']}" + (f" (next due {next_due.isoformat()})" if next_due else ""))

    if args.report:
        report_results = generate_reports(
            args.tenancy_id, periods, today, lease_config['end_date'], args.output_dir
        )
        print("\nReports Generated:")
        print(f"- CSV: {report_results['csv_report_path']}")
        print(f"- JSON: {report_results['json_report_path']}")

    print("=" * 80 + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
