#!/usr/bin/env python3
"""
Report Generator Module

This module exports a tenancy's billing schedule as CSV and JSON reports,
one row per billing period with its balance and payment status.
"""

import os
import csv
import json
import logging
import datetime
from typing import Dict, Any, List, Optional

from tenancy_billing.period_generator import period_total
from tenancy_billing.status_classifier import (
    amount_paid,
    classify,
    period_payment_status,
    summarize_tenancy,
)
from tenancy_billing.utils.helpers import ZERO, format_month_key

# Configure logging
logger = logging.getLogger(__name__)

# Path for output reports
REPORTS_PATH = os.path.join('Output', 'Reports')

REPORT_COLUMNS = [
    'identifier', 'month', 'due_date', 'rent_amount', 'charges_total',
    'deposit_amount', 'total_due', 'amount_paid', 'balance',
    'payment_status', 'note'
]


def generate_schedule_rows(periods: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Build report rows for a list of persisted billing periods.

    Args:
        periods: Persisted billing periods

    Returns:
        List of report rows with amounts as strings
    """
    rows = []
    for period in sorted(periods, key=lambda p: tuple(p['month_key'])):
        total_due = period_total(period)
        paid = amount_paid(period)
        charges_total = sum((c['amount'] for c in period.get('charges') or []), ZERO)

        rows.append({
            'identifier': period.get('identifier', ''),
            'month': format_month_key(tuple(period['month_key'])),
            'due_date': period['due_date'].isoformat(),
            'rent_amount': str(period['rent_amount']),
            'charges_total': str(charges_total),
            'deposit_amount': str(period.get('deposit_amount', ZERO)),
            'total_due': str(total_due),
            'amount_paid': str(paid),
            'balance': str(total_due - paid),
            'payment_status': period_payment_status(period),
            'note': period.get('note') or '',
        })
    return rows


def _default_path(tenancy_id: str, extension: str, output_dir: Optional[str]) -> str:
    directory = output_dir or REPORTS_PATH
    os.makedirs(directory, exist_ok=True)
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    return os.path.join(directory, f"billing_schedule_{tenancy_id}_{timestamp}.{extension}")


def generate_csv_report(
    rows: List[Dict[str, Any]],
    output_path: str
) -> str:
    """
    Write schedule rows to a CSV file.

    Args:
        rows: Report rows from generate_schedule_rows()
        output_path: Output path for the CSV file

    Returns:
        Path to the generated CSV file
    """
    with open(output_path, 'w', newline='', encoding='utf-8') as csvfile:
        writer = csv.DictWriter(csvfile, fieldnames=REPORT_COLUMNS)
        writer.writeheader()
        for row in rows:
            writer.writerow({col: row.get(col, '') for col in REPORT_COLUMNS})

    logger.info(f"Generated CSV report with {len(rows)} rows: {output_path}")
    return output_path


def generate_json_report(
    tenancy_id: str,
    rows: List[Dict[str, Any]],
    status: Dict[str, Any],
    totals: Dict[str, Any],
    output_path: str
) -> str:
    """
    Write schedule rows with the tenancy status and totals to a JSON file.

    Returns:
        Path to the generated JSON file
    """
    next_due = status.get('next_due_date')
    report = {
        'tenancy_id': tenancy_id,
        'generated_at': datetime.datetime.now().isoformat(timespec='seconds'),
        'status': status['status'],
        'next_due_date': next_due.isoformat() if next_due else None,
        'total_due': str(totals['total_due']),
        'total_paid': str(totals['total_paid']),
        'balance': str(totals['balance']),
        'periods': rows,
    }

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(report, f, indent=2)

    logger.info(f"Generated JSON report: {output_path}")
    return output_path


def generate_reports(
    tenancy_id: str,
    periods: List[Dict[str, Any]],
    today: datetime.date,
    lease_end_date: Optional[datetime.date] = None,
    output_dir: Optional[str] = None
) -> Dict[str, str]:
    """
    Generate CSV and JSON schedule reports for a tenancy.

    Args:
        tenancy_id: Tenancy identifier
        periods: Persisted billing periods of the tenancy
        today: Date used to classify the tenancy
        lease_end_date: Optional last day of the lease
        output_dir: Optional directory for the reports

    Returns:
        Dictionary with 'csv_report_path' and 'json_report_path'
    """
    rows = generate_schedule_rows(periods)
    status = classify(periods, today, lease_end_date)
    totals = summarize_tenancy(periods)

    csv_path = generate_csv_report(rows, _default_path(tenancy_id, 'csv', output_dir))
    json_path = generate_json_report(
        tenancy_id, rows, status, totals, _default_path(tenancy_id, 'json', output_dir)
    )

    return {
        'csv_report_path': csv_path,
        'json_report_path': json_path,
    }
