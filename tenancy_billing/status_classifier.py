#!/usr/bin/env python3
"""
Tenancy Status Classifier Module

Derives a tenancy's payment status and next due date from its billing
periods. Used for display and alerting only; nothing here writes to the
ledger.
"""

import datetime
import logging
from decimal import Decimal
from typing import Dict, Any, List, Optional

from tenancy_billing.period_generator import period_total
from tenancy_billing.utils.helpers import ZERO

# Configure logging
logger = logging.getLogger(__name__)

STATUS_OVERDUE = 'Overdue'
STATUS_UPCOMING = 'Upcoming'
STATUS_PAID_UP = 'PaidUp'
STATUS_COMPLETED = 'Completed'
STATUS_UNKNOWN = 'Unknown'

PAYMENT_PAID = 'Paid'
PAYMENT_PARTIAL = 'Partial'
PAYMENT_UNPAID = 'Unpaid'


def amount_paid(period: Dict[str, Any]) -> Decimal:
    return period.get('amount_paid') or ZERO


def is_unpaid(period: Dict[str, Any]) -> bool:
    """True if less than the period's total has been paid."""
    return amount_paid(period) < period_total(period)


def period_payment_status(period: Dict[str, Any]) -> str:
    """
    Get the payment status of a single period.

    Args:
        period: Persisted billing period

    Returns:
        'Paid', 'Partial' or 'Unpaid'
    """
    if not is_unpaid(period):
        return PAYMENT_PAID
    if amount_paid(period) > ZERO:
        return PAYMENT_PARTIAL
    return PAYMENT_UNPAID


def classify(
    periods: List[Dict[str, Any]],
    today: datetime.date,
    lease_end_date: Optional[datetime.date] = None
) -> Dict[str, Any]:
    """
    Classify a tenancy's payment status.

    The earliest unpaid period due before today makes the tenancy overdue,
    even when a later unpaid period is still upcoming. Without unpaid
    periods the tenancy is completed once the lease has ended and paid up
    before that.

    Args:
        periods: Persisted billing periods of the tenancy
        today: Date to classify against
        lease_end_date: Last day of the lease; defaults to the latest due date

    Returns:
        Dictionary with 'status' and 'next_due_date' (None unless overdue
        or upcoming)
    """
    if not periods:
        return {'status': STATUS_UNKNOWN, 'next_due_date': None}

    unpaid = sorted((p for p in periods if is_unpaid(p)), key=lambda p: p['due_date'])

    overdue = next((p for p in unpaid if p['due_date'] < today), None)
    if overdue is not None:
        return {'status': STATUS_OVERDUE, 'next_due_date': overdue['due_date']}

    upcoming = next((p for p in unpaid if p['due_date'] >= today), None)
    if upcoming is not None:
        return {'status': STATUS_UPCOMING, 'next_due_date': upcoming['due_date']}

    if lease_end_date is None:
        lease_end_date = max(p['due_date'] for p in periods)

    if lease_end_date < today:
        return {'status': STATUS_COMPLETED, 'next_due_date': None}
    return {'status': STATUS_PAID_UP, 'next_due_date': None}


def summarize_tenancy(periods: List[Dict[str, Any]]) -> Dict[str, Decimal]:
    """
    Total what a tenancy has been billed and has paid.

    Args:
        periods: Persisted billing periods of the tenancy

    Returns:
        Dictionary with 'total_due', 'total_paid' and 'balance'
    """
    total_due = sum((period_total(p) for p in periods), ZERO)
    total_paid = sum((amount_paid(p) for p in periods), ZERO)

    return {
        'total_due': total_due,
        'total_paid': total_paid,
        'balance': total_due - total_paid,
    }
