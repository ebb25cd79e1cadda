#!/usr/bin/env python3
"""
Billing Period Generator Module

This module turns a lease configuration into one billing period per calendar
month the lease touches. Partial first and last months are pro-rated against
the billing cycle that starts on the rent due date; a lease that starts and
ends in the same month is pro-rated against the calendar month.

Generated periods carry no identifier and no amount paid. Those belong to the
ledger and are attached by the ledger reconciler.
"""

import datetime
import logging
from decimal import Decimal
from typing import Dict, Any, List, Optional, Tuple

from tenancy_billing.calendar_utils import (
    clamped_month_date,
    day_difference,
    days_in_month,
    month_key,
    months_between,
    next_month,
)
from tenancy_billing.exceptions import InvalidLeaseConfiguration
from tenancy_billing.utils.helpers import ZERO, format_month_key, quantize_money

# Configure logging
logger = logging.getLogger(__name__)

SINGLE_MONTH_NOTE = "Pro-rated for {days} days."
FIRST_MONTH_NOTE = "Pro-rated for {days} days in the first month."
FINAL_MONTH_NOTE = "Pro-rated for {days} days in the final month."
ENDED_BEFORE_DUE_NOTE = "Lease ended before the rent due date for this month."


def validate_lease_configuration(config: Dict[str, Any]) -> None:
    """
    Check that a lease configuration can produce a schedule.

    Args:
        config: Lease configuration dictionary

    Raises:
        InvalidLeaseConfiguration: If the due day is outside 1-31 or the
            lease ends before it starts
    """
    start_date = config.get('start_date')
    end_date = config.get('end_date')
    due_day = config.get('due_day')

    if not isinstance(start_date, datetime.date) or not isinstance(end_date, datetime.date):
        raise InvalidLeaseConfiguration("Lease start and end dates are required")

    if isinstance(due_day, bool) or not isinstance(due_day, int) or not (1 <= due_day <= 31):
        raise InvalidLeaseConfiguration(f"Rent due day must be between 1 and 31, got {due_day!r}")

    if end_date < start_date:
        raise InvalidLeaseConfiguration(
            f"Lease end date {end_date.isoformat()} is before start date {start_date.isoformat()}"
        )

    amounts = [('monthly_rent', config.get('monthly_rent')),
               ('deposit_amount', config.get('deposit_amount') or ZERO)]
    for charge in config.get('recurring_charges') or []:
        amounts.append((f"charge {charge.get('name')!r}", charge.get('amount')))

    for label, amount in amounts:
        if not isinstance(amount, Decimal) or amount < ZERO:
            raise InvalidLeaseConfiguration(f"{label} must be a non-negative Decimal, got {amount!r}")


def _prorate(monthly_rent: Decimal, occupied_days: int, period_days: int) -> Decimal:
    return monthly_rent * Decimal(occupied_days) / Decimal(period_days)


def calculate_period_rent(
    config: Dict[str, Any],
    year: int,
    month: int,
    due_date: datetime.date
) -> Tuple[Decimal, Optional[str]]:
    """
    Calculate the rent and proration note for one month of the lease.

    Args:
        config: Validated lease configuration
        year: Year of the billing month
        month: Month of the billing month
        due_date: Rent due date within the billing month

    Returns:
        Tuple of (unrounded rent amount, proration note or None)
    """
    start_date = config['start_date']
    end_date = config['end_date']
    due_day = config['due_day']
    monthly_rent = config['monthly_rent']

    is_first = (year, month) == month_key(start_date)
    is_last = (year, month) == month_key(end_date)

    if is_first and is_last:
        occupied_days = end_date.day - start_date.day + 1
        rent = _prorate(monthly_rent, occupied_days, days_in_month(year, month))
        return rent, SINGLE_MONTH_NOTE.format(days=occupied_days)

    if is_first:
        # Start aligned with the billing cycle
        if start_date.day == due_day:
            return monthly_rent, None

        next_due = clamped_month_date(*next_month(year, month), due_day)
        period_end = next_due - datetime.timedelta(days=1)
        period_days = day_difference(due_date, period_end) + 1
        occupied_days = day_difference(start_date, period_end) + 1
        rent = _prorate(monthly_rent, occupied_days, period_days)
        return rent, FIRST_MONTH_NOTE.format(days=occupied_days)

    if is_last:
        if end_date.day < due_day:
            return ZERO, ENDED_BEFORE_DUE_NOTE

        occupied_days = end_date.day - due_day + 1
        next_due = clamped_month_date(*next_month(year, month), due_day)
        period_days = day_difference(due_date, next_due)
        rent = _prorate(monthly_rent, occupied_days, period_days)
        return rent, FINAL_MONTH_NOTE.format(days=occupied_days)

    return monthly_rent, None


def generate(config: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Generate the billing periods for a lease.

    Args:
        config: Lease configuration dictionary with start_date, end_date,
            due_day, monthly_rent, recurring_charges, deposit_amount and an
            optional lease_note

    Returns:
        List of billing period dictionaries ordered by month

    Raises:
        InvalidLeaseConfiguration: If the configuration is invalid
    """
    validate_lease_configuration(config)

    start_date = config['start_date']
    end_date = config['end_date']
    due_day = config['due_day']
    charges = config.get('recurring_charges') or []
    deposit_amount = config.get('deposit_amount') or ZERO
    lease_note = config.get('lease_note') or None

    periods = []
    for year, month in months_between(start_date, end_date):
        due_date = clamped_month_date(year, month, due_day)
        is_first = (year, month) == month_key(start_date)

        rent, proration_note = calculate_period_rent(config, year, month, due_date)
        note = proration_note or (lease_note if is_first else None)

        period = {
            'month_key': (year, month),
            'due_date': due_date,
            'rent_amount': quantize_money(rent),
            'charges': [{'name': c['name'], 'amount': c['amount']} for c in charges],
            'deposit_amount': deposit_amount if is_first else ZERO,
            'note': note,
        }
        periods.append(period)

        logger.debug(
            f"Period {format_month_key((year, month))}: due {due_date.isoformat()}, "
            f"rent {period['rent_amount']}, note {note!r}"
        )

    logger.info(
        f"Generated {len(periods)} billing periods from {start_date.isoformat()} "
        f"to {end_date.isoformat()} (due day {due_day})"
    )
    return periods


def period_total(period: Dict[str, Any]) -> Decimal:
    """
    Total amount billed for a period: rent, recurring charges and deposit.

    Args:
        period: Billing period dictionary

    Returns:
        Total amount due for the period
    """
    charges_total = sum((c['amount'] for c in period.get('charges') or []), ZERO)
    return period['rent_amount'] + charges_total + period.get('deposit_amount', ZERO)


def schedule_total(periods: List[Dict[str, Any]]) -> Decimal:
    """Total amount billed across a list of periods."""
    return sum((period_total(p) for p in periods), ZERO)
