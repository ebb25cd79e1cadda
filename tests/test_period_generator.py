#!/usr/bin/env python3
"""
Tests for the period_generator module.

These tests cover each proration case, rounding, deposits, notes and the
rejection of invalid lease configurations.
"""

import os
import sys
import unittest
import datetime
from decimal import Decimal

# Add the parent directory to the path so we can import the module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tenancy_billing.calendar_utils import months_between
from tenancy_billing.exceptions import InvalidLeaseConfiguration
from tenancy_billing.period_generator import (
    ENDED_BEFORE_DUE_NOTE,
    generate,
    period_total,
    schedule_total,
)


def make_config(start, end, due_day=1, rent='3000', charges=None, deposit='0', note=None):
    return {
        'start_date': start,
        'end_date': end,
        'due_day': due_day,
        'monthly_rent': Decimal(rent),
        'recurring_charges': charges or [],
        'deposit_amount': Decimal(deposit),
        'lease_note': note,
    }


class TestGenerate(unittest.TestCase):
    """Test cases for generate()."""

    def test_single_month_proration(self):
        """Day 10 to day 20 of a 30-day month bills 11/30 of the rent."""
        config = make_config(datetime.date(2024, 6, 10), datetime.date(2024, 6, 20), due_day=10)
        periods = generate(config)

        self.assertEqual(len(periods), 1)
        self.assertEqual(periods[0]['rent_amount'], Decimal('1100.00'))
        self.assertEqual(periods[0]['note'], "Pro-rated for 11 days.")
        self.assertEqual(periods[0]['due_date'], datetime.date(2024, 6, 10))

    def test_period_count_matches_months_covered(self):
        start = datetime.date(2024, 1, 15)
        end = datetime.date(2024, 12, 10)
        periods = generate(make_config(start, end, due_day=15))

        self.assertEqual(len(periods), len(months_between(start, end)))
        self.assertEqual(len(periods), 12)
        self.assertEqual([p['month_key'] for p in periods], months_between(start, end))

    def test_deposit_only_on_first_period(self):
        config = make_config(datetime.date(2024, 1, 1), datetime.date(2024, 6, 30), deposit='6000')
        periods = generate(config)

        with_deposit = [p for p in periods if p['deposit_amount'] != 0]
        self.assertEqual(len(with_deposit), 1)
        self.assertIs(with_deposit[0], periods[0])
        self.assertEqual(periods[0]['deposit_amount'], Decimal('6000'))

    def test_last_month_ending_before_due_day_is_zero(self):
        config = make_config(datetime.date(2024, 1, 10), datetime.date(2024, 4, 3), due_day=10)
        periods = generate(config)

        last = periods[-1]
        self.assertEqual(last['month_key'], (2024, 4))
        self.assertEqual(last['rent_amount'], Decimal('0.00'))
        self.assertEqual(last['note'], ENDED_BEFORE_DUE_NOTE)

    def test_last_month_proration(self):
        """Ending 15 March with rent due on the 1st bills 15 of March's 31 days."""
        config = make_config(datetime.date(2024, 1, 1), datetime.date(2024, 3, 15), rent='3100')
        periods = generate(config)

        self.assertEqual(periods[-1]['rent_amount'], Decimal('1500.00'))
        self.assertEqual(periods[-1]['note'], "Pro-rated for 15 days in the final month.")

    def test_first_month_aligned_with_due_day(self):
        config = make_config(datetime.date(2024, 1, 10), datetime.date(2024, 3, 31), due_day=10,
                             note='Keys collected at the office')
        periods = generate(config)

        self.assertEqual(periods[0]['rent_amount'], Decimal('3000.00'))
        self.assertEqual(periods[0]['note'], 'Keys collected at the office')
        self.assertIsNone(periods[1]['note'])

    def test_first_month_started_after_due_day(self):
        """Starting 20 January with rent due on the 1st bills 12 of 31 days."""
        config = make_config(datetime.date(2024, 1, 20), datetime.date(2024, 4, 30), rent='3100',
                             note='Should be replaced by the proration note')
        periods = generate(config)

        self.assertEqual(periods[0]['rent_amount'], Decimal('1200.00'))
        self.assertEqual(periods[0]['note'], "Pro-rated for 12 days in the first month.")

    def test_first_month_started_before_due_day(self):
        """Starting 5 January with rent due on the 10th bills 5 Jan to 9 Feb over the 31-day cycle."""
        config = make_config(datetime.date(2024, 1, 5), datetime.date(2024, 4, 30), due_day=10, rent='3100')
        periods = generate(config)

        self.assertEqual(periods[0]['rent_amount'], Decimal('3600.00'))
        self.assertEqual(periods[0]['note'], "Pro-rated for 36 days in the first month.")

    def test_middle_months_full_rent(self):
        config = make_config(datetime.date(2024, 1, 20), datetime.date(2024, 5, 10), due_day=5)
        periods = generate(config)

        for period in periods[1:-1]:
            self.assertEqual(period['rent_amount'], Decimal('3000.00'))
            self.assertIsNone(period['note'])

    def test_due_date_clamped_to_month_end(self):
        config = make_config(datetime.date(2024, 1, 31), datetime.date(2024, 4, 30), due_day=31)
        periods = generate(config)

        due_dates = [p['due_date'] for p in periods]
        self.assertEqual(due_dates, [
            datetime.date(2024, 1, 31),
            datetime.date(2024, 2, 29),
            datetime.date(2024, 3, 31),
            datetime.date(2024, 4, 30),
        ])

    def test_rounding_is_half_up(self):
        """10.01 for 15 of 30 days is 5.005, which rounds up to 5.01."""
        config = make_config(datetime.date(2024, 6, 1), datetime.date(2024, 6, 15), rent='10.01')
        periods = generate(config)

        self.assertEqual(periods[0]['rent_amount'], Decimal('5.01'))

    def test_charges_attached_to_every_period(self):
        charges = [{'name': 'Service charge', 'amount': Decimal('150')},
                   {'name': 'Parking', 'amount': Decimal('50')}]
        config = make_config(datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), charges=charges)
        periods = generate(config)

        for period in periods:
            self.assertEqual(period['charges'], charges)
            self.assertIsNot(period['charges'], charges)

        charges[0]['amount'] = Decimal('999')
        self.assertEqual(periods[0]['charges'][0]['amount'], Decimal('150'))

    def test_totals(self):
        charges = [{'name': 'Service charge', 'amount': Decimal('100')}]
        config = make_config(datetime.date(2024, 1, 1), datetime.date(2024, 2, 29),
                             rent='1000', charges=charges, deposit='500')
        periods = generate(config)

        self.assertEqual(period_total(periods[0]), Decimal('1600'))
        self.assertEqual(period_total(periods[1]), Decimal('1100'))
        self.assertEqual(schedule_total(periods), Decimal('2700'))

    def test_invalid_due_day(self):
        for due_day in (0, 32, -1):
            with self.assertRaises(InvalidLeaseConfiguration):
                generate(make_config(datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), due_day=due_day))

    def test_inverted_dates(self):
        with self.assertRaises(InvalidLeaseConfiguration):
            generate(make_config(datetime.date(2024, 3, 1), datetime.date(2024, 2, 28)))

    def test_negative_rent(self):
        with self.assertRaises(InvalidLeaseConfiguration):
            generate(make_config(datetime.date(2024, 1, 1), datetime.date(2024, 3, 31), rent='-1'))

    def test_generate_is_repeatable(self):
        config = make_config(datetime.date(2024, 1, 17), datetime.date(2025, 1, 9), due_day=28,
                             deposit='3000', note='Lease note')
        self.assertEqual(generate(config), generate(config))


if __name__ == '__main__':
    unittest.main()
