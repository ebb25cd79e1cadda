#!/usr/bin/env python3
"""
Tests for the settings_loader module.

These tests validate the loading and merging of lease settings from the
portfolio and tenancy levels and their conversion to a lease configuration.
"""

import os
import unittest
import json
import tempfile
import shutil
import datetime
from decimal import Decimal

# Add the parent directory to the path so we can import the module
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import tenancy_billing.settings_loader
from tenancy_billing.exceptions import InvalidLeaseConfiguration
from tenancy_billing.settings_loader import (
    build_lease_configuration,
    deep_merge,
    find_all_tenancies,
    get_ledger_path,
    load_lease_configuration,
    load_portfolio_settings,
    load_tenancy_settings,
    merge_settings
)


class TestSettingsLoader(unittest.TestCase):
    """Test cases for the settings_loader module."""

    def setUp(self):
        """Set up test fixtures."""
        # Create a temporary directory for test files
        self.test_dir = tempfile.mkdtemp()
        self.settings_dir = os.path.join(self.test_dir, 'Data', 'Settings')
        os.makedirs(os.path.join(self.settings_dir, 'Tenancies'), exist_ok=True)

        self.create_test_settings()

    def tearDown(self):
        """Tear down test fixtures."""
        shutil.rmtree(self.test_dir)

    def create_test_settings(self):
        """Create test settings files."""
        portfolio_settings = {
            "name": "Test Portfolio",
            "settings": {
                "rent_due_day": 5,
                "recurring_charges": [{"name": "Service charge", "amount": 150}],
                "deposit_amount": ""
            }
        }

        tenancy_settings = {
            "tenancy_id": "T-1001",
            "tenant_name": "Test Tenant",
            "lease_start": "01/15/2024",
            "lease_end": "2024-12-31",
            "settings": {
                "monthly_rent": "2500.50",
                "deposit_amount": 5000,
                "rent_due_day": "",  # Empty values keep the portfolio default
                "lease_note": "Pets allowed"
            }
        }

        no_charges = {
            "tenancy_id": "T-1002",
            "tenant_name": "Second Tenant",
            "lease_start": "2024-03-01",
            "lease_end": "2024-08-31",
            "settings": {
                "monthly_rent": 1800,
                "rent_due_day": 1,
                "recurring_charges": []  # Explicitly clears the portfolio charges
            }
        }

        with open(os.path.join(self.settings_dir, 'portfolio_settings.json'), 'w') as f:
            json.dump(portfolio_settings, f)

        with open(os.path.join(self.settings_dir, 'Tenancies', 'T-1001.json'), 'w') as f:
            json.dump(tenancy_settings, f)

        with open(os.path.join(self.settings_dir, 'Tenancies', 'T-1002.json'), 'w') as f:
            json.dump(no_charges, f)

    def test_deep_merge(self):
        """Test the deep_merge function."""
        dict1 = {
            "a": 1,
            "b": {
                "c": 2,
                "d": 3
            }
        }

        dict2 = {
            "b": {
                "c": 4,  # Override
                "e": 5   # New nested key
            },
            "f": 6,      # New top-level key
            "a": ""      # Empty values do not override
        }

        merged = deep_merge(dict1, dict2)

        self.assertEqual(merged["a"], 1)
        self.assertEqual(merged["b"]["c"], 4)
        self.assertEqual(merged["b"]["d"], 3)
        self.assertEqual(merged["b"]["e"], 5)
        self.assertEqual(merged["f"], 6)

    def test_load_portfolio_settings(self):
        settings = load_portfolio_settings(self.settings_dir)

        self.assertEqual(settings["name"], "Test Portfolio")
        self.assertEqual(settings["settings"]["rent_due_day"], 5)

    def test_load_portfolio_settings_defaults(self):
        settings = load_portfolio_settings(os.path.join(self.test_dir, 'missing'))

        self.assertEqual(settings["settings"]["rent_due_day"], 1)
        self.assertEqual(settings["settings"]["recurring_charges"], [])

    def test_module_path_is_used_by_default(self):
        """The base path constant can be patched, as the CLI and scripts rely on it."""
        original_path = tenancy_billing.settings_loader.SETTINGS_BASE_PATH
        tenancy_billing.settings_loader.SETTINGS_BASE_PATH = self.settings_dir

        try:
            settings = load_tenancy_settings("T-1001")
            self.assertEqual(settings["tenant_name"], "Test Tenant")
        finally:
            tenancy_billing.settings_loader.SETTINGS_BASE_PATH = original_path

    def test_load_missing_tenancy_settings(self):
        self.assertEqual(load_tenancy_settings("T-9999", self.settings_dir), {})

    def test_merge_settings(self):
        merged = merge_settings("T-1001", self.settings_dir)

        self.assertEqual(merged["tenancy_id"], "T-1001")
        self.assertEqual(merged["lease_start"], "01/15/2024")
        self.assertEqual(merged["settings"]["rent_due_day"], 5)                       # From portfolio
        self.assertEqual(merged["settings"]["monthly_rent"], "2500.50")               # From tenancy
        self.assertEqual(merged["settings"]["deposit_amount"], 5000)                  # From tenancy
        self.assertEqual(merged["settings"]["recurring_charges"][0]["amount"], 150)  # From portfolio

        cleared = merge_settings("T-1002", self.settings_dir)
        self.assertEqual(cleared["settings"]["recurring_charges"], [])

    def test_load_lease_configuration(self):
        config = load_lease_configuration("T-1001", self.settings_dir)

        self.assertEqual(config["start_date"], datetime.date(2024, 1, 15))
        self.assertEqual(config["end_date"], datetime.date(2024, 12, 31))
        self.assertEqual(config["due_day"], 5)
        self.assertEqual(config["monthly_rent"], Decimal("2500.50"))
        self.assertEqual(config["deposit_amount"], Decimal("5000"))
        self.assertEqual(config["recurring_charges"], [{"name": "Service charge", "amount": Decimal("150")}])
        self.assertEqual(config["lease_note"], "Pets allowed")

    def test_build_rejects_invalid_settings(self):
        base = {
            "lease_start": "2024-01-01",
            "lease_end": "2024-06-30",
            "settings": {"monthly_rent": 1000, "rent_due_day": 1}
        }

        for key, value in (("rent_due_day", 0), ("rent_due_day", "first"),
                           ("rent_due_day", 15.7), ("rent_due_day", "15.7"), ("rent_due_day", True),
                           ("recurring_charges", [200]), ("recurring_charges", {"name": "Water"}),
                           ("monthly_rent", "lots"), ("monthly_rent", -5), ("monthly_rent", "")):
            settings = json.loads(json.dumps(base))
            settings["settings"][key] = value
            with self.assertRaises(InvalidLeaseConfiguration):
                build_lease_configuration(settings)

        inverted = dict(base, lease_end="2023-12-31")
        with self.assertRaises(InvalidLeaseConfiguration):
            build_lease_configuration(inverted)

        undated = dict(base, lease_start="not a date")
        with self.assertRaises(InvalidLeaseConfiguration):
            build_lease_configuration(undated)

    def test_unnamed_charge_rejected(self):
        settings = {
            "lease_start": "2024-01-01",
            "lease_end": "2024-06-30",
            "settings": {"monthly_rent": 1000, "rent_due_day": 1,
                         "recurring_charges": [{"name": " ", "amount": 10}]}
        }
        with self.assertRaises(InvalidLeaseConfiguration):
            build_lease_configuration(settings)

    def test_find_all_tenancies(self):
        tenancies = find_all_tenancies(self.settings_dir)
        self.assertEqual(tenancies, [("T-1001", "Test Tenant"), ("T-1002", "Second Tenant")])

    def test_get_ledger_path(self):
        self.assertEqual(get_ledger_path("custom.json"), "custom.json")

        original = os.environ.get("TENANCY_LEDGER_PATH")
        os.environ["TENANCY_LEDGER_PATH"] = "/tmp/env-ledger.json"
        try:
            self.assertEqual(get_ledger_path(), "/tmp/env-ledger.json")
        finally:
            if original is None:
                del os.environ["TENANCY_LEDGER_PATH"]
            else:
                os.environ["TENANCY_LEDGER_PATH"] = original


if __name__ == '__main__':
    unittest.main()
