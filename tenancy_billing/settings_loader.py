#!/usr/bin/env python3
"""
Settings Loader Module

This module loads and merges lease settings from two hierarchical levels:
1. Portfolio settings (global defaults, e.g. the usual rent due day)
2. Tenancy settings (override portfolio defaults)

The merged settings are converted into the lease configuration used by the
period generator.
"""

import os
import json
import logging
from copy import deepcopy
from typing import Dict, Any, Optional, List, Tuple

from tenancy_billing.exceptions import InvalidLeaseConfiguration
from tenancy_billing.ledger_store import DEFAULT_LEDGER_PATH
from tenancy_billing.period_generator import validate_lease_configuration
from tenancy_billing.utils.helpers import ZERO, load_json, parse_date, to_decimal

# Configure logging
logger = logging.getLogger(__name__)

# Constants
SETTINGS_BASE_PATH = os.environ.get('TENANCY_SETTINGS_PATH', os.path.join('Data', 'Settings'))
PORTFOLIO_SETTINGS_FILE = 'portfolio_settings.json'
TENANCY_SETTINGS_DIR = 'Tenancies'
LEDGER_PATH_ENV = 'TENANCY_LEDGER_PATH'

DEFAULT_PORTFOLIO_SETTINGS = {
    "name": "Default Portfolio",
    "settings": {
        "rent_due_day": 1,
        "recurring_charges": [],
        "deposit_amount": "",
        "lease_note": ""
    }
}


def deep_merge(dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with dict2 values overriding dict1 values when both exist.

    Args:
        dict1: Base dictionary
        dict2: Dictionary to merge on top of dict1

    Returns:
        New dictionary with merged values
    """
    result = deepcopy(dict1)

    for key, value in dict2.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            result[key] = deep_merge(result[key], value)
        else:
            # Only override if the value is not empty/None
            if value is not None and value != "":
                result[key] = deepcopy(value)

    return result


def _settings_dir(settings_dir: Optional[str]) -> str:
    return settings_dir or SETTINGS_BASE_PATH


def load_portfolio_settings(settings_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load the portfolio-level settings.

    Args:
        settings_dir: Optional settings directory, defaults to SETTINGS_BASE_PATH

    Returns:
        Dictionary containing portfolio settings
    """
    path = os.path.join(_settings_dir(settings_dir), PORTFOLIO_SETTINGS_FILE)
    if not os.path.exists(path):
        logger.warning(f"Portfolio settings not found at {path}. Using defaults.")
        return deepcopy(DEFAULT_PORTFOLIO_SETTINGS)

    try:
        return deep_merge(DEFAULT_PORTFOLIO_SETTINGS, load_json(path))
    except json.JSONDecodeError:
        logger.warning("Could not load portfolio settings. Using defaults.")
        return deepcopy(DEFAULT_PORTFOLIO_SETTINGS)


def load_tenancy_settings(tenancy_id: str, settings_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load tenancy-level settings.

    Args:
        tenancy_id: Tenancy identifier
        settings_dir: Optional settings directory, defaults to SETTINGS_BASE_PATH

    Returns:
        Dictionary containing tenancy settings or empty dict if not found
    """
    path = os.path.join(_settings_dir(settings_dir), TENANCY_SETTINGS_DIR, f"{tenancy_id}.json")

    try:
        return load_json(path)
    except (FileNotFoundError, json.JSONDecodeError):
        logger.warning(f"Could not load tenancy settings for tenancy {tenancy_id}")
        return {}


def find_all_tenancies(settings_dir: Optional[str] = None) -> List[Tuple[str, str]]:
    """Find all tenancies with a settings file.

    Args:
        settings_dir: Optional settings directory, defaults to SETTINGS_BASE_PATH

    Returns:
        List of tuples containing (tenancy_id, tenant_name)
    """
    tenancy_dir = os.path.join(_settings_dir(settings_dir), TENANCY_SETTINGS_DIR)

    if not os.path.exists(tenancy_dir):
        logger.warning(f"Tenancy settings directory not found: {tenancy_dir}")
        return []

    tenancies = []
    for filename in sorted(os.listdir(tenancy_dir)):
        if not filename.endswith('.json'):
            continue
        try:
            data = load_json(os.path.join(tenancy_dir, filename))
        except (FileNotFoundError, json.JSONDecodeError):
            logger.warning(f"Could not process tenancy file: {filename}")
            continue

        tenancy_id = data.get('tenancy_id') or os.path.splitext(filename)[0]
        tenancies.append((str(tenancy_id), data.get('tenant_name', '')))

    return tenancies


def merge_settings(tenancy_id: str, settings_dir: Optional[str] = None) -> Dict[str, Any]:
    """Load and merge settings from the portfolio and tenancy levels.

    Args:
        tenancy_id: Tenancy identifier
        settings_dir: Optional settings directory, defaults to SETTINGS_BASE_PATH

    Returns:
        Dictionary with merged settings plus the tenancy's lease dates
    """
    portfolio_settings = load_portfolio_settings(settings_dir)
    tenancy_data = load_tenancy_settings(tenancy_id, settings_dir)

    result = {
        "tenancy_id": str(tenancy_data.get("tenancy_id") or tenancy_id),
        "tenant_name": tenancy_data.get("tenant_name", ""),
        "lease_start": tenancy_data.get("lease_start", ""),
        "lease_end": tenancy_data.get("lease_end", ""),
        "settings": deep_merge(portfolio_settings.get("settings", {}), tenancy_data.get("settings", {}))
    }

    logger.debug(f"Merged settings for tenancy {tenancy_id}: {result}")
    return result


def _required_amount(value: Any, label: str):
    if value is None or value == "":
        return ZERO
    amount = to_decimal(value)
    if amount is None:
        raise InvalidLeaseConfiguration(f"{label} is not a number: {value!r}")
    return amount


def build_lease_configuration(settings: Dict[str, Any]) -> Dict[str, Any]:
    """Convert merged settings into a validated lease configuration.

    Args:
        settings: Merged settings as returned by merge_settings()

    Returns:
        Lease configuration dictionary for the period generator

    Raises:
        InvalidLeaseConfiguration: If dates, due day or amounts are missing
            or invalid
    """
    lease_settings = settings.get("settings", {})

    start_date = parse_date(settings.get("lease_start"))
    end_date = parse_date(settings.get("lease_end"))
    if start_date is None or end_date is None:
        raise InvalidLeaseConfiguration(
            f"Invalid lease dates: start={settings.get('lease_start')!r}, end={settings.get('lease_end')!r}"
        )

    due_day = lease_settings.get("rent_due_day")
    if isinstance(due_day, bool) or (isinstance(due_day, float) and not due_day.is_integer()):
        raise InvalidLeaseConfiguration(f"Invalid rent due day: {due_day!r}")
    try:
        due_day = int(due_day)
    except (TypeError, ValueError) as e:
        raise InvalidLeaseConfiguration(f"Invalid rent due day: {due_day!r}") from e

    monthly_rent = lease_settings.get("monthly_rent")
    if monthly_rent is None or monthly_rent == "":
        raise InvalidLeaseConfiguration("Monthly rent is required")

    charges = []
    recurring_charges = lease_settings.get("recurring_charges") or []
    if not isinstance(recurring_charges, list):
        raise InvalidLeaseConfiguration(f"Recurring charges must be a list: {recurring_charges!r}")

    for charge in recurring_charges:
        if not isinstance(charge, dict):
            raise InvalidLeaseConfiguration(f"Recurring charge must be an object with name and amount: {charge!r}")
        name = str(charge.get("name") or "").strip()
        if not name:
            raise InvalidLeaseConfiguration(f"Recurring charge without a name: {charge!r}")
        charges.append({"name": name, "amount": _required_amount(charge.get("amount"), f"Charge {name}")})

    config = {
        "start_date": start_date,
        "end_date": end_date,
        "due_day": due_day,
        "monthly_rent": _required_amount(monthly_rent, "Monthly rent"),
        "recurring_charges": charges,
        "deposit_amount": _required_amount(lease_settings.get("deposit_amount"), "Deposit"),
        "lease_note": lease_settings.get("lease_note") or None,
    }

    validate_lease_configuration(config)
    return config


def load_lease_configuration(tenancy_id: str, settings_dir: Optional[str] = None) -> Dict[str, Any]:
    """Main function to load the lease configuration of a tenancy.

    Args:
        tenancy_id: Tenancy identifier
        settings_dir: Optional settings directory

    Returns:
        Validated lease configuration dictionary
    """
    settings = merge_settings(tenancy_id, settings_dir)
    config = build_lease_configuration(settings)
    logger.info(
        f"Loaded lease for tenancy {tenancy_id}: {config['start_date'].isoformat()} to "
        f"{config['end_date'].isoformat()}, rent {config['monthly_rent']} due on day {config['due_day']}"
    )
    return config


def get_ledger_path(override: Optional[str] = None) -> str:
    """Resolve the ledger file path from an override, the environment or the default."""
    return override or os.environ.get(LEDGER_PATH_ENV, DEFAULT_LEDGER_PATH)
