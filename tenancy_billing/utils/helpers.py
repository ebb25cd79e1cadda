#!/usr/bin/env python3
"""
Helper utilities for the tenancy billing engine.

This module contains common utility functions used throughout the billing
schedule process: JSON loading, date parsing and money handling.
"""

import json
import logging
import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Dict, Any, Optional, Tuple, Union

# Configure logging
logger = logging.getLogger(__name__)

MONEY_QUANTIZE = Decimal('0.01')  # Round to 2 decimal places
ZERO = Decimal('0')


def load_json(file_path: str) -> Dict[str, Any]:
    """
    Load a JSON file and return its contents.

    Args:
        file_path: Path to the JSON file

    Returns:
        Dictionary containing the JSON file contents

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file isn't valid JSON
    """
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        logger.error(f"File not found: {file_path}")
        raise
    except json.JSONDecodeError:
        logger.error(f"Invalid JSON in file: {file_path}")
        raise


def parse_date(date_str: Union[str, datetime.date, None]) -> Optional[datetime.date]:
    """
    Parse a date string in various formats.

    Args:
        date_str: Date string in MM/DD/YYYY or YYYY-MM-DD format, or a date

    Returns:
        datetime.date object or None if parsing fails
    """
    if isinstance(date_str, datetime.datetime):
        return date_str.date()
    if isinstance(date_str, datetime.date):
        return date_str
    if not date_str:
        return None
    if not isinstance(date_str, str):
        logger.error(f"Could not parse date: {date_str!r}")
        return None

    formats = [
        "%m/%d/%Y",             # MM/DD/YYYY
        "%Y-%m-%d",             # YYYY-MM-DD
        "%Y-%m-%dT%H:%M:%S",    # ISO timestamp without zone
    ]

    for fmt in formats:
        try:
            dt = datetime.datetime.strptime(date_str.strip(), fmt)
            return dt.date()
        except ValueError:
            continue

    logger.error(f"Could not parse date: {date_str}")
    return None


def to_decimal(value: Any) -> Optional[Decimal]:
    """
    Convert a number or numeric string to Decimal.

    Floats go through str() so that 0.1 becomes Decimal('0.1').

    Returns:
        Decimal value, or None if the value is not numeric
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not result.is_finite():
        return None
    return result


def quantize_money(amount: Decimal) -> Decimal:
    """Round a money amount to cents using half-up rounding."""
    return amount.quantize(MONEY_QUANTIZE, rounding=ROUND_HALF_UP)


def format_currency(amount: Union[Decimal, float, int, str, None]) -> str:
    """
    Format a number as currency.

    Args:
        amount: Amount to format

    Returns:
        Formatted currency string
    """
    value = to_decimal(amount)
    if value is None:
        if amount not in (None, ""):
            logger.error(f"Invalid currency amount: {amount}")
        return "$0.00"
    return f"${quantize_money(value):,.2f}"


def format_month_key(month_key: Tuple[int, int]) -> str:
    """Format a (year, month) key as YYYY-MM."""
    year, month = month_key
    return f"{year:04d}-{month:02d}"


def parse_month_key(value: Union[str, Tuple[int, int], list]) -> Optional[Tuple[int, int]]:
    """
    Parse a month key from YYYY-MM text or a two-item sequence.

    Returns:
        (year, month) tuple, or None if the value is not a valid month key
    """
    try:
        if isinstance(value, str):
            year_str, month_str = value.split('-')
            year, month = int(year_str), int(month_str)
        else:
            year, month = int(value[0]), int(value[1])
    except (ValueError, TypeError, IndexError):
        logger.error(f"Could not parse month key: {value}")
        return None

    if not (1 <= month <= 12):
        logger.error(f"Invalid month in month key: {value}")
        return None

    return (year, month)
