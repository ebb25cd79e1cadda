#!/usr/bin/env python3
"""
Ledger Store Module

The ledger store is the durable home of persisted billing periods. The engine
needs two things from it: fetch every period of a tenancy, and apply a
reconciliation batch (creates, updates and deletes keyed by identifier)
atomically. Payment recording is the only other writer and goes through
record_payment().

Two adapters are provided: an in-memory store and a JSON file store. The JSON
store keeps a structure of the form:
{
    "tenancy_id": [
        {"identifier": ..., "month_key": "YYYY-MM", "due_date": "YYYY-MM-DD", ...},
        ...
    ],
    ...
}
"""

import os
import copy
import json
import logging
import tempfile
import datetime
import threading
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Any, List

from tenancy_billing.exceptions import LedgerStoreError
from tenancy_billing.utils.helpers import ZERO, format_month_key, load_json, parse_month_key, to_decimal

# Configure logging
logger = logging.getLogger(__name__)

# Default path to the ledger file - can be overridden
DEFAULT_LEDGER_PATH = os.path.join('Data', 'ledger.json')


def _paid(period: Dict[str, Any]) -> Decimal:
    return period.get('amount_paid') or ZERO


def _folded_payments(
    stored: Dict[str, Dict[str, Any]],
    to_delete: List[Dict[str, Any]]
) -> Dict[Any, Decimal]:
    """Stored payments of deleted periods, summed per month key."""
    folded = {}
    for period in to_delete:
        record = stored[period['identifier']]
        key = tuple(record['month_key'])
        folded[key] = folded.get(key, ZERO) + _paid(record)
    return folded


def validate_batch(
    stored: Dict[str, Dict[str, Any]],
    to_create: List[Dict[str, Any]],
    to_update: List[Dict[str, Any]],
    to_delete: List[Dict[str, Any]]
) -> None:
    """
    Check a batch against the stored periods of one tenancy before applying it.

    Updates and deletes carry the amount_paid seen when the batch was planned.
    A payment recorded since then makes the batch stale; it is rejected so the
    caller can fetch and reconcile again.

    Args:
        stored: Stored periods keyed by identifier
        to_create: Periods to create
        to_update: Periods to update
        to_delete: Periods to delete

    Raises:
        LedgerStoreError: If an identifier is reused, missing or appears in
            more than one operation, or if the batch is stale
    """
    seen = set()
    for operation, periods in (('create', to_create), ('update', to_update), ('delete', to_delete)):
        for period in periods:
            identifier = period['identifier']
            if identifier in seen:
                raise LedgerStoreError(f"Identifier {identifier} appears in more than one operation")
            seen.add(identifier)

            exists = identifier in stored
            if operation == 'create' and exists:
                raise LedgerStoreError(f"Cannot create {identifier}: it already exists")
            if operation != 'create' and not exists:
                raise LedgerStoreError(f"Cannot {operation} {identifier}: it does not exist")

    for period in to_delete:
        stored_paid = _paid(stored[period['identifier']])
        if _paid(period) != stored_paid:
            raise LedgerStoreError(
                f"Stale batch: {period['identifier']} has {stored_paid} paid, batch expected {_paid(period)}"
            )

    # Payments of duplicates deleted in the same batch are folded into the update
    folded = _folded_payments(stored, to_delete)
    for period in to_update:
        record = stored[period['identifier']]
        expected = _paid(record) + folded.get(tuple(record['month_key']), ZERO)
        if _paid(period) != expected:
            raise LedgerStoreError(
                f"Stale batch: {period['identifier']} has {expected} paid, batch expected {_paid(period)}"
            )


class LedgerStore(ABC):
    """Persisted billing periods, grouped by tenancy."""

    @abstractmethod
    def fetch_periods(self, tenancy_id: str) -> List[Dict[str, Any]]:
        """Return copies of every persisted period of a tenancy, ordered by month."""

    @abstractmethod
    def apply_batch(
        self,
        tenancy_id: str,
        to_create: List[Dict[str, Any]],
        to_update: List[Dict[str, Any]],
        to_delete: List[Dict[str, Any]]
    ) -> None:
        """Apply creates, updates and deletes for a tenancy as one atomic batch."""

    @abstractmethod
    def record_payment(self, tenancy_id: str, identifier: str, amount: Decimal) -> Dict[str, Any]:
        """Add a payment to a period's amount_paid and return the updated period."""


def _apply_to_snapshot(
    stored: Dict[str, Dict[str, Any]],
    to_create: List[Dict[str, Any]],
    to_update: List[Dict[str, Any]],
    to_delete: List[Dict[str, Any]]
) -> Dict[str, Dict[str, Any]]:
    validate_batch(stored, to_create, to_update, to_delete)

    folded = _folded_payments(stored, to_delete)
    result = dict(stored)
    for period in to_delete:
        del result[period['identifier']]
    for period in to_update:
        # amount_paid is owned by record_payment; take it from the stored record
        record = stored[period['identifier']]
        updated = copy.deepcopy(period)
        updated['amount_paid'] = _paid(record) + folded.get(tuple(record['month_key']), ZERO)
        result[period['identifier']] = updated
    for period in to_create:
        result[period['identifier']] = copy.deepcopy(period)
    return result


def _sorted_periods(stored: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    periods = [copy.deepcopy(p) for p in stored.values()]
    periods.sort(key=lambda p: (tuple(p['month_key']), p['due_date'], p['identifier']))
    return periods


def _credit_payment(period: Dict[str, Any], amount: Decimal) -> Dict[str, Any]:
    if not isinstance(amount, Decimal) or amount <= ZERO:
        raise LedgerStoreError(f"Payment amount must be a positive Decimal, got {amount!r}")
    updated = copy.deepcopy(period)
    updated['amount_paid'] = (updated.get('amount_paid') or ZERO) + amount
    return updated


class InMemoryLedgerStore(LedgerStore):
    """
    Ledger held in process memory.

    Batches are applied to a copy of the tenancy's periods and swapped in
    under a lock, so readers never see a half-applied batch.
    """

    def __init__(self):
        self._tenancies: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def fetch_periods(self, tenancy_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return _sorted_periods(self._tenancies.get(tenancy_id, {}))

    def apply_batch(self, tenancy_id, to_create, to_update, to_delete):
        with self._lock:
            stored = self._tenancies.get(tenancy_id, {})
            self._tenancies[tenancy_id] = _apply_to_snapshot(stored, to_create, to_update, to_delete)

        logger.info(
            f"Applied batch for tenancy {tenancy_id}: {len(to_create)} created, "
            f"{len(to_update)} updated, {len(to_delete)} deleted"
        )

    def record_payment(self, tenancy_id, identifier, amount):
        with self._lock:
            stored = self._tenancies.get(tenancy_id, {})
            if identifier not in stored:
                raise LedgerStoreError(f"No period {identifier} for tenancy {tenancy_id}")
            updated = _credit_payment(stored[identifier], amount)
            stored = dict(stored)
            stored[identifier] = updated
            self._tenancies[tenancy_id] = stored

        logger.info(f"Recorded payment of {amount} against {identifier} for tenancy {tenancy_id}")
        return copy.deepcopy(updated)


def serialize_period(period: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a persisted period to JSON-compatible values.

    Decimals are stored as strings so that no precision is lost.
    """
    return {
        'identifier': period['identifier'],
        'month_key': format_month_key(tuple(period['month_key'])),
        'due_date': period['due_date'].isoformat(),
        'rent_amount': str(period['rent_amount']),
        'charges': [{'name': c['name'], 'amount': str(c['amount'])} for c in period.get('charges') or []],
        'deposit_amount': str(period.get('deposit_amount', ZERO)),
        'amount_paid': str(period.get('amount_paid', ZERO)),
        'note': period.get('note'),
    }


def deserialize_period(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a stored JSON record back into a persisted period.

    Raises:
        LedgerStoreError: If the record is malformed
    """
    try:
        month_key = parse_month_key(record['month_key'])
        period = {
            'identifier': record['identifier'],
            'month_key': month_key,
            'due_date': datetime.date.fromisoformat(record['due_date']),
            'rent_amount': to_decimal(record['rent_amount']),
            'charges': [{'name': c['name'], 'amount': to_decimal(c['amount'])} for c in record.get('charges') or []],
            'deposit_amount': to_decimal(record.get('deposit_amount', '0')),
            'amount_paid': to_decimal(record.get('amount_paid', '0')),
            'note': record.get('note'),
        }
    except (KeyError, TypeError, ValueError) as e:
        raise LedgerStoreError(f"Malformed ledger record {record!r}: {str(e)}") from e

    numbers = [period['rent_amount'], period['deposit_amount'], period['amount_paid']]
    numbers.extend(c['amount'] for c in period['charges'])
    if month_key is None or any(n is None for n in numbers):
        raise LedgerStoreError(f"Malformed ledger record {record!r}")
    return period


class JsonLedgerStore(LedgerStore):
    """
    Ledger kept in a single JSON file.

    Every batch rewrites the file through a temporary file in the same
    directory that is then renamed over the ledger, so the file on disk
    always holds either the old or the new state.
    """

    def __init__(self, file_path: str = DEFAULT_LEDGER_PATH):
        self.file_path = file_path
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        if not os.path.exists(self.file_path):
            logger.info(f"Ledger file not found at {self.file_path}. Starting with an empty ledger.")
            return {}

        try:
            raw = load_json(self.file_path)
        except (OSError, json.JSONDecodeError) as e:
            raise LedgerStoreError(f"Could not read ledger {self.file_path}: {str(e)}") from e

        tenancies = {}
        for tenancy_id, records in raw.items():
            periods = [deserialize_period(r) for r in records]
            tenancies[tenancy_id] = {p['identifier']: p for p in periods}
        return tenancies

    def _save(self, tenancies: Dict[str, Dict[str, Dict[str, Any]]]) -> None:
        data = {
            tenancy_id: [serialize_period(p) for p in _sorted_periods(stored)]
            for tenancy_id, stored in tenancies.items()
        }

        directory = os.path.dirname(os.path.abspath(self.file_path))
        os.makedirs(directory, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(prefix='.ledger-', suffix='.json', dir=directory)
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.file_path)
        except (OSError, TypeError, ValueError) as e:
            raise LedgerStoreError(f"Could not write ledger {self.file_path}: {str(e)}") from e
        finally:
            if os.path.exists(temp_path):
                os.remove(temp_path)

    def fetch_periods(self, tenancy_id: str) -> List[Dict[str, Any]]:
        with self._lock:
            return _sorted_periods(self._load().get(tenancy_id, {}))

    def apply_batch(self, tenancy_id, to_create, to_update, to_delete):
        with self._lock:
            tenancies = self._load()
            stored = tenancies.get(tenancy_id, {})
            updated = _apply_to_snapshot(stored, to_create, to_update, to_delete)
            if updated:
                tenancies[tenancy_id] = updated
            else:
                tenancies.pop(tenancy_id, None)
            self._save(tenancies)

        logger.info(
            f"Saved batch for tenancy {tenancy_id} to {self.file_path}: {len(to_create)} created, "
            f"{len(to_update)} updated, {len(to_delete)} deleted"
        )

    def record_payment(self, tenancy_id, identifier, amount):
        with self._lock:
            tenancies = self._load()
            stored = tenancies.get(tenancy_id, {})
            if identifier not in stored:
                raise LedgerStoreError(f"No period {identifier} for tenancy {tenancy_id}")
            stored[identifier] = _credit_payment(stored[identifier], amount)
            self._save(tenancies)

        logger.info(f"Recorded payment of {amount} against {identifier} for tenancy {tenancy_id}")
        return copy.deepcopy(stored[identifier])
