#!/usr/bin/env python3
"""
Ledger Reconciler Module

This module diffs a freshly generated billing schedule against the periods
already persisted for a tenancy. Periods are matched on their (year, month)
key so that an edited lease keeps the identifiers and recorded payments of
every month that is still part of the schedule.

The result is a plan of three operation lists (to_create, to_update,
to_delete) that the ledger store applies as one atomic batch.
"""

import uuid
import logging
from typing import Dict, Any, List, Optional, Callable

from tenancy_billing.utils.helpers import ZERO, format_month_key

# Configure logging
logger = logging.getLogger(__name__)

# Fields owned by the generator, replaced on every update
SCHEDULE_FIELDS = ('due_date', 'rent_amount', 'charges', 'deposit_amount', 'note')


def new_identifier() -> str:
    """Create a new opaque billing period identifier."""
    return uuid.uuid4().hex


def index_by_month_key(
    existing: List[Dict[str, Any]]
) -> Dict[tuple, List[Dict[str, Any]]]:
    """
    Group persisted periods by month key.

    Each group is ordered by due date, then identifier, so the first record
    of a group is the one kept when a month has duplicates.

    Args:
        existing: Persisted billing periods

    Returns:
        Dictionary mapping (year, month) to the periods for that month
    """
    index = {}
    for period in existing:
        index.setdefault(tuple(period['month_key']), []).append(period)

    for key, group in index.items():
        group.sort(key=lambda p: (p['due_date'], p['identifier']))
        if len(group) > 1:
            logger.warning(
                f"Found {len(group)} ledger records for {format_month_key(key)}; "
                f"keeping {group[0]['identifier']} and merging payments"
            )

    return index


def reconcile(
    generated: List[Dict[str, Any]],
    existing: List[Dict[str, Any]],
    id_factory: Optional[Callable[[], str]] = None
) -> Dict[str, List[Dict[str, Any]]]:
    """
    Reconcile a generated schedule with the persisted ledger.

    A generated period whose month already has a ledger record becomes an
    update that keeps the record's identifier and amount_paid. Other
    generated periods become creates with a fresh identifier and nothing
    paid. Ledger months missing from the schedule become deletes.

    Duplicate ledger records for one month are collapsed: the surviving
    record takes the sum of their payments and the others are deleted.

    Args:
        generated: Periods produced by the period generator
        existing: Periods currently persisted for the tenancy
        id_factory: Optional callable producing new identifiers

    Returns:
        Dictionary with 'to_create', 'to_update' and 'to_delete' lists of
        persisted period dictionaries
    """
    make_id = id_factory or new_identifier
    index = index_by_month_key(existing)

    to_create = []
    to_update = []
    to_delete = []
    scheduled_keys = set()

    for period in generated:
        key = tuple(period['month_key'])
        scheduled_keys.add(key)
        matches = index.get(key)

        if matches:
            # Duplicates are the one case where a month key is both updated
            # (survivor) and deleted (the other identifiers)
            survivor, duplicates = matches[0], matches[1:]
            amount_paid = survivor.get('amount_paid') or ZERO
            for duplicate in duplicates:
                amount_paid += duplicate.get('amount_paid') or ZERO
                to_delete.append(duplicate)

            updated = {
                'identifier': survivor['identifier'],
                'month_key': key,
                'amount_paid': amount_paid,
            }
            for field in SCHEDULE_FIELDS:
                updated[field] = period[field]
            to_update.append(updated)
        else:
            created = {
                'identifier': make_id(),
                'month_key': key,
                'amount_paid': ZERO,
            }
            for field in SCHEDULE_FIELDS:
                created[field] = period[field]
            to_create.append(created)

    for key, group in index.items():
        if key not in scheduled_keys:
            for period in group:
                if period.get('amount_paid'):
                    logger.warning(
                        f"Deleting {format_month_key(key)} ({period['identifier']}) "
                        f"with {period['amount_paid']} already paid"
                    )
                to_delete.append(period)

    logger.info(
        f"Reconciled {len(generated)} generated periods against {len(existing)} ledger records: "
        f"{len(to_create)} to create, {len(to_update)} to update, {len(to_delete)} to delete"
    )

    return {
        'to_create': to_create,
        'to_update': to_update,
        'to_delete': to_delete,
    }


def changed_fields(existing: Dict[str, Any], updated: Dict[str, Any]) -> List[str]:
    """
    List the fields whose values differ between two versions of a period.

    Args:
        existing: Period as persisted
        updated: Period as planned

    Returns:
        Names of the fields that differ
    """
    fields = SCHEDULE_FIELDS + ('amount_paid',)
    return [f for f in fields if existing.get(f) != updated.get(f)]


def summarize_plan(
    plan: Dict[str, List[Dict[str, Any]]],
    existing: List[Dict[str, Any]]
) -> Dict[str, int]:
    """
    Count the operations in a reconciliation plan.

    Updates are split into those that change a stored value and those that
    rewrite the record unchanged.

    Args:
        plan: Result of reconcile()
        existing: Periods the plan was computed against

    Returns:
        Dictionary with 'created', 'deleted', 'changed' and 'unchanged' counts
    """
    by_id = {p['identifier']: p for p in existing}
    changed = 0
    for updated in plan['to_update']:
        previous = by_id.get(updated['identifier'])
        if previous is None or changed_fields(previous, updated):
            changed += 1

    return {
        'created': len(plan['to_create']),
        'deleted': len(plan['to_delete']),
        'changed': changed,
        'unchanged': len(plan['to_update']) - changed,
    }


def is_noop(plan: Dict[str, List[Dict[str, Any]]], existing: List[Dict[str, Any]]) -> bool:
    """True if applying the plan would leave the ledger unchanged."""
    summary = summarize_plan(plan, existing)
    return summary['created'] == 0 and summary['deleted'] == 0 and summary['changed'] == 0
