#!/usr/bin/env python3
"""
Schedule Service Module

This module orchestrates a billing schedule update for one tenancy:
1. Generates the billing periods for the lease configuration
2. Fetches the periods already in the ledger
3. Reconciles the two into create/update/delete operations
4. Applies the operations to the ledger as a single atomic batch

Configuration errors are raised before the ledger is read. Ledger failures
are raised as LedgerApplyError so callers can retry the whole batch.
"""

import logging
from typing import Dict, Any, List, Optional, Callable

from tenancy_billing.exceptions import LedgerApplyError, LedgerStoreError
from tenancy_billing.ledger_reconciler import reconcile, summarize_plan
from tenancy_billing.ledger_store import LedgerStore
from tenancy_billing.period_generator import generate

# Configure logging
logger = logging.getLogger(__name__)


def plan_schedule_update(
    tenancy_id: str,
    lease_config: Dict[str, Any],
    store: LedgerStore,
    id_factory: Optional[Callable[[], str]] = None
) -> Dict[str, Any]:
    """
    Compute the ledger operations for a lease without applying them.

    Args:
        tenancy_id: Tenancy identifier
        lease_config: Lease configuration dictionary
        store: Ledger store holding the tenancy's periods
        id_factory: Optional callable producing new period identifiers

    Returns:
        Dictionary with the generated 'periods', the 'existing' ledger
        periods, the reconciliation 'plan' and its 'summary' counts
    """
    # Reject bad lease terms before touching the ledger
    periods = generate(lease_config)

    try:
        existing = store.fetch_periods(tenancy_id)
    except LedgerStoreError as e:
        logger.error(f"Could not fetch ledger for tenancy {tenancy_id}: {str(e)}")
        raise LedgerApplyError(tenancy_id, str(e)) from e

    plan = reconcile(periods, existing, id_factory=id_factory)
    summary = summarize_plan(plan, existing)

    logger.info(
        f"Planned schedule update for tenancy {tenancy_id}: {summary['created']} created, "
        f"{summary['changed']} changed, {summary['unchanged']} unchanged, {summary['deleted']} deleted"
    )

    return {
        'tenancy_id': tenancy_id,
        'periods': periods,
        'existing': existing,
        'plan': plan,
        'summary': summary,
    }


def apply_plan(tenancy_id: str, plan: Dict[str, List[Dict[str, Any]]], store: LedgerStore) -> None:
    """
    Apply a reconciliation plan to the ledger in one batch.

    Args:
        tenancy_id: Tenancy identifier
        plan: Result of reconcile()
        store: Ledger store to apply the batch to

    Raises:
        LedgerApplyError: If the store rejects or fails the batch
    """
    try:
        store.apply_batch(tenancy_id, plan['to_create'], plan['to_update'], plan['to_delete'])
    except LedgerStoreError as e:
        logger.error(f"Ledger batch for tenancy {tenancy_id} failed: {str(e)}")
        raise LedgerApplyError(tenancy_id, str(e)) from e


def update_tenancy_schedule(
    tenancy_id: str,
    lease_config: Dict[str, Any],
    store: LedgerStore,
    id_factory: Optional[Callable[[], str]] = None,
    dry_run: bool = False
) -> Dict[str, Any]:
    """
    Regenerate a tenancy's billing schedule and bring the ledger in line.

    Running this again with the same lease configuration creates and deletes
    nothing and leaves every stored value unchanged.

    Args:
        tenancy_id: Tenancy identifier
        lease_config: Lease configuration dictionary
        store: Ledger store holding the tenancy's periods
        id_factory: Optional callable producing new period identifiers
        dry_run: Compute the plan without applying it

    Returns:
        The result of plan_schedule_update() with an 'applied' flag

    Raises:
        InvalidLeaseConfiguration: If the lease configuration is invalid
        LedgerApplyError: If the ledger could not be read or updated
    """
    result = plan_schedule_update(tenancy_id, lease_config, store, id_factory=id_factory)

    if dry_run:
        logger.info(f"Dry run for tenancy {tenancy_id}; ledger not modified")
        result['applied'] = False
        return result

    apply_plan(tenancy_id, result['plan'], store)
    result['applied'] = True
    return result


def delete_tenancy_schedule(tenancy_id: str, store: LedgerStore) -> int:
    """
    Remove every billing period of a tenancy in one batch.

    Args:
        tenancy_id: Tenancy identifier
        store: Ledger store holding the tenancy's periods

    Returns:
        Number of periods deleted

    Raises:
        LedgerApplyError: If the ledger could not be read or updated
    """
    try:
        existing = store.fetch_periods(tenancy_id)
    except LedgerStoreError as e:
        raise LedgerApplyError(tenancy_id, str(e)) from e

    apply_plan(tenancy_id, {'to_create': [], 'to_update': [], 'to_delete': existing}, store)
    logger.info(f"Deleted {len(existing)} billing periods for tenancy {tenancy_id}")
    return len(existing)
