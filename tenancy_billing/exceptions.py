#!/usr/bin/env python3
"""
Exceptions raised by the tenancy billing engine.

Computation errors (bad lease terms, bad date ranges) are kept apart from
ledger errors so that callers can tell a rejected lease edit from a batch
that failed to land and may be retried.
"""


class TenancyBillingError(Exception):
    """Base class for all tenancy billing errors."""


class InvalidLeaseConfiguration(TenancyBillingError):
    """Lease terms that cannot produce a billing schedule."""


class InvalidRange(TenancyBillingError):
    """A date range whose end falls before its start."""


class LedgerStoreError(TenancyBillingError):
    """A ledger store rejected or failed a read or a batch."""


class LedgerApplyError(TenancyBillingError):
    """
    Applying a reconciliation batch to the ledger failed.

    The batch is all-or-nothing, so the ledger still holds its previous state
    and the whole batch can be retried.
    """

    def __init__(self, tenancy_id: str, message: str):
        super().__init__(f"Failed to apply billing batch for tenancy {tenancy_id}: {message}")
        self.tenancy_id = tenancy_id
