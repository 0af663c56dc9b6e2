"""
Settlement Reconciliation  (Strategy Pattern)
=============================================

When a payment submission fails, the gateway may still have recorded it.
A ``Reconciler`` decides, from the gateway's records and the caller's own
ride ledger, whether the submission can be treated as already settled.

``CountReconciler`` compares list lengths only.  It assumes both lists are
in the same relative order and that drift can only be one missing record
at the tail; reordering or duplication go undetected.  Replacing it with
an idempotency-key strategy does not affect the retry loop.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Sequence


class ReconciliationMismatch(Exception):
    """Gateway and local ledger disagree; the settlement state is ambiguous."""

    def __init__(self, remote_count: int, local_count: int):
        self.remote_count = remote_count
        self.local_count = local_count
        super().__init__(
            f"unexpected number of payments: {local_count} != {remote_count}"
        )


class Reconciler(ABC):
    @abstractmethod
    def reconcile(
        self, remote_records: Sequence[Any], local_rides: Sequence[Any]
    ) -> None:
        """Return if the submission is known to be settled, else raise."""


class CountReconciler(Reconciler):
    def reconcile(
        self, remote_records: Sequence[Any], local_rides: Sequence[Any]
    ) -> None:
        if len(remote_records) != len(local_rides):
            raise ReconciliationMismatch(len(remote_records), len(local_rides))
