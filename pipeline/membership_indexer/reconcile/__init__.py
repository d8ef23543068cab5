"""
Reconcile module - turns membership list changes into index writes.

Invariants:
    - Writes for one notification go to the store in one call
    - The first failure aborts the remaining batch
"""

from .reconciler import (
    BatchAbortedError,
    BatchResult,
    MembershipReconciler,
    ReconcileError,
    plan_writes,
)

__all__ = [
    "MembershipReconciler",
    "BatchResult",
    "ReconcileError",
    "BatchAbortedError",
    "plan_writes",
]
