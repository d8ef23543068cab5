"""
In-memory index store implementation for testing.

This module provides a dict-backed index store for:
- Unit and integration tests
- Dry runs of the replay tool

Invariants:
    - All data is lost on process exit
    - Same put/delete semantics as DynamoDB (overwrite, absent delete is a no-op)
    - Operations are marshalled exactly as the DynamoDB store marshals them

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with IndexStore protocol
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence, Set, Tuple

from .base import DeleteIndex, IndexKey, IndexWriteError, WriteOp, marshal_op

logger = logging.getLogger(__name__)


@dataclass
class BatchWriteCall:
    """A recorded batch_write call."""
    table_name: str
    ops: List[WriteOp]


class InMemoryIndexStore:
    """In-memory implementation of IndexStore for testing.

    Attributes:
        calls: Every batch_write call, in order (including failed ones)

    Example:
        >>> store = InMemoryIndexStore()
        >>> await store.batch_write("t", [PutIndex(IndexKey("ORGANIZATION#o", "MEMBERSHIP#u"))])
        >>> store.keys("t")
        {('ORGANIZATION#o', 'MEMBERSHIP#u')}
    """

    def __init__(self) -> None:
        self._tables: Dict[str, Dict[Tuple[str, str], Dict[str, Any]]] = defaultdict(dict)
        self.calls: List[BatchWriteCall] = []
        # call number -> operations applied before the injected failure
        self._fail_on_calls: Dict[int, int] = {}

    def fail_on_call(self, call_number: int, after_ops: int = 0) -> None:
        """Make the given call (1-based) raise IndexWriteError.

        Args:
            call_number: Which batch_write call should fail
            after_ops: Operations of that call applied before failing,
                to simulate partial application
        """
        self._fail_on_calls[call_number] = after_ops

    async def batch_write(self, table_name: str, ops: Sequence[WriteOp]) -> None:
        """Apply operations to the in-memory table.

        Raises:
            MarshalError: If an operation cannot be encoded
            IndexWriteError: If failure was injected for this call
        """
        ops = list(ops)
        self.calls.append(BatchWriteCall(table_name=table_name, ops=ops))
        requests = [marshal_op(op) for op in ops]

        failing = len(self.calls) in self._fail_on_calls
        if failing:
            requests = requests[: self._fail_on_calls[len(self.calls)]]

        table = self._tables[table_name]
        for op, request in zip(ops, requests):
            key = (op.key.primary_id, op.key.sort_key)
            if isinstance(op, DeleteIndex):
                table.pop(key, None)
            else:
                table[key] = request["PutRequest"]["Item"]

        if failing:
            raise IndexWriteError(
                f"Injected failure writing to '{table_name}'",
                table_name,
                len(ops),
            )

        logger.debug("InMemoryIndexStore applied batch", extra={"table": table_name, "ops": len(ops)})

    def keys(self, table_name: str) -> Set[Tuple[str, str]]:
        """All (pk, sk) pairs present in a table."""
        return set(self._tables[table_name])

    def items(self, table_name: str) -> List[Dict[str, Any]]:
        """All stored items of a table, attribute-typed."""
        return list(self._tables[table_name].values())

    def contains(self, table_name: str, key: IndexKey) -> bool:
        """Whether an index record exists."""
        return (key.primary_id, key.sort_key) in self._tables[table_name]

    def clear(self) -> None:
        """Drop all data and recorded calls."""
        self._tables.clear()
        self.calls.clear()
        self._fail_on_calls.clear()
