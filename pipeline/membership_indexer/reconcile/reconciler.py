"""
Membership reconciler.

The reconciler turns each decoded change into the index writes that bring
the membership index in line with the user's new organizations list, and
submits them to the index store. It ensures:
- Minimal writes (only memberships that actually changed)
- One store call per change notification
- Fail-fast batches (the first failure aborts the rest of the batch)

Per event kind:
    INSERT  put every org in after
    REMOVE  delete every org in before
    MODIFY  delete before - after, put after - before

Invariants:
    - Notifications are processed strictly in order, one at a time
    - Deltas use set semantics; order and repeats in the lists don't matter
    - A change with nothing to write makes no store call
    - No retries: every failure propagates so the batch is redelivered

How to change safely:
    - Keep writes idempotent; concurrent or repeated deliveries rely on it
    - Test with duplicate and out-of-order redelivery
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from ..index.base import (
    DEFAULT_TARGET_TYPE,
    DeleteIndex,
    IndexStore,
    IndexStoreError,
    IndexWriteError,
    PutIndex,
    WriteOp,
    membership_key,
)
from ..stream.decoder import decode_change, decode_sqs_event
from ..stream.types import ChangeRecord, DecodeError, EventKind

logger = logging.getLogger(__name__)


class ReconcileError(Exception):
    """Error during membership reconciliation."""

    pass


class BatchAbortedError(ReconcileError):
    """A notification failed and the rest of the batch was not processed.

    Attributes:
        message_id: SQS message id of the failing notification
        position: Index of the failing notification within the batch
        table_name: Destination table, for store failures
        op_count: Operations in flight, for store failures
    """

    def __init__(
        self,
        message: str,
        message_id: str | None,
        position: int,
        table_name: str | None = None,
        op_count: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message_id = message_id
        self.position = position
        self.table_name = table_name
        self.op_count = op_count


@dataclass
class BatchResult:
    """Result of processing one delivered batch.

    Attributes:
        received: Notifications in the batch
        applied: Notifications whose writes were submitted
        skipped: Notifications with nothing to write
        operations: Index operations submitted
    """

    received: int = 0
    applied: int = 0
    skipped: int = 0
    operations: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary for logging and handler responses."""
        return {
            "received": self.received,
            "applied": self.applied,
            "skipped": self.skipped,
            "operations": self.operations,
        }


def _unique(values: Iterable[str], exclude: Iterable[str] = ()) -> list[str]:
    seen = set(exclude)
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def plan_writes(change: ChangeRecord, target_type: str = DEFAULT_TARGET_TYPE) -> list[WriteOp]:
    """Compute the index writes for one change.

    Deletes come first, then puts. Each target yields at most one
    operation, in first-occurrence order.

    Args:
        change: Decoded change notification
        target_type: Index partition key type prefix

    Returns:
        Write operations; empty if the change has nothing to write or lacks
        the image its event kind needs
    """
    if change.event_kind == EventKind.INSERT:
        if change.after is None:
            return []
        entity_pk = change.after.primary_id
        removed: list[str] = []
        added = _unique(change.after.memberships)

    elif change.event_kind == EventKind.REMOVE:
        if change.before is None:
            return []
        entity_pk = change.before.primary_id
        removed = _unique(change.before.memberships)
        added = []

    else:
        if change.after is None:
            return []
        entity_pk = change.after.primary_id
        before = change.before.memberships if change.before is not None else []
        after = change.after.memberships
        removed = _unique(before, exclude=set(after))
        added = _unique(after, exclude=set(before))

    ops: list[WriteOp] = [
        DeleteIndex(membership_key(target, entity_pk, target_type)) for target in removed
    ]
    ops.extend(PutIndex(membership_key(target, entity_pk, target_type)) for target in added)
    return ops


class MembershipReconciler:
    """Applies decoded changes to the membership index.

    Constructed once with its dependencies, then invoked per delivered batch.

    Thread safety:
        Holds no state shared between notifications beyond counters.
        Overlapping invocations converge through idempotent writes.

    Example:
        >>> reconciler = MembershipReconciler(store, table_name="poc-organizations")
        >>> result = await reconciler.handle_event(sqs_event)
        >>> result.operations
        2
    """

    def __init__(
        self,
        store: IndexStore,
        table_name: str,
        target_type: str = DEFAULT_TARGET_TYPE,
        membership_attribute: str = "organizations",
    ) -> None:
        """Initialize the reconciler.

        Args:
            store: Index store to write to
            table_name: Destination index table
            target_type: Index partition key type prefix
            membership_attribute: Membership list attribute on the entity
        """
        self.store = store
        self.table_name = table_name
        self.target_type = target_type
        self.membership_attribute = membership_attribute

        self._batch_count = 0
        self._processed_count = 0
        self._skipped_count = 0
        self._operation_count = 0

    async def reconcile(self, change: ChangeRecord) -> int:
        """Plan and submit the writes for one change.

        Args:
            change: Decoded change notification

        Returns:
            Number of operations submitted (0 if skipped)

        Raises:
            IndexStoreError: If the store rejects the batch
        """
        ops = plan_writes(change, self.target_type)
        if not ops:
            logger.debug(
                "Nothing to write for change",
                extra={
                    "event_kind": change.event_kind.value,
                    "message_id": change.message_id,
                },
            )
            return 0

        logger.info(
            "Writing organization memberships",
            extra={
                "table": self.table_name,
                "requestCount": len(ops),
                "event_kind": change.event_kind.value,
                "message_id": change.message_id,
            },
        )
        await self.store.batch_write(self.table_name, ops)
        return len(ops)

    async def process_batch(
        self, messages: Iterable[tuple[str | None, str | bytes | dict[str, Any]]]
    ) -> BatchResult:
        """Process a batch of notifications in order.

        Args:
            messages: (message_id, body) pairs in delivery order

        Returns:
            BatchResult for the batch

        Raises:
            BatchAbortedError: On the first decode or store failure; later
                notifications are not attempted
        """
        messages = list(messages)
        result = BatchResult(received=len(messages))
        self._batch_count += 1

        logger.info("Processing sqs event", extra={"records": len(messages)})

        for position, (message_id, body) in enumerate(messages):
            try:
                change = decode_change(body, message_id, self.membership_attribute)
            except DecodeError as e:
                logger.error(
                    "Failed to decode stream record",
                    extra={
                        "error": str(e),
                        "message_id": message_id,
                        "position": position,
                    },
                )
                raise BatchAbortedError(
                    f"Failed to decode stream record {message_id or position}: {e}",
                    message_id=message_id,
                    position=position,
                ) from e

            try:
                written = await self.reconcile(change)
            except IndexStoreError as e:
                table_name = getattr(e, "table_name", self.table_name)
                op_count = e.op_count if isinstance(e, IndexWriteError) else None
                logger.error(
                    "Failed to batch write memberships",
                    extra={
                        "error": str(e),
                        "table": table_name,
                        "requestCount": op_count,
                        "message_id": message_id,
                        "position": position,
                    },
                )
                raise BatchAbortedError(
                    f"Failed to batch write organization memberships to '{table_name}': {e}",
                    message_id=message_id,
                    position=position,
                    table_name=table_name,
                    op_count=op_count,
                ) from e

            if written:
                result.applied += 1
                result.operations += written
            else:
                result.skipped += 1

        self._processed_count += result.applied
        self._skipped_count += result.skipped
        self._operation_count += result.operations
        return result

    async def handle_event(self, event: dict[str, Any]) -> BatchResult:
        """Process a Lambda SQS event.

        Raises:
            BatchAbortedError: If the envelope or any notification fails
        """
        try:
            messages = decode_sqs_event(event)
        except DecodeError as e:
            logger.error("Failed to decode sqs event", extra={"error": str(e)})
            raise BatchAbortedError(f"Failed to decode SQS event: {e}", None, 0) from e

        return await self.process_batch(messages)

    @property
    def stats(self) -> dict[str, Any]:
        """Get reconciler statistics."""
        return {
            "batches": self._batch_count,
            "processed_count": self._processed_count,
            "skipped_count": self._skipped_count,
            "operation_count": self._operation_count,
        }
