"""
Base protocol and types for the membership index store.

This module defines the IndexStore protocol that all backends must implement,
along with index keys, write operations and errors.

Index records are presence-only: a record keyed
    pk = "ORGANIZATION#<org_id>", sk = "MEMBERSHIP#<user_id>"
exists exactly when the user lists the organization.

Invariants:
    - IndexStore exposes a single operation: batch_write
    - Put overwrites and delete of an absent key is a no-op, so every
      operation can be reapplied safely on redelivery
    - Marshalling never drops an operation; it raises MarshalError instead

How to change safely:
    - Protocol changes require updating all implementations
    - Keep index records key-only; payload would make puts non-idempotent
      under out-of-order redelivery
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass
from typing import Any, Protocol, Sequence, Union, runtime_checkable


KEY_SEPARATOR = "#"
MEMBERSHIP_PREFIX = "MEMBERSHIP"
DEFAULT_TARGET_TYPE = "ORGANIZATION"


class IndexStoreError(Exception):
    """Base exception for index store operations."""
    pass


class IndexWriteError(IndexStoreError):
    """A batch write to the index table failed.

    Attributes:
        table_name: Destination table
        op_count: Number of operations in the failed batch
    """

    def __init__(self, message: str, table_name: str, op_count: int) -> None:
        super().__init__(message)
        self.table_name = table_name
        self.op_count = op_count


class MarshalError(IndexStoreError):
    """An index operation could not be encoded for the store."""
    pass


@dataclass(frozen=True)
class IndexKey:
    """Composite key of an index record.

    Attributes:
        primary_id: Partition key, "<TARGET_TYPE>#<target_id>"
        sort_key: Sort key, "MEMBERSHIP#<entity_local_id>"
    """

    primary_id: str
    sort_key: str

    def __str__(self) -> str:
        return f"{self.primary_id}/{self.sort_key}"


@dataclass(frozen=True)
class PutIndex:
    """Create (or overwrite) the index record at key."""

    key: IndexKey


@dataclass(frozen=True)
class DeleteIndex:
    """Delete the index record at key."""

    key: IndexKey


WriteOp = Union[PutIndex, DeleteIndex]


def local_id(composite_key: str) -> str:
    """Extract the id portion of a composite key.

    Everything up to and including the first separator is stripped. A key
    without a separator is returned unchanged.

    Example:
        >>> local_id("USER#123")
        '123'
        >>> local_id("USER123")
        'USER123'
    """
    _, sep, rest = composite_key.partition(KEY_SEPARATOR)
    if not sep:
        return composite_key
    return rest


def membership_key(
    target_id: str,
    entity_pk: str,
    target_type: str = DEFAULT_TARGET_TYPE,
) -> IndexKey:
    """Build the index key for "entity is a member of target".

    Args:
        target_id: Membership target id as listed on the entity
        entity_pk: Entity composite key, e.g. "USER#123"
        target_type: Partition key type prefix

    Returns:
        IndexKey("ORGANIZATION#<target_id>", "MEMBERSHIP#<local_id>")
    """
    return IndexKey(
        primary_id=f"{target_type}{KEY_SEPARATOR}{target_id}",
        sort_key=f"{MEMBERSHIP_PREFIX}{KEY_SEPARATOR}{local_id(entity_pk)}",
    )


def _marshal_key(key: IndexKey) -> dict[str, Any]:
    for name, value in (("pk", key.primary_id), ("sk", key.sort_key)):
        if not isinstance(value, str) or not value:
            raise MarshalError(f"Index key attribute '{name}' must be a non-empty string: {value!r}")
    return {
        "pk": {"S": key.primary_id},
        "sk": {"S": key.sort_key},
    }


def marshal_op(op: WriteOp) -> dict[str, Any]:
    """Encode an operation as a DynamoDB WriteRequest.

    Args:
        op: PutIndex or DeleteIndex

    Returns:
        {"PutRequest": {"Item": ...}} or {"DeleteRequest": {"Key": ...}}

    Raises:
        MarshalError: If the operation or its key cannot be encoded
    """
    if isinstance(op, PutIndex):
        return {"PutRequest": {"Item": _marshal_key(op.key)}}
    if isinstance(op, DeleteIndex):
        return {"DeleteRequest": {"Key": _marshal_key(op.key)}}
    raise MarshalError(f"Unsupported index operation: {op!r}")


@runtime_checkable
class IndexStore(Protocol):
    """Protocol for membership index backends.

    Durability contract:
        - batch_write() returns only after every operation is accepted
        - Any operation not accepted makes batch_write() raise

    Example:
        >>> store = InMemoryIndexStore()
        >>> await store.batch_write("poc-organizations", [PutIndex(key)])
    """

    @abstractmethod
    async def batch_write(self, table_name: str, ops: Sequence[WriteOp]) -> None:
        """Apply a batch of put/delete operations.

        Args:
            table_name: Destination table
            ops: Operations to apply, in order

        Raises:
            MarshalError: If an operation cannot be encoded
            IndexWriteError: If the store rejects the batch
        """
        ...
