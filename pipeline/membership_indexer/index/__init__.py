"""
Membership index storage.

This module provides a pluggable index store interface supporting:
- DynamoDB (production)
- In-memory (for testing and dry runs)

Invariants:
    - Index records are presence-only (pk, sk)
    - Every operation is idempotent under redelivery
"""

from .base import (
    DeleteIndex,
    IndexKey,
    IndexStore,
    IndexStoreError,
    IndexWriteError,
    MarshalError,
    PutIndex,
    WriteOp,
    local_id,
    marshal_op,
    membership_key,
)
from .dynamodb import DynamoDBIndexStore
from .memory import InMemoryIndexStore

__all__ = [
    # Protocol and types
    "IndexStore",
    "IndexKey",
    "PutIndex",
    "DeleteIndex",
    "WriteOp",
    "IndexStoreError",
    "IndexWriteError",
    "MarshalError",
    # Key helpers
    "local_id",
    "membership_key",
    "marshal_op",
    # Implementations
    "DynamoDBIndexStore",
    "InMemoryIndexStore",
]
