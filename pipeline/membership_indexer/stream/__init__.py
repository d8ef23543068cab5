"""
Change notification decoding.

DynamoDB stream records arrive as SQS message bodies in the attribute-typed
wire encoding. This module parses them into ChangeRecords with before/after
EntitySnapshots.

Invariants:
    - Malformed payloads raise DecodeError (fatal for the batch)
    - Missing images are not errors; they decode to None
"""

from .decoder import (
    decode_attribute,
    decode_change,
    decode_snapshot,
    decode_sqs_event,
)
from .types import (
    ChangeRecord,
    DecodeError,
    EntitySnapshot,
    EventKind,
    StreamError,
)

__all__ = [
    # Types
    "ChangeRecord",
    "EntitySnapshot",
    "EventKind",
    # Errors
    "StreamError",
    "DecodeError",
    # Decoding
    "decode_attribute",
    "decode_change",
    "decode_snapshot",
    "decode_sqs_event",
]
