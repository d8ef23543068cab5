"""
Types for decoded change notifications.

A change notification is one DynamoDB stream record describing a single
INSERT, MODIFY or REMOVE on the users table. The decoder turns the
attribute-typed wire form into the plain structures defined here.

Invariants:
    - EntitySnapshot.memberships keeps the order and duplicates of the source list
    - Attributes other than the key and membership list are carried opaquely
    - A ChangeRecord never carries a snapshot without a primary_id
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class StreamError(Exception):
    """Base exception for change notification handling."""
    pass


class DecodeError(StreamError):
    """A change notification could not be decoded."""
    pass


class EventKind(Enum):
    """DynamoDB stream event names."""

    INSERT = "INSERT"
    MODIFY = "MODIFY"
    REMOVE = "REMOVE"


@dataclass(frozen=True)
class EntitySnapshot:
    """A user record image from the stream.

    Attributes:
        primary_id: Partition key in format "<TYPE>#<id>" (e.g. "USER#123")
        sort_key: Sort key, if present in the image
        memberships: Membership target ids, as listed on the record
        attributes: Remaining attributes, still attribute-typed
    """

    primary_id: str
    sort_key: str | None = None
    memberships: list[str] = field(default_factory=list)
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ChangeRecord:
    """A decoded change notification.

    Attributes:
        event_kind: INSERT, MODIFY or REMOVE
        before: Image before the change (OldImage), if delivered
        after: Image after the change (NewImage), if delivered
        message_id: Id of the SQS message that carried the record
        sequence_number: Stream sequence number, if delivered

    Example:
        >>> change = decode_change(body)
        >>> change.event_kind
        <EventKind.MODIFY: 'MODIFY'>
        >>> change.after.memberships
        ['org2', 'org3']
    """

    event_kind: EventKind
    before: EntitySnapshot | None = None
    after: EntitySnapshot | None = None
    message_id: str | None = None
    sequence_number: str | None = None

    @property
    def entity(self) -> EntitySnapshot | None:
        """The snapshot whose key identifies the entity for this event kind."""
        if self.event_kind == EventKind.REMOVE:
            return self.before
        return self.after

    def __str__(self) -> str:
        entity = self.entity
        pk = entity.primary_id if entity else None
        return f"ChangeRecord(kind={self.event_kind.value}, pk={pk}, message_id={self.message_id})"
