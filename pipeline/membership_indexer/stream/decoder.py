"""
Decoder for DynamoDB stream records delivered through SQS.

Each SQS message body holds one DynamoDB stream record as JSON:

    {
        "eventName": "MODIFY",
        "dynamodb": {
            "OldImage": {"pk": {"S": "USER#123"}, "organizations": {"L": [{"S": "org1"}]}},
            "NewImage": {"pk": {"S": "USER#123"}, "organizations": {"L": [{"S": "org2"}]}},
            "SequenceNumber": "111"
        }
    }

Values use the DynamoDB attribute-typed encoding ({"S": ...}, {"L": [...]}, ...).

Invariants:
    - Any structural problem raises DecodeError; nothing is partially decoded
    - A missing membership attribute decodes to an empty list
    - A missing image decodes to None (the reconciler decides whether to skip)
"""

from __future__ import annotations

import json
from typing import Any

from .types import ChangeRecord, DecodeError, EntitySnapshot, EventKind


PRIMARY_KEY_ATTRIBUTE = "pk"
SORT_KEY_ATTRIBUTE = "sk"
MAX_ATTRIBUTE_DEPTH = 32


def decode_attribute(value: Any, _depth: int = 0) -> Any:
    """Decode one attribute-typed value.

    Args:
        value: Wire value such as {"S": "x"} or {"L": [{"S": "x"}]}

    Returns:
        The plain Python value (numbers stay strings, as on the wire)

    Raises:
        DecodeError: If the value is not a single-key typed wrapper, or
            L/M values nest deeper than MAX_ATTRIBUTE_DEPTH
    """
    if _depth > MAX_ATTRIBUTE_DEPTH:
        raise DecodeError(f"Attribute nesting exceeds {MAX_ATTRIBUTE_DEPTH} levels")
    if not isinstance(value, dict) or len(value) != 1:
        raise DecodeError(f"Malformed attribute value: {value!r}")

    type_tag, raw = next(iter(value.items()))

    if type_tag in ("S", "N", "B"):
        if not isinstance(raw, str):
            raise DecodeError(f"Attribute of type {type_tag} must be a string, got {raw!r}")
        return raw
    if type_tag in ("SS", "NS", "BS"):
        if not isinstance(raw, list) or not all(isinstance(v, str) for v in raw):
            raise DecodeError(f"Attribute of type {type_tag} must be a list of strings")
        return list(raw)
    if type_tag == "L":
        if not isinstance(raw, list):
            raise DecodeError(f"Attribute of type L must be a list, got {raw!r}")
        return [decode_attribute(v, _depth + 1) for v in raw]
    if type_tag == "M":
        if not isinstance(raw, dict):
            raise DecodeError(f"Attribute of type M must be an object, got {raw!r}")
        return {k: decode_attribute(v, _depth + 1) for k, v in raw.items()}
    if type_tag == "NULL":
        return None
    if type_tag == "BOOL":
        if not isinstance(raw, bool):
            raise DecodeError(f"Attribute of type BOOL must be a boolean, got {raw!r}")
        return raw

    raise DecodeError(f"Unknown attribute type: {type_tag}")


def _decode_string_key(image: dict[str, Any], name: str, required: bool) -> str | None:
    if name not in image:
        if required:
            raise DecodeError(f"Image is missing key attribute '{name}'")
        return None

    wire = image[name]
    if not isinstance(wire, dict) or "S" not in wire:
        raise DecodeError(f"Key attribute '{name}' must be a string attribute, got {wire!r}")
    return decode_attribute(wire)


def _decode_memberships(image: dict[str, Any], name: str) -> list[str]:
    if name not in image:
        return []

    wire = image[name]
    if not isinstance(wire, dict) or len(wire) != 1:
        raise DecodeError(f"Malformed attribute value for '{name}': {wire!r}")

    # Checked on the wire tags: N and B values decode to str as well.
    type_tag, raw = next(iter(wire.items()))
    if type_tag == "NULL":
        return []
    if type_tag == "SS":
        return decode_attribute(wire)
    if type_tag != "L":
        raise DecodeError(f"Attribute '{name}' must be a list of strings, got type {type_tag}")
    if not isinstance(raw, list):
        raise DecodeError(f"Attribute of type L must be a list, got {raw!r}")

    for item in raw:
        if not isinstance(item, dict) or set(item) != {"S"} or not isinstance(item["S"], str):
            raise DecodeError(f"Attribute '{name}' must contain only strings, got {item!r}")
    return [item["S"] for item in raw]


def decode_snapshot(
    image: dict[str, Any] | None,
    membership_attribute: str = "organizations",
) -> EntitySnapshot | None:
    """Decode an OldImage/NewImage into an EntitySnapshot.

    Args:
        image: Attribute-typed image, or None if absent
        membership_attribute: Name of the membership list attribute

    Returns:
        EntitySnapshot, or None if the image is absent

    Raises:
        DecodeError: If the key is missing/malformed or the membership
            attribute is not a list of strings
    """
    if image is None:
        return None
    if not isinstance(image, dict):
        raise DecodeError(f"Image must be an object, got {type(image).__name__}")

    primary_id = _decode_string_key(image, PRIMARY_KEY_ATTRIBUTE, required=True)
    sort_key = _decode_string_key(image, SORT_KEY_ATTRIBUTE, required=False)
    memberships = _decode_memberships(image, membership_attribute)

    skip = {PRIMARY_KEY_ATTRIBUTE, SORT_KEY_ATTRIBUTE, membership_attribute}
    attributes = {k: v for k, v in image.items() if k not in skip}

    return EntitySnapshot(
        primary_id=primary_id,
        sort_key=sort_key,
        memberships=memberships,
        attributes=attributes,
    )


def decode_change(
    body: str | bytes | dict[str, Any],
    message_id: str | None = None,
    membership_attribute: str = "organizations",
) -> ChangeRecord:
    """Decode one stream record.

    Args:
        body: SQS message body (JSON text) or an already parsed record
        message_id: SQS message id, kept for error context
        membership_attribute: Name of the membership list attribute

    Returns:
        ChangeRecord

    Raises:
        DecodeError: If the body cannot be parsed or is structurally invalid
    """
    if isinstance(body, (str, bytes)):
        try:
            record = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError, RecursionError) as e:
            raise DecodeError(f"Failed to parse stream record as JSON: {e}") from e
    else:
        record = body

    if not isinstance(record, dict):
        raise DecodeError(f"Stream record must be an object, got {type(record).__name__}")

    event_name = record.get("eventName")
    if not isinstance(event_name, str):
        raise DecodeError(f"Stream record has no eventName: {event_name!r}")
    try:
        event_kind = EventKind(event_name)
    except ValueError:
        raise DecodeError(
            f"Unknown eventName '{event_name}'. Must be one of: INSERT, MODIFY, REMOVE"
        )

    change = record.get("dynamodb")
    if change is None:
        change = {}
    elif not isinstance(change, dict):
        raise DecodeError(f"Stream record 'dynamodb' must be an object, got {change!r}")

    sequence_number = change.get("SequenceNumber")

    return ChangeRecord(
        event_kind=event_kind,
        before=decode_snapshot(change.get("OldImage"), membership_attribute),
        after=decode_snapshot(change.get("NewImage"), membership_attribute),
        message_id=message_id,
        sequence_number=str(sequence_number) if sequence_number is not None else None,
    )


def decode_sqs_event(event: dict[str, Any]) -> list[tuple[str | None, str]]:
    """Extract (message_id, body) pairs from a Lambda SQS event.

    Args:
        event: Lambda event, {"Records": [{"messageId": ..., "body": ...}, ...]}

    Returns:
        List of (message_id, body) in delivery order

    Raises:
        DecodeError: If the event envelope is malformed
    """
    if not isinstance(event, dict):
        raise DecodeError(f"SQS event must be an object, got {type(event).__name__}")

    records = event.get("Records")
    if not isinstance(records, list):
        raise DecodeError("SQS event has no Records list")

    messages = []
    for i, record in enumerate(records):
        if not isinstance(record, dict) or not isinstance(record.get("body"), str):
            raise DecodeError(f"SQS record {i} has no string body")
        messages.append((record.get("messageId"), record["body"]))

    return messages
