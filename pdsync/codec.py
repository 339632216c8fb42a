"""Canonical encoding and content hashing of entries."""

import hashlib
import json
from typing import TypeVar, Union

from .errors import DecodeError
from .models import (
    DiffBroadcast,
    HashReference,
    Perspective,
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Snapshot,
)

HASH_LENGTH = 16
NULL_NODE = "0" * HASH_LENGTH

Entry = Union[
    PerspectiveDiff,
    PerspectiveDiffEntryReference,
    Snapshot,
    HashReference,
    Perspective,
    DiffBroadcast,
]
T = TypeVar("T", bound=Entry)

ENTRY_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        PerspectiveDiff,
        PerspectiveDiffEntryReference,
        Snapshot,
        HashReference,
        Perspective,
        DiffBroadcast,
    )
}


def encode(value: Entry) -> bytes:
    """Serialize an entry to canonical bytes.

    The type name is part of the payload so that, for example, an empty
    diff and an empty snapshot never share a hash.
    """
    name = type(value).__name__
    if name not in ENTRY_TYPES:
        raise TypeError(f"Cannot encode {name}")
    payload = {"type": name, "value": value.to_dict()}
    return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")


def hash_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:HASH_LENGTH]


def hash_entry(value: Entry) -> str:
    """Content address of an entry: truncated SHA-256 of its encoding."""
    return hash_bytes(encode(value))


def decode(data: bytes, expected_type: type[T]) -> T:
    """Inverse of :func:`encode`, checked against ``expected_type``.

    Raises:
        DecodeError: If ``data`` is not an encoded entry of that type.
    """
    try:
        payload = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise DecodeError(f"Malformed entry: {e}") from e
    if not isinstance(payload, dict) or "type" not in payload:
        raise DecodeError("Malformed entry: missing type tag")
    name = payload["type"]
    if name != expected_type.__name__:
        raise DecodeError(f"Expected {expected_type.__name__}, found {name}")
    try:
        return expected_type.from_dict(payload["value"])
    except (KeyError, TypeError, ValueError) as e:
        raise DecodeError(f"Malformed {name}: {e}") from e
