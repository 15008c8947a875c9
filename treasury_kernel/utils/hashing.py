"""
Deterministic hashing utilities.

All hashing in the treasury kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used throughout:

    - hash_movement()     content fingerprint used to deduplicate movements
    - hash_file()         fingerprint of an import source file
    - hash_payload()      canonical JSON digest of audit payloads
    - hash_audit_event()  link of the audit hash chain
"""

import hashlib
import json
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Protocol
from uuid import UUID

_WHITESPACE = re.compile(r"\s+")

# Stable tags per movement kind.  Changing any of these changes every stored
# content hash, which would break idempotent re-imports.
_KIND_TAGS = {
    "income": "Income",
    "expense": "Expense",
    "opening_balance": "OpeningBalance",
}

_FILE_CHUNK_SIZE = 64 * 1024


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize so 10.50 and 10.5 serialize identically
        return str(obj.normalize())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, Enum):
        return obj.value

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Produces a deterministic JSON representation:
    - Keys are sorted alphabetically
    - No whitespace
    - Consistent handling of special types (Decimal, datetime, UUID)
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Compute SHA-256 hash (64 hex characters) of a canonicalized payload."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_audit_event(
    entity_type: str,
    entity_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Compute hash for an audit event.

    The hash includes all key fields plus the previous event's hash,
    creating a tamper-evident chain.
    """
    components = [
        entity_type,
        str(entity_id),
        action,
        payload_hash,
        prev_hash or "GENESIS",
    ]
    data = "|".join(components)
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Movement content hashing
# ---------------------------------------------------------------------------


def normalize_description(text: str | None) -> str:
    """Trim, collapse inner whitespace runs to one space, and upper-case."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text.strip()).upper()


def _kind_tag(kind: Any) -> str:
    value = kind.value if isinstance(kind, Enum) else str(kind)
    try:
        return _KIND_TAGS[value]
    except KeyError:
        raise ValueError(f"Unknown movement kind: {kind!r}") from None


def _format_amount(amount: Decimal) -> str:
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def hash_movement(
    kind: Any,
    movement_date: date,
    amount: Decimal,
    description: str | None,
    period_key: str,
) -> str:
    """
    Compute the content hash that identifies a movement across imports.

    The canonical string is::

        Income|2025-09-03|100.00|DONATION JUAN|2025-09

    Args:
        kind: MovementKind (or its string value).
        movement_date: Calendar date of the movement.
        amount: Decimal amount; formatted with exactly two decimals.
        description: Free text; normalized before hashing.
        period_key: Owning period as ``YYYY-MM``.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = "|".join(
        [
            _kind_tag(kind),
            movement_date.isoformat(),
            _format_amount(amount),
            normalize_description(description),
            period_key,
        ]
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class _HashableCandidate(Protocol):
    kind: Any
    movement_date: date
    amount: Decimal
    description: str
    period_key: str


@dataclass(frozen=True)
class ContentHasher:
    """
    Stateless facade over hash_movement() for candidate-shaped objects.

    Contract:
        hash(c) == hash_movement(c.kind, c.movement_date, c.amount,
                                 c.description, c.period_key)

    Guarantees:
        - Pure and deterministic: same field values, same digest, on any
          process and any platform.
    """

    def hash(self, candidate: _HashableCandidate) -> str:
        return hash_movement(
            candidate.kind,
            candidate.movement_date,
            candidate.amount,
            candidate.description,
            candidate.period_key,
        )


def hash_file(path: str | Path) -> str:
    """SHA-256 hex digest of a file's bytes, read in chunks."""
    digest = hashlib.sha256()
    with open(path, "rb") as fh:
        for chunk in iter(lambda: fh.read(_FILE_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
