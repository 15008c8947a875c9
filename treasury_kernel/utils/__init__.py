"""Utility modules for the treasury kernel."""

from treasury_kernel.utils.hashing import (
    ContentHasher,
    canonicalize_json,
    hash_audit_event,
    hash_file,
    hash_movement,
    hash_payload,
    normalize_description,
)

__all__ = [
    "ContentHasher",
    "canonicalize_json",
    "hash_audit_event",
    "hash_file",
    "hash_movement",
    "hash_payload",
    "normalize_description",
]
