"""
Deterministic hashing utilities.

Engine trace fingerprints, the configuration checksum and the database
advisory-lock key for a lease all derive from these functions, so they
must be deterministic across processes and hosts.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

# pg_advisory_xact_lock takes a signed bigint
_ADVISORY_KEY_MASK = (1 << 63) - 1


def _json_serializer(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        # Normalize so 100 and 100.00 hash alike
        return str(obj.normalize())
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, UUID):
        return str(obj)
    if isinstance(obj, bytes):
        return obj.hex()

    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def canonicalize_json(data: dict | list | Any) -> str:
    """
    Convert data to canonical JSON string.

    Keys are sorted, separators carry no whitespace, and Decimal, date,
    datetime and UUID values get a fixed textual form.
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict) -> str:
    """Hex-encoded SHA-256 of the canonical JSON form of ``payload``."""
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_bytes(data: bytes) -> str:
    """Hex-encoded SHA-256 of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def advisory_lock_key(lease_id: UUID | str) -> int:
    """
    Stable non-negative 63-bit integer for a lease id.

    Python's built-in hash() is salted per process, so it cannot be used
    for a lock key shared by several workers.
    """
    digest = hashlib.sha256(str(lease_id).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & _ADVISORY_KEY_MASK
