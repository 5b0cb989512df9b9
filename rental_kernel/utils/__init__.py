"""Utility functions for the rental kernel."""

from rental_kernel.utils.hashing import (
    advisory_lock_key,
    canonicalize_json,
    hash_bytes,
    hash_payload,
)

__all__ = [
    "advisory_lock_key",
    "canonicalize_json",
    "hash_bytes",
    "hash_payload",
]
