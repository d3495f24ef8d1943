"""
Deterministic hashing utilities.

All hashing in the compliance kernel must be deterministic and reproducible.
This module provides the canonical hashing functions used for result
fingerprints, rule-set checksums, and content-derived record ids.
"""

import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid5

# Namespace for content-derived penalty/alert ids.
COMPLIANCE_NAMESPACE = UUID("6f1c1d0e-3b52-5c8e-9a7d-2f4e8b1c0a93")


def _json_serializer(obj: Any) -> Any:
    """
    Custom JSON serializer for types not natively supported.

    Raises:
        TypeError: If object type is not supported.
    """
    if isinstance(obj, Decimal):
        # Normalize Decimal to string representation
        # Remove trailing zeros for consistency
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
    - Consistent handling of special types (Decimal, date, UUID, Enum)
    """
    return json.dumps(
        data,
        sort_keys=True,
        separators=(",", ":"),
        default=_json_serializer,
    )


def hash_payload(payload: dict | list) -> str:
    """
    Compute SHA-256 hash of a payload.

    Returns:
        Hex-encoded SHA-256 hash (64 characters).
    """
    canonical = canonicalize_json(payload)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def content_id(*parts: Any) -> str:
    """
    Derive a stable UUID string from ordered parts.

    The same parts always produce the same id, so recomputed penalties and
    alerts keep their identity across evaluations.
    """
    name = "|".join("" if p is None else str(getattr(p, "value", p)) for p in parts)
    return str(uuid5(COMPLIANCE_NAMESPACE, name))
