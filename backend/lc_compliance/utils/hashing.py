"""
Cryptographic Hashing Utilities — canonical JSON + SHA-256 for checks and the audit chain.
"""
import hashlib
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

GENESIS = "genesis"


def _normalize(value: Any) -> Any:
    """Reduce a value to JSON primitives with no floating-point ambiguity."""
    if isinstance(value, Enum):
        return _normalize(value.value)
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return str(value)


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC timestamp; microseconds are always present."""
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def canonical_json(data: Any) -> str:
    """Deterministic encoding: sorted keys, compact separators, numbers as strings."""
    return json.dumps(_normalize(data), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def generate_hash(data: Any) -> str:
    """Generate a SHA-256 hash of the canonical encoding of ``data``."""
    return hashlib.sha256(canonical_json(data).encode("utf-8")).hexdigest()


def generate_chain_hash(current_data: Any, previous_hash: Optional[str] = None) -> str:
    """Generate a chain hash: SHA-256(canonical(current) || previous_hash).
    A missing previous hash (first event) is replaced by the genesis marker.
    """
    chain_input = canonical_json(current_data) + (previous_hash or GENESIS)
    return hashlib.sha256(chain_input.encode("utf-8")).hexdigest()
