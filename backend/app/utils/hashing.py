"""
Cryptographic Hashing Utilities — SHA-256 chain hashing for the audit trail.
"""
import hashlib
import json


def canonical_json(data: dict) -> str:
    """Stable serialization: sorted keys, compact separators, non-ASCII kept as-is."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def generate_chain_hash(current_data: dict, previous_hash: str = "") -> str:
    """Generate a chain hash: SHA-256(previous_hash + canonical(current_data)).
    Creates a tamper-evident linked chain for the audit trail.
    """
    chain_input = f"{previous_hash}{canonical_json(current_data)}".encode("utf-8")
    return hashlib.sha256(chain_input).hexdigest()
