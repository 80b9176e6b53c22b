from app.utils.hashing import canonical_json, generate_chain_hash
from app.utils.dates import utcnow, isoformat_z

__all__ = ["canonical_json", "generate_chain_hash", "utcnow", "isoformat_z"]
