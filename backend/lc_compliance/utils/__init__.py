from lc_compliance.utils.hashing import canonical_json, generate_hash, generate_chain_hash
from lc_compliance.utils.dates import parse_date, utcnow
from lc_compliance.utils.validators import parse_number, normalize_text, normalize_name, is_blank

__all__ = [
    "canonical_json", "generate_hash", "generate_chain_hash",
    "parse_date", "utcnow",
    "parse_number", "normalize_text", "normalize_name", "is_blank",
]
