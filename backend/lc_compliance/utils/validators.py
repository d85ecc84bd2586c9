"""
Validators — value parsing and normalization shared by the matcher and aggregator.
"""
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

# Company-form abbreviations unified before comparing party names.
_NAME_EQUIVALENTS = (
    (r"\b(ltd|limited)\b", "limited"),
    (r"\b(s\s*a\s*r\s*l)\b", "sarl"),
    (r"\b(inc|incorporated)\b", "incorporated"),
    (r"\b(corp|corporation)\b", "corporation"),
    (r"\b(co|company)\b", "company"),
    (r"\b(p\s*l\s*c)\b", "plc"),
    (r"\b(intl|international)\b", "international"),
)

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_CHED_RE = re.compile(r"^GBCHD\d{4}\.\d{7}$")

BLANK_MARKERS = {"", "n/a", "na", "none", "null", "-", "not provided", "not specified"}


def is_blank(value: Any) -> bool:
    """True for None and for strings that carry no information."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip().lower() in BLANK_MARKERS
    return False


def parse_number(value: Any) -> Optional[Decimal]:
    """Parse '30,000', 'USD 30000.00', 30000 -> Decimal; None if no finite number is present."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        number = Decimal(str(value))
    else:
        cleaned = re.sub(r"[,\s]", "", str(value))
        found = _NUMBER_RE.search(cleaned)
        if not found:
            return None
        try:
            number = Decimal(found.group(0))
        except InvalidOperation:
            return None

    # NaN and Infinity have no tolerance band to compare within
    return number if number.is_finite() else None


def normalize_text(value: Any) -> str:
    """Case-fold, strip punctuation, collapse whitespace."""
    if value is None:
        return ""
    text = str(value).casefold().replace("&", " and ")
    text = re.sub(r"[^\w\s]", " ", text)
    return " ".join(text.split())


def normalize_name(value: Any) -> str:
    """normalize_text plus unified company-form suffixes (Ltd/Limited, Co/Company, ...)."""
    text = normalize_text(value)
    for pattern, replacement in _NAME_EQUIVALENTS:
        text = re.sub(pattern, replacement, text)
    return " ".join(text.split())


def display_value(value: Any) -> str:
    """String form used in result rows."""
    if is_blank(value):
        return "(empty)"
    if isinstance(value, bool):
        return "Yes" if value else "No"
    return str(value).strip() if isinstance(value, str) else str(value)


def validate_ched_reference(ref: str | None) -> bool:
    """Validate CHED format: GBCHDYYYY.NNNNNNN (e.g. GBCHD2026.0012345)."""
    if not ref:
        return False
    return bool(_CHED_RE.match(ref.strip().upper()))
