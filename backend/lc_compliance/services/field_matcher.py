"""
Field Matcher — compares one LC term with one document field under a type-specific rule.

``match()`` is pure: no I/O, no clock, no settings lookup. Tolerances come from
a ``MatcherConfig`` the caller passes (defaults mirror the application settings).
Bad input never raises; it is graded RED or AMBER with an explanation.
"""
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from lc_compliance.schemas.lc import Severity
from lc_compliance.utils.dates import parse_date
from lc_compliance.utils.validators import (
    display_value, is_blank, normalize_name, normalize_text, parse_number,
)


class FieldType(str, Enum):
    NUMERIC = "numeric"
    ENUM = "enum"
    TEXT = "text"
    NAME = "name"       # free text with company-form normalization
    DATE = "date"


@dataclass(frozen=True)
class MatcherConfig:
    numeric_tolerance_pct: Decimal = Decimal("0.5")
    text_overlap_threshold: float = 0.5

    @classmethod
    def from_settings(cls, settings) -> "MatcherConfig":
        return cls(
            numeric_tolerance_pct=Decimal(str(settings.NUMERIC_TOLERANCE_PCT)),
            text_overlap_threshold=settings.TEXT_OVERLAP_THRESHOLD,
        )


@dataclass(frozen=True)
class MatchOutcome:
    severity: Severity
    explanation: str


# ─── Enumerated value aliases ───────────────────────────────────────
# canonical -> spellings that mean the same thing but are not an exact match
UNIT_ALIASES = {
    "kg": {"kgs", "kilo", "kilos", "kilogram", "kilograms", "kilogramme", "kilogrammes"},
    "mt": {"t", "ton", "tons", "tonne", "tonnes", "metric ton", "metric tons", "metric tonne", "metric tonnes"},
    "lb": {"lbs", "pound", "pounds"},
    "pcs": {"pc", "piece", "pieces", "unit", "units", "nos", "no"},
    "bags": {"bag", "sacks", "sack"},
    "ctns": {"ctn", "carton", "cartons"},
    "l": {"ltr", "ltrs", "litre", "litres", "liter", "liters"},
    "m3": {"cbm", "cubic meter", "cubic meters", "cubic metre", "cubic metres"},
}

CURRENCY_ALIASES = {
    "usd": {"us$", "$", "us dollar", "us dollars", "dollars", "u s d"},
    "eur": {"€", "euro", "euros"},
    "gbp": {"£", "pound sterling", "pounds sterling", "sterling"},
    "xof": {"cfa", "fcfa", "cfa franc", "cfa francs"},
    "ghs": {"cedi", "cedis", "gh₵"},
    "ngn": {"naira", "₦"},
    "cny": {"rmb", "yuan", "renminbi"},
    "jpy": {"yen", "¥"},
    "inr": {"rupee", "rupees", "₹"},
}

INCOTERMS = {"exw", "fca", "fas", "fob", "cfr", "cif", "cpt", "cip", "dap", "dpu", "ddp"}
INCOTERM_ALIASES = {
    "exw": {"ex works"},
    "fca": {"free carrier"},
    "fas": {"free alongside ship"},
    "fob": {"free on board"},
    "cfr": {"c&f", "c and f", "cnf", "c+f", "cost and freight"},
    "cif": {"cost insurance and freight", "cost insurance freight"},
    "cpt": {"carriage paid to"},
    "cip": {"carriage and insurance paid to"},
    "dap": {"delivered at place"},
    "dpu": {"delivered at place unloaded", "dat"},
    "ddp": {"delivered duty paid"},
}

_ALIAS_TABLES = {
    "quantityUnit": UNIT_ALIASES,
    "currency": CURRENCY_ALIASES,
    "incoterms": INCOTERM_ALIASES,
}


def _enum_key(value: Any) -> str:
    return " ".join(str(value).casefold().replace(".", " ").split())


def _canonical_enum(field_name: str, value: Any) -> Optional[str]:
    """Map a spelling to its canonical code, or None when it is not known."""
    key = _enum_key(value)
    table = _ALIAS_TABLES.get(field_name, {})
    if key in table:
        return key
    for canonical, aliases in table.items():
        if key in aliases:
            return canonical
    if field_name == "incoterms":
        # "FOB Abidjan", "CIF Felixstowe (Incoterms 2020)"
        head = re.split(r"[\s,(]+", key, maxsplit=1)[0]
        if head in INCOTERMS:
            return head
        for canonical, aliases in INCOTERM_ALIASES.items():
            if any(key.startswith(alias) for alias in aliases):
                return canonical
    return None


# ─── Matchers per field type ─────────────────────────────────────────

def _match_numeric(field_name: str, lc_value: Any, doc_value: Any, config: MatcherConfig) -> MatchOutcome:
    lc_num = parse_number(lc_value)
    doc_num = parse_number(doc_value)

    if lc_num is None and is_blank(lc_value):
        return MatchOutcome(Severity.RED, f"LC does not state {field_name}; the document value cannot be verified.")
    if lc_num is None:
        return MatchOutcome(Severity.RED, f"LC value '{display_value(lc_value)}' is not a number.")
    if doc_num is None:
        return MatchOutcome(
            Severity.RED,
            f"Document value '{display_value(doc_value)}' could not be read as a number.",
        )

    if doc_num == lc_num:
        return MatchOutcome(Severity.GREEN, "Matches LC terms exactly.")

    if lc_num == 0:
        return MatchOutcome(Severity.RED, f"LC states 0 but the document shows {doc_num}.")

    diff_pct = abs(doc_num - lc_num) / abs(lc_num) * 100
    direction = "above" if doc_num > lc_num else "below"
    if diff_pct <= config.numeric_tolerance_pct:
        return MatchOutcome(
            Severity.AMBER,
            f"Document is {diff_pct:.2f}% {direction} the LC figure, within the "
            f"{config.numeric_tolerance_pct}% tolerance. Check the LC for a tolerance clause.",
        )
    return MatchOutcome(
        Severity.RED,
        f"Document is {diff_pct:.2f}% {direction} the LC figure, beyond the "
        f"{config.numeric_tolerance_pct}% tolerance. Bank will reject.",
    )


def _match_enum(field_name: str, lc_value: Any, doc_value: Any) -> MatchOutcome:
    if _enum_key(lc_value) == _enum_key(doc_value):
        return MatchOutcome(Severity.GREEN, "Matches LC terms.")

    lc_code = _canonical_enum(field_name, lc_value)
    doc_code = _canonical_enum(field_name, doc_value)
    if lc_code is not None and lc_code == doc_code:
        return MatchOutcome(
            Severity.AMBER,
            f"'{display_value(doc_value)}' is an accepted alias of '{display_value(lc_value)}'. "
            f"Banks may still query non-identical wording.",
        )
    if doc_code is None and field_name in _ALIAS_TABLES:
        return MatchOutcome(
            Severity.RED,
            f"'{display_value(doc_value)}' is not a recognised {field_name} value and does not match "
            f"LC value '{display_value(lc_value)}'.",
        )
    return MatchOutcome(
        Severity.RED,
        f"Document shows '{display_value(doc_value)}' but the LC requires '{display_value(lc_value)}'.",
    )


def _tokens(text: str) -> list[str]:
    return [t for t in text.split() if len(t) > 2]


def _match_text(lc_value: Any, doc_value: Any, config: MatcherConfig, as_name: bool) -> MatchOutcome:
    normalize = normalize_name if as_name else normalize_text
    lc_norm = normalize(lc_value)
    doc_norm = normalize(doc_value)

    if not doc_norm:
        return MatchOutcome(Severity.RED, "Document value is empty after normalization.")

    if lc_norm == doc_norm:
        if str(lc_value).strip() == str(doc_value).strip():
            return MatchOutcome(Severity.GREEN, "Exact match with LC terms.")
        return MatchOutcome(
            Severity.GREEN,
            "Match after normalizing case, punctuation and spacing"
            + (" and common company forms (Ltd/Limited, &/and)." if as_name else "."),
        )

    if lc_norm in doc_norm or doc_norm in lc_norm:
        return MatchOutcome(
            Severity.AMBER,
            "Partial match: one value contains the other. Bank may query, review the wording.",
        )

    lc_tokens = set(_tokens(lc_norm))
    doc_tokens = set(_tokens(doc_norm))
    if lc_tokens and doc_tokens and (lc_tokens <= doc_tokens or doc_tokens <= lc_tokens):
        return MatchOutcome(
            Severity.AMBER,
            "All words of one value appear in the other, in a different order or with additions.",
        )

    overlap = len(lc_tokens & doc_tokens) / len(lc_tokens) if lc_tokens else 0.0
    if overlap >= config.text_overlap_threshold:
        return MatchOutcome(
            Severity.AMBER,
            f"{overlap:.0%} of the LC wording appears in the document. Review carefully.",
        )
    return MatchOutcome(
        Severity.RED,
        f"Does not correspond with LC terms ({overlap:.0%} word overlap). Bank will reject.",
    )


def _match_date(lc_value: Any, doc_value: Any, evidence: Any) -> MatchOutcome:
    deadline = parse_date(lc_value)
    if deadline is None:
        return MatchOutcome(
            Severity.RED,
            f"LC deadline '{display_value(lc_value)}' could not be read as a date.",
        )

    if is_blank(doc_value):
        evidence_date = parse_date(evidence)
        if evidence_date is None:
            return MatchOutcome(
                Severity.RED,
                "Missing field: the date is not stated and no other dated evidence is present.",
            )
        if evidence_date > deadline:
            return MatchOutcome(
                Severity.RED,
                f"Date is missing and the issue date ({evidence_date.isoformat()}) is after "
                f"the LC deadline ({deadline.isoformat()}).",
            )
        return MatchOutcome(
            Severity.AMBER,
            f"Date is missing; issue date {evidence_date.isoformat()} is on or before the deadline "
            f"and is taken as the shipment date. Add an on-board notation.",
        )

    doc_date = parse_date(doc_value)
    if doc_date is None:
        return MatchOutcome(Severity.RED, f"'{display_value(doc_value)}' could not be read as a date.")
    if doc_date <= deadline:
        return MatchOutcome(Severity.GREEN, f"{doc_date.isoformat()} is on or before {deadline.isoformat()}.")
    late_by = (doc_date - deadline).days
    return MatchOutcome(
        Severity.RED,
        f"{doc_date.isoformat()} is {late_by} day(s) after the LC deadline {deadline.isoformat()}. "
        f"Late shipment, bank will reject.",
    )


def match(
    field_name: str,
    field_type: FieldType,
    lc_value: Any,
    doc_value: Any,
    *,
    evidence: Any = None,
    config: Optional[MatcherConfig] = None,
) -> MatchOutcome:
    """Grade one document value against one LC term.

    Args:
        field_name: Document field being compared (selects alias tables for enums).
        field_type: Comparison rule to apply.
        lc_value: Value declared in the LC terms.
        doc_value: Value extracted from the document.
        evidence: Fallback value for dates (e.g. B/L issue date when the
            on-board date is absent).
        config: Tolerances; defaults to ``MatcherConfig()``.

    Returns:
        MatchOutcome with a severity and a human-readable explanation.
    """
    config = config or MatcherConfig()

    if field_type == FieldType.DATE:
        if is_blank(lc_value):
            return MatchOutcome(Severity.AMBER, "LC does not state this deadline; date not verified.")
        return _match_date(lc_value, doc_value, evidence)

    if is_blank(doc_value):
        if field_type == FieldType.NUMERIC and is_blank(lc_value):
            return MatchOutcome(Severity.RED, "Missing on both the LC and the document.")
        return MatchOutcome(
            Severity.RED,
            "Missing field: the document does not state a value required by the LC.",
        )

    if field_type == FieldType.NUMERIC:
        return _match_numeric(field_name, lc_value, doc_value, config)

    if is_blank(lc_value):
        return MatchOutcome(Severity.AMBER, "LC does not state this term; document value not verified.")

    if field_type == FieldType.ENUM:
        return _match_enum(field_name, lc_value, doc_value)
    return _match_text(lc_value, doc_value, config, as_name=field_type == FieldType.NAME)
