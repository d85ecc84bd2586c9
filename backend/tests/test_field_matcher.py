"""Tests for services/field_matcher.py — per-type grading of one LC term vs one document value."""

from decimal import Decimal

import pytest

from lc_compliance.schemas.lc import Severity
from lc_compliance.services.field_matcher import FieldType, MatcherConfig, match


def _sev(field_name, field_type, lc_value, doc_value, **kwargs):
    return match(field_name, field_type, lc_value, doc_value, **kwargs).severity


# ═══════════════════════════════════════════════════
# NUMERIC
# ═══════════════════════════════════════════════════

class TestNumeric:
    def test_exact_amount_is_green(self):
        assert _sev("totalAmount", FieldType.NUMERIC, Decimal("30000"), "30000") == Severity.GREEN

    def test_formatted_amount_is_green(self):
        assert _sev("totalAmount", FieldType.NUMERIC, Decimal("30000"), "USD 30,000.00") == Severity.GREEN

    def test_within_tolerance_is_amber(self):
        # 0.4% over
        assert _sev("totalAmount", FieldType.NUMERIC, Decimal("30000"), "30120") == Severity.AMBER

    def test_four_percent_short_is_red(self):
        outcome = match("quantity", FieldType.NUMERIC, Decimal("25000"), "24000")
        assert outcome.severity == Severity.RED
        assert "4.00% below" in outcome.explanation

    def test_tolerance_is_configurable(self):
        config = MatcherConfig(numeric_tolerance_pct=Decimal("5"))
        assert _sev("quantity", FieldType.NUMERIC, Decimal("25000"), "24000", config=config) == Severity.AMBER

    def test_unreadable_document_number_is_red(self):
        assert _sev("quantity", FieldType.NUMERIC, Decimal("25000"), "twenty five tonnes") == Severity.RED

    @pytest.mark.parametrize("doc_value", [float("nan"), float("inf"), Decimal("NaN"), Decimal("-Infinity")])
    def test_non_finite_document_number_is_red(self, doc_value):
        outcome = match("quantity", FieldType.NUMERIC, Decimal("25000"), doc_value)
        assert outcome.severity == Severity.RED
        assert "could not be read as a number" in outcome.explanation

    def test_missing_lc_value_is_red(self):
        assert _sev("unitPrice", FieldType.NUMERIC, None, "1.20") == Severity.RED

    def test_missing_document_value_is_red(self):
        outcome = match("totalAmount", FieldType.NUMERIC, Decimal("30000"), "")
        assert outcome.severity == Severity.RED
        assert outcome.explanation.startswith("Missing field")


# ═══════════════════════════════════════════════════
# ENUM
# ═══════════════════════════════════════════════════

class TestEnum:
    def test_same_currency_is_green(self):
        assert _sev("currency", FieldType.ENUM, "USD", "usd") == Severity.GREEN

    def test_currency_alias_is_amber(self):
        assert _sev("currency", FieldType.ENUM, "USD", "US$") == Severity.AMBER

    def test_different_currency_is_red(self):
        assert _sev("currency", FieldType.ENUM, "USD", "EUR") == Severity.RED

    def test_unit_alias_is_amber(self):
        assert _sev("quantityUnit", FieldType.ENUM, "KG", "kilograms") == Severity.AMBER

    def test_incoterm_with_named_place_is_amber(self):
        assert _sev("incoterms", FieldType.ENUM, "CIF", "CIF Felixstowe") == Severity.AMBER

    def test_different_incoterm_is_red(self):
        assert _sev("incoterms", FieldType.ENUM, "CIF", "FOB Tema") == Severity.RED

    def test_missing_lc_enum_is_amber(self):
        assert _sev("incoterms", FieldType.ENUM, None, "FOB") == Severity.AMBER


# ═══════════════════════════════════════════════════
# TEXT / NAME
# ═══════════════════════════════════════════════════

class TestText:
    def test_exact_text_is_green(self):
        outcome = match("goodsDescription", FieldType.TEXT, "Ghana cocoa beans", "Ghana cocoa beans")
        assert outcome.severity == Severity.GREEN
        assert outcome.explanation == "Exact match with LC terms."

    def test_case_and_punctuation_are_ignored(self):
        assert _sev("portOfLoading", FieldType.TEXT, "Tema, Ghana", "TEMA GHANA") == Severity.GREEN

    def test_containment_is_amber(self):
        assert _sev("goodsDescription", FieldType.TEXT, "cocoa beans", "Ghana cocoa beans main crop") == Severity.AMBER

    def test_partial_overlap_above_threshold_is_amber(self):
        assert _sev(
            "goodsDescription", FieldType.TEXT,
            "raw cocoa beans main crop", "fermented cocoa beans main harvest",
        ) == Severity.AMBER

    def test_unrelated_text_is_red(self):
        assert _sev("goodsDescription", FieldType.TEXT, "Ghana cocoa beans", "Brazilian coffee") == Severity.RED

    def test_company_forms_are_equivalent(self):
        assert _sev("beneficiaryName", FieldType.NAME, "Kofi Cocoa Exports Ltd", "KOFI COCOA EXPORTS LIMITED") == Severity.GREEN

    def test_ampersand_and_and_are_equivalent(self):
        assert _sev("applicantName", FieldType.NAME, "Smith & Sons Co", "Smith and Sons Company") == Severity.GREEN

    def test_blank_document_text_is_missing(self):
        outcome = match("portOfLoading", FieldType.TEXT, "Tema", "N/A")
        assert outcome.severity == Severity.RED
        assert outcome.explanation.startswith("Missing field")


# ═══════════════════════════════════════════════════
# DATE
# ═══════════════════════════════════════════════════

class TestDate:
    def test_on_or_before_deadline_is_green(self):
        assert _sev("shippedOnBoardDate", FieldType.DATE, "2026-03-31", "31/03/2026") == Severity.GREEN

    def test_after_deadline_is_red(self):
        outcome = match("shippedOnBoardDate", FieldType.DATE, "2026-03-31", "2026-04-02")
        assert outcome.severity == Severity.RED
        assert "2 day(s) after" in outcome.explanation

    def test_missing_date_without_evidence_is_red(self):
        outcome = match("shippedOnBoardDate", FieldType.DATE, "2026-03-31", None)
        assert outcome.severity == Severity.RED
        assert outcome.explanation.startswith("Missing field")

    def test_missing_date_with_timely_issue_date_is_amber(self):
        assert _sev("shippedOnBoardDate", FieldType.DATE, "2026-03-31", None, evidence="2026-03-18") == Severity.AMBER

    def test_missing_date_with_late_issue_date_is_red(self):
        assert _sev("shippedOnBoardDate", FieldType.DATE, "2026-03-31", None, evidence="2026-04-10") == Severity.RED

    def test_unreadable_date_is_red(self):
        assert _sev("shippedOnBoardDate", FieldType.DATE, "2026-03-31", "sometime in March") == Severity.RED

    def test_no_lc_deadline_is_amber(self):
        assert _sev("shippedOnBoardDate", FieldType.DATE, None, "2026-03-20") == Severity.AMBER


@pytest.mark.parametrize("field_type", list(FieldType))
def test_match_never_raises_on_garbage(field_type):
    outcome = match("someField", field_type, {"odd": "value"}, ["also", "odd"])
    assert outcome.severity in set(Severity)
    assert outcome.explanation
