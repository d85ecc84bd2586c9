"""
Discrepancy Aggregator — runs the Field Matcher over every document of a submission.

Each document type has a fixed field schema. A rule is skipped when neither
side states a value, or when the document omits a field the schema marks
optional for that document type; a required field the document omits is RED.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, NamedTuple, Optional, Sequence

from lc_compliance.config import get_settings
from lc_compliance.exceptions import ValidationError
from lc_compliance.schemas.lc import (
    CheckResultItem, DocumentSubmission, DocumentType, LcCheckSummary, LcTerms,
    LC_TERMS_SOURCE, Severity, Verdict,
)
from lc_compliance.services.field_matcher import FieldType, MatcherConfig, match
from lc_compliance.utils.dates import parse_date, utcnow
from lc_compliance.utils.hashing import generate_hash
from lc_compliance.utils.validators import display_value, is_blank, validate_ched_reference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldRule:
    doc_field: str
    lc_term: str
    field_type: FieldType
    label: str
    ucp_rule: str
    optional: bool = False
    evidence_fields: tuple = ()


def _rule(doc_field, lc_term, field_type, label, ucp_rule, optional=False, evidence_fields=()):
    return FieldRule(doc_field, lc_term, field_type, label, ucp_rule, optional, tuple(evidence_fields))


_BENEFICIARY = _rule("beneficiaryName", "beneficiary_name", FieldType.NAME, "Beneficiary Name", "UCP 600 Art. 18(a)(i)")
_GOODS = _rule("goodsDescription", "goods_description", FieldType.TEXT, "Goods Description", "UCP 600 Art. 14(e)", optional=True)

DOCUMENT_SCHEMAS = {
    DocumentType.COMMERCIAL_INVOICE: (
        _BENEFICIARY,
        _rule("applicantName", "applicant_name", FieldType.NAME, "Applicant Name", "UCP 600 Art. 18(a)(ii)", optional=True),
        _rule("goodsDescription", "goods_description", FieldType.TEXT, "Goods Description", "UCP 600 Art. 18(c)"),
        _rule("hsCode", "hs_code", FieldType.TEXT, "HS Code", "ISBP 745 C3", optional=True),
        _rule("quantity", "quantity", FieldType.NUMERIC, "Quantity", "UCP 600 Art. 30(b)", optional=True),
        _rule("quantityUnit", "quantity_unit", FieldType.ENUM, "Quantity Unit", "UCP 600 Art. 14(d)", optional=True),
        _rule("unitPrice", "unit_price", FieldType.NUMERIC, "Unit Price", "UCP 600 Art. 30(c)", optional=True),
        _rule("currency", "currency", FieldType.ENUM, "Currency", "UCP 600 Art. 18(a)(iii)"),
        _rule("totalAmount", "total_amount", FieldType.NUMERIC, "Total Amount", "UCP 600 Art. 18(b)"),
        _rule("incoterms", "incoterms", FieldType.ENUM, "Incoterms", "UCP 600 Art. 18(c)", optional=True),
        _rule("lcReference", "lc_reference", FieldType.TEXT, "LC Reference", "ISBP 745 A2", optional=True),
    ),
    DocumentType.BILL_OF_LADING: (
        _rule("shipperName", "beneficiary_name", FieldType.NAME, "Shipper Name (vs Beneficiary)", "UCP 600 Art. 14(k)", optional=True),
        _rule("portOfLoading", "port_of_loading", FieldType.TEXT, "Port of Loading", "UCP 600 Art. 20(a)(iii)"),
        _rule("portOfDischarge", "port_of_discharge", FieldType.TEXT, "Port of Discharge", "UCP 600 Art. 20(a)(iii)"),
        _rule("shippedOnBoardDate", "latest_shipment_date", FieldType.DATE, "Shipment Date", "UCP 600 Art. 20(a)(ii)",
              evidence_fields=("issueDate", "dateOfIssue", "blDate")),
        _rule("shippedOnBoardDate", "lc_expiry_date", FieldType.DATE, "Shipment vs LC Expiry", "UCP 600 Art. 6(d)(i)",
              optional=True),
        _rule("quantity", "quantity", FieldType.NUMERIC, "Quantity", "UCP 600 Art. 14(d)", optional=True),
        _GOODS,
    ),
    DocumentType.CERTIFICATE_OF_ORIGIN: (
        _rule("exporterName", "beneficiary_name", FieldType.NAME, "Exporter Name (vs Beneficiary)", "UCP 600 Art. 14(d)", optional=True),
        _rule("originCountry", "country_of_origin", FieldType.TEXT, "Country of Origin", "UCP 600 Art. 14(d)"),
        _GOODS,
    ),
    DocumentType.PHYTOSANITARY_CERTIFICATE: (
        _rule("exporterName", "beneficiary_name", FieldType.NAME, "Exporter Name (vs Beneficiary)", "UCP 600 Art. 14(d)", optional=True),
        _rule("originCountry", "country_of_origin", FieldType.TEXT, "Country of Origin", "UCP 600 Art. 14(d)", optional=True),
        _GOODS,
    ),
    DocumentType.PACKING_LIST: (
        _rule("quantity", "quantity", FieldType.NUMERIC, "Quantity", "UCP 600 Art. 14(d)"),
        _rule("quantityUnit", "quantity_unit", FieldType.ENUM, "Quantity Unit", "UCP 600 Art. 14(d)", optional=True),
        _GOODS,
    ),
    DocumentType.OTHER: (
        _rule("beneficiaryName", "beneficiary_name", FieldType.NAME, "Beneficiary Name", "UCP 600 Art. 14(d)", optional=True),
        _GOODS,
    ),
}

# LC terms a check cannot run without (snake_case attribute, camelCase wire name)
REQUIRED_TERMS = (
    ("beneficiary_name", "beneficiaryName"),
    ("applicant_name", "applicantName"),
    ("goods_description", "goodsDescription"),
    ("currency", "currency"),
    ("total_amount", "totalAmount"),
)

SHIPMENT_DATE_FIELD = "shippedOnBoardDate"
CHED_FIELD = "chedReference"
BL_NUMBER_FIELD = "blNumber"


class CheckOutcome(NamedTuple):
    results: List[CheckResultItem]
    summary: LcCheckSummary


def validate_submission(terms: Optional[LcTerms], documents: Optional[Sequence[DocumentSubmission]]) -> None:
    """Reject incomplete terms or an empty document set before any matching runs."""
    if terms is None:
        raise ValidationError("LC terms are required", extra={"missing_terms": [w for _, w in REQUIRED_TERMS]})

    missing = [wire for attr, wire in REQUIRED_TERMS if is_blank(getattr(terms, attr))]
    if missing:
        raise ValidationError(
            f"LC terms missing required fields: {', '.join(missing)}",
            extra={"missing_terms": missing},
        )
    if terms.total_amount is not None and terms.total_amount <= 0:
        raise ValidationError("LC totalAmount must be greater than zero", extra={"invalid_terms": ["totalAmount"]})
    if not documents:
        raise ValidationError("At least one document is required for an LC check")


def aggregate_verdict(results: Iterable[CheckResultItem]) -> Verdict:
    """RED anywhere → DISCREPANCIES_FOUND; else AMBER anywhere → COMPLIANT_WITH_NOTES; else COMPLIANT."""
    severities = {r.severity for r in results}
    if Severity.RED in severities:
        return Verdict.DISCREPANCIES_FOUND
    if Severity.AMBER in severities:
        return Verdict.COMPLIANT_WITH_NOTES
    return Verdict.COMPLIANT


def summarize(results: Sequence[CheckResultItem], checked_at: datetime) -> LcCheckSummary:
    matches = sum(1 for r in results if r.severity == Severity.GREEN)
    warnings = sum(1 for r in results if r.severity == Severity.AMBER)
    criticals = sum(1 for r in results if r.severity == Severity.RED)
    total = len(results)
    return LcCheckSummary(
        verdict=aggregate_verdict(results),
        total_checks=total,
        matches=matches,
        warnings=warnings,
        criticals=criticals,
        pass_rate=round(matches / total * 100) if total else 0,
        checked_at=checked_at,
    )


def _first_present(fields: dict, names: Iterable[str]):
    for name in names:
        if not is_blank(fields.get(name)):
            return fields.get(name)
    return None


def _check_fields(terms: LcTerms, doc: DocumentSubmission, config: MatcherConfig) -> List[CheckResultItem]:
    rows = []
    for rule in DOCUMENT_SCHEMAS[doc.document_type]:
        lc_value = getattr(terms, rule.lc_term)
        doc_value = doc.fields.get(rule.doc_field)
        evidence = _first_present(doc.fields, rule.evidence_fields)

        if is_blank(doc_value) and (rule.optional or is_blank(lc_value)):
            continue

        outcome = match(rule.doc_field, rule.field_type, lc_value, doc_value, evidence=evidence, config=config)

        shown = display_value(doc_value)
        if is_blank(doc_value) and evidence is not None:
            shown = f"(empty; issue date {display_value(evidence)})"

        rows.append(CheckResultItem(
            field_name=rule.label,
            document_type=doc.document_type.value,
            severity=outcome.severity,
            lc_value=display_value(lc_value),
            doc_value=shown,
            explanation=outcome.explanation,
            ucp_rule_ref=rule.ucp_rule,
        ))
    return rows


def _presentation_period_row(
    doc: DocumentSubmission, checked_at: datetime, period_days: int,
) -> Optional[CheckResultItem]:
    shipped = parse_date(doc.fields.get(SHIPMENT_DATE_FIELD))
    if shipped is None:
        return None

    elapsed = (checked_at.date() - shipped).days
    if elapsed > period_days:
        severity = Severity.RED
        explanation = (
            f"Presentation deadline exceeded: {elapsed} days since shipment. Documents must be "
            f"presented within {period_days} calendar days of the shipment date."
        )
    elif elapsed < 0:
        severity = Severity.AMBER
        explanation = "Shipment date is in the future relative to this check. Verify the on-board date."
    else:
        severity = Severity.GREEN
        explanation = f"{elapsed} days since shipment, within the {period_days}-day presentation period."

    return CheckResultItem(
        field_name="Presentation Period",
        document_type=doc.document_type.value,
        severity=severity,
        lc_value=f"Within {period_days} days of shipment",
        doc_value=f"{elapsed} days since shipment",
        explanation=explanation,
        ucp_rule_ref="UCP 600 Art. 14(c)",
    )


def _ched_row(doc: DocumentSubmission) -> Optional[CheckResultItem]:
    ref = doc.fields.get(CHED_FIELD)
    if is_blank(ref):
        return None
    valid = validate_ched_reference(str(ref))
    return CheckResultItem(
        field_name="CHED Reference",
        document_type=doc.document_type.value,
        severity=Severity.GREEN if valid else Severity.AMBER,
        lc_value="GBCHDYYYY.NNNNNNN",
        doc_value=display_value(ref),
        explanation=(
            "CHED reference format is valid." if valid
            else "CHED reference format looks wrong. Expected GBCHDYYYY.NNNNNNN (e.g. GBCHD2026.0012345)."
        ),
        ucp_rule_ref=None,
    )


def _bl_number_row(doc: DocumentSubmission) -> Optional[CheckResultItem]:
    if not is_blank(doc.fields.get(BL_NUMBER_FIELD)):
        return None
    return CheckResultItem(
        field_name="B/L Number",
        document_type=doc.document_type.value,
        severity=Severity.AMBER,
        lc_value="Expected",
        doc_value="(empty)",
        explanation="B/L number is empty. Ensure this reference is populated for document tracking.",
        ucp_rule_ref=None,
    )


def _lc_reference_row(terms: LcTerms) -> Optional[CheckResultItem]:
    if not is_blank(terms.lc_reference):
        return None
    return CheckResultItem(
        field_name="LC Reference",
        document_type=LC_TERMS_SOURCE,
        severity=Severity.AMBER,
        lc_value="(empty)",
        doc_value="N/A",
        explanation="LC reference number is empty. Populate it so documents can be traced to the credit.",
        ucp_rule_ref=None,
    )


def run_check(
    terms: LcTerms,
    documents: Sequence[DocumentSubmission],
    checked_at: Optional[datetime] = None,
    config: Optional[MatcherConfig] = None,
    presentation_period_days: Optional[int] = None,
) -> CheckOutcome:
    """Cross-check LC terms against every submitted document.

    Args:
        terms: LC terms snapshot.
        documents: Extracted documents (at least one).
        checked_at: Reference time for the summary and the presentation period.
            Defaults to the current UTC time, so the presentation-period row (and
            with it the integrity hash) can differ between runs on different days.
            Identical inputs with the same ``checked_at`` give identical output.
        config: Matcher tolerances; defaults to the application settings.
        presentation_period_days: Defaults to the application settings.

    Returns:
        CheckOutcome(results, summary).

    Raises:
        ValidationError: terms incomplete or no documents.
    """
    validate_submission(terms, documents)

    settings = get_settings()
    checked_at = checked_at or utcnow()
    config = config or MatcherConfig.from_settings(settings)
    if presentation_period_days is None:
        presentation_period_days = settings.PRESENTATION_PERIOD_DAYS

    results: List[CheckResultItem] = []
    reference_row = _lc_reference_row(terms)
    if reference_row:
        results.append(reference_row)

    for doc in documents:
        results.extend(_check_fields(terms, doc, config))
        if doc.document_type == DocumentType.BILL_OF_LADING:
            period_row = _presentation_period_row(doc, checked_at, presentation_period_days)
            if period_row:
                results.append(period_row)
            bl_number_row = _bl_number_row(doc)
            if bl_number_row:
                results.append(bl_number_row)
        ched_row = _ched_row(doc)
        if ched_row:
            results.append(ched_row)

    summary = summarize(results, checked_at)
    logger.debug(
        "LC check: %d documents, %d rows, verdict %s",
        len(documents), len(results), summary.verdict.value,
    )
    return CheckOutcome(results, summary)


def compute_integrity_hash(
    terms: LcTerms,
    documents: Sequence[DocumentSubmission],
    results: Sequence[CheckResultItem],
    summary: LcCheckSummary,
) -> str:
    """Content hash of a check. The summary timestamp is left out so the hash depends on content only."""
    return generate_hash({
        "terms": terms.model_dump(mode="json", by_alias=True),
        "documents": [d.model_dump(mode="json", by_alias=True) for d in documents],
        "results": [r.model_dump(mode="json", by_alias=True) for r in results],
        "summary": summary.model_dump(mode="json", by_alias=True, exclude={"checked_at"}),
    })


def verify_check_integrity(check) -> bool:
    """Recompute the integrity hash of a stored check from its JSON columns."""
    recomputed = compute_integrity_hash(
        LcTerms.model_validate(check.lc_fields_json),
        [DocumentSubmission.model_validate(d) for d in check.documents_json],
        [CheckResultItem.model_validate(r) for r in check.results_json],
        LcCheckSummary.model_validate(check.summary),
    )
    return recomputed == check.integrity_hash
