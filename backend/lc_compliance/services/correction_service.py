"""
Correction Service — drafts the supplier correction request for RED rows.
Delivery (email / WhatsApp) is handled outside this service.
"""
from typing import List, NamedTuple, Sequence

from lc_compliance.schemas.lc import CheckResultItem, DOCUMENT_LABELS, DocumentType, LcTerms, Severity


class CorrectionMessages(NamedTuple):
    email: str
    whatsapp: str


def _doc_label(document_type: str) -> str:
    try:
        return DOCUMENT_LABELS[DocumentType(document_type)]
    except ValueError:
        return "LC Terms"


def build_correction_messages(terms: LcTerms, results: Sequence[CheckResultItem]) -> CorrectionMessages:
    """Return email and WhatsApp drafts listing every RED row; empty strings when there are none."""
    criticals = [r for r in results if r.severity == Severity.RED]
    if not criticals:
        return CorrectionMessages("", "")

    lc_ref = terms.lc_reference or "(not specified)"

    email: List[str] = [
        "Subject: URGENT: Document Discrepancies Found, Please Amend",
        "",
        f"Dear {terms.beneficiary_name},",
        "",
        f"We have reviewed the documents submitted against LC reference {lc_ref} and found the "
        f"following discrepancies that will cause the bank to reject the presentation:",
        "",
    ]
    for i, row in enumerate(criticals, start=1):
        email.append(f"{i}. {_doc_label(row.document_type)}: {row.field_name}")
        email.append(f"   Your document shows: {row.doc_value}")
        email.append(f"   The LC requires: {row.lc_value}")
        if row.ucp_rule_ref:
            email.append(f"   Rule: {row.ucp_rule_ref}")
        email.append("   Please amend and reissue.")
        email.append("")
    email.append("Please correct these discrepancies and resubmit the amended documents as soon as possible.")
    email.append("")
    email.append("Best regards")

    whatsapp: List[str] = [
        "*URGENT: Document Discrepancies*",
        f"LC Ref: {lc_ref}",
        "",
    ]
    for i, row in enumerate(criticals, start=1):
        whatsapp.append(f"{i}. *{_doc_label(row.document_type)}*: {row.field_name}")
        whatsapp.append(f"   Shows: {row.doc_value}")
        whatsapp.append(f"   LC requires: {row.lc_value}")
        whatsapp.append("   _Please amend and reissue._")
    whatsapp.append("")
    whatsapp.append("Please correct and resend ASAP.")

    return CorrectionMessages("\n".join(email), "\n".join(whatsapp))
