"""
LC domain types — terms, documents, result rows and summaries.
Wire names are camelCase so stored JSON keeps the shapes other services read.
"""
import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Severity(str, Enum):
    GREEN = "GREEN"
    AMBER = "AMBER"
    RED = "RED"


class Verdict(str, Enum):
    COMPLIANT = "COMPLIANT"
    COMPLIANT_WITH_NOTES = "COMPLIANT_WITH_NOTES"
    DISCREPANCIES_FOUND = "DISCREPANCIES_FOUND"


class DocumentType(str, Enum):
    COMMERCIAL_INVOICE = "commercial_invoice"
    BILL_OF_LADING = "bill_of_lading"
    CERTIFICATE_OF_ORIGIN = "certificate_of_origin"
    PHYTOSANITARY_CERTIFICATE = "phytosanitary_certificate"
    PACKING_LIST = "packing_list"
    OTHER = "other"


DOCUMENT_LABELS = {
    DocumentType.COMMERCIAL_INVOICE: "Commercial Invoice",
    DocumentType.BILL_OF_LADING: "Bill of Lading",
    DocumentType.CERTIFICATE_OF_ORIGIN: "Certificate of Origin",
    DocumentType.PHYTOSANITARY_CERTIFICATE: "Phytosanitary Certificate",
    DocumentType.PACKING_LIST: "Packing List",
    DocumentType.OTHER: "Other Document",
}

# documentType used on rows that concern the LC terms themselves
LC_TERMS_SOURCE = "lc_terms"


class LcTerms(CamelModel):
    """Buyer-declared LC terms. Frozen: a new check takes a new snapshot."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    beneficiary_name: Optional[str] = None
    applicant_name: Optional[str] = None
    goods_description: Optional[str] = None
    hs_code: Optional[str] = None
    quantity: Optional[Decimal] = None
    quantity_unit: Optional[str] = None
    unit_price: Optional[Decimal] = None
    currency: Optional[str] = None
    total_amount: Optional[Decimal] = None
    country_of_origin: Optional[str] = None
    port_of_loading: Optional[str] = None
    port_of_discharge: Optional[str] = None
    latest_shipment_date: Optional[str] = None
    lc_expiry_date: Optional[str] = None
    incoterms: Optional[str] = None
    partial_shipments_allowed: Optional[bool] = None
    transhipment_allowed: Optional[bool] = None
    lc_reference: Optional[str] = None
    issuing_bank: Optional[str] = None
    advising_bank: Optional[str] = None
    issuing_bank_swift: Optional[str] = None
    advising_bank_swift: Optional[str] = None


FieldValue = Union[bool, int, float, str, None]


class DocumentSubmission(CamelModel):
    """One extracted document: its type plus field name -> value."""

    document_type: DocumentType
    fields: Dict[str, FieldValue] = Field(default_factory=dict)

    @field_validator("fields")
    @classmethod
    def _non_finite_as_text(cls, v: Dict[str, FieldValue]) -> Dict[str, FieldValue]:
        # NaN/Infinity are not valid JSON; keep them as text so the row reports them
        return {
            name: str(value) if isinstance(value, float) and not math.isfinite(value) else value
            for name, value in v.items()
        }


class CheckResultItem(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    field_name: str
    document_type: str
    severity: Severity
    lc_value: str
    doc_value: str
    explanation: str
    ucp_rule_ref: Optional[str] = None


class LcCheckSummary(CamelModel):
    verdict: Verdict
    total_checks: int
    matches: int
    warnings: int
    criticals: int
    pass_rate: int
    checked_at: datetime
