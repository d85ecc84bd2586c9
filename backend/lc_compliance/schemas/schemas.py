"""
Pydantic Schemas — Request & Response models for API validation.
"""
from datetime import datetime
from typing import Any, Optional, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from lc_compliance.schemas.lc import (
    CamelModel, CheckResultItem, DocumentSubmission, LcCheckSummary, LcTerms,
    Severity, Verdict,
)


class OrmModel(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ──────────────── Lookups ────────────────

class LookupCreateRequest(CamelModel):
    commodity_name: str
    origin_name: str
    destination_name: str
    hs_code: Optional[str] = None
    risk_level: Optional[str] = None
    readiness_score: Optional[int] = Field(None, ge=0, le=100)
    readiness_verdict: Optional[str] = None


class LookupResponse(OrmModel):
    id: str
    commodity_name: str
    origin_name: str
    destination_name: str
    hs_code: Optional[str] = None
    readiness_score: Optional[int] = None
    readiness_verdict: Optional[str] = None
    twinlog_ref: Optional[str] = None
    twinlog_locked_at: Optional[datetime] = None
    created_at: datetime


# ──────────────── LC Checks ────────────────

class LcCheckRequest(CamelModel):
    lc_fields: LcTerms
    documents: List[DocumentSubmission] = Field(default_factory=list)
    source_lookup_id: Optional[str] = None
    recheck_payment_ref: Optional[str] = None


class LcCheckResponse(CamelModel):
    id: str
    case_id: Optional[str] = None
    case_status: Optional[str] = None
    recheck_number: int = 0
    results: List[CheckResultItem]
    summary: LcCheckSummary
    integrity_hash: str
    correction_email: str = ""
    correction_whatsapp: str = ""
    created_at: datetime


class LcCheckDetail(LcCheckResponse):
    lc_fields: LcTerms
    documents: List[DocumentSubmission]
    source_lookup_id: Optional[str] = None
    integrity_valid: bool


class LcCheckListItem(CamelModel):
    id: str
    case_id: Optional[str] = None
    source_lookup_id: Optional[str] = None
    verdict: Verdict
    recheck_number: int
    lc_reference: Optional[str] = None
    beneficiary_name: Optional[str] = None
    created_at: datetime


# ──────────────── LC Cases ────────────────

class CheckHistoryOut(OrmModel):
    recheck_number: int
    check_id: str
    verdict: Verdict
    summary: str
    created_at: datetime


class CorrectionRequestOut(OrmModel):
    channel: str
    discrepancy_count: int
    sent_at: datetime


class LcCaseOut(OrmModel):
    id: str
    source_lookup_id: str
    lc_reference: Optional[str] = None
    beneficiary_name: Optional[str] = None
    status: str
    recheck_count: int
    max_free_rechecks: int
    free_rechecks_remaining: int
    initial_check_id: Optional[str] = None
    latest_check_id: Optional[str] = None
    check_history: List[CheckHistoryOut] = []
    correction_requests: List[CorrectionRequestOut] = []
    closed_at: Optional[datetime] = None
    closed_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class CheckSnapshot(CamelModel):
    id: str
    verdict: Verdict
    results: List[CheckResultItem]
    summary: LcCheckSummary
    created_at: datetime


class FieldComparisonRow(CamelModel):
    field_name: str
    document_type: str
    initial_severity: Severity
    latest_severity: Optional[Severity] = None
    state: Literal["Fixed", "Open"]


class CaseComparisonResponse(CamelModel):
    case_id: str
    status: str
    recheck_count: int
    max_free_rechecks: int
    free_rechecks_remaining: int
    initial_check: Optional[CheckSnapshot] = None
    latest_check: Optional[CheckSnapshot] = None
    check_history: List[CheckHistoryOut] = []
    correction_requests: List[CorrectionRequestOut] = []
    field_comparison: List[FieldComparisonRow] = []
    chain_valid: bool


class CorrectionLogRequest(CamelModel):
    channel: Literal["email", "whatsapp", "link"]
    discrepancy_count: Optional[int] = Field(None, ge=0)


class CaseCloseRequest(CamelModel):
    reason: Optional[str] = Field(None, max_length=512)


# ──────────────── TwinLog / Audit ────────────────

class AuditEventOut(OrmModel):
    id: str
    session_id: str
    sequence: int
    event_type: str
    event_data: Dict[str, Any]
    previous_hash: Optional[str] = None
    event_hash: str
    created_at: datetime


class ChainVerificationResponse(CamelModel):
    valid: bool
    total_events: int
    broken_at: Optional[int] = None
    broken_event_id: Optional[str] = None
    reason: Optional[str] = None


class AuditTrailResponse(ChainVerificationResponse):
    events: List[AuditEventOut] = []


class TwinlogLockResponse(CamelModel):
    ref: str
    hash: str
    locked_at: datetime


class PublicVerificationResponse(CamelModel):
    commodity_name: str
    origin_name: str
    destination_name: str
    ref: str
    hash: Optional[str] = None
    locked_at: Optional[datetime] = None
    readiness_score: Optional[int] = None
    readiness_verdict: Optional[str] = None
    chain_valid: bool
    total_events: int
    hash_in_chain: bool


# ──────────────── Generic ────────────────

class ErrorResponse(BaseModel):
    detail: str
    error_code: Optional[str] = None
    extra: Optional[Dict[str, Any]] = None
