"""
LC Check Routes — run a compliance check and read stored checks.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from lc_compliance.database import get_db
from lc_compliance.models.lc import LcCheck
from lc_compliance.schemas.schemas import LcCheckDetail, LcCheckListItem, LcCheckRequest, LcCheckResponse
from lc_compliance.services.case_service import CaseService
from lc_compliance.services.discrepancy import verify_check_integrity

router = APIRouter(prefix="/api/lc-checks", tags=["LC Checks"])


def _check_fields(check: LcCheck) -> dict:
    return {
        "id": check.id,
        "case_id": check.case_id,
        "recheck_number": check.recheck_number,
        "results": check.results_json,
        "summary": check.summary,
        "integrity_hash": check.integrity_hash,
        "correction_email": check.correction_email or "",
        "correction_whatsapp": check.correction_whatsapp or "",
        "created_at": check.created_at,
    }


@router.post("", response_model=LcCheckResponse)
def run_lc_check(
    payload: LcCheckRequest,
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    """Cross-check LC terms against the submitted documents.

    With ``sourceLookupId`` the check is recorded on that shipment's case
    (first check opens the case, later ones are re-checks).
    """
    check, case = CaseService.submit_check(
        db,
        terms=payload.lc_fields,
        documents=payload.documents,
        session_id=session_id,
        source_lookup_id=payload.source_lookup_id,
        payment_ref=payload.recheck_payment_ref,
    )
    return LcCheckResponse(**_check_fields(check), case_status=case.status if case else None)


@router.get("", response_model=list[LcCheckListItem])
def list_lc_checks(
    session_id: Optional[str] = Header(None, alias="session-id"),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    checks = CaseService.list_checks(db, session_id=session_id, limit=limit)
    return [
        LcCheckListItem(
            id=c.id,
            case_id=c.case_id,
            source_lookup_id=c.source_lookup_id,
            verdict=c.verdict,
            recheck_number=c.recheck_number,
            lc_reference=(c.lc_fields_json or {}).get("lcReference"),
            beneficiary_name=(c.lc_fields_json or {}).get("beneficiaryName"),
            created_at=c.created_at,
        )
        for c in checks
    ]


@router.get("/{check_id}", response_model=LcCheckDetail)
def get_lc_check(check_id: str, db: Session = Depends(get_db)):
    """Stored check with its inputs and a fresh integrity verification."""
    check = CaseService.get_check(db, check_id)
    return LcCheckDetail(
        **_check_fields(check),
        lc_fields=check.lc_fields_json,
        documents=check.documents_json,
        source_lookup_id=check.source_lookup_id,
        integrity_valid=verify_check_integrity(check),
    )
