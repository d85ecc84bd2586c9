"""
LC Case Routes — case state, initial-vs-latest comparison, correction requests, closing.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.orm import Session

from lc_compliance.database import get_db
from lc_compliance.schemas.schemas import (
    CaseCloseRequest, CaseComparisonResponse, CorrectionLogRequest, LcCaseOut,
)
from lc_compliance.services.case_service import CaseService

router = APIRouter(prefix="/api/lc-cases", tags=["LC Cases"])


@router.get("", response_model=list[LcCaseOut])
def list_cases(
    session_id: Optional[str] = Header(None, alias="session-id"),
    source_lookup_id: Optional[str] = Query(None, alias="sourceLookupId"),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
):
    return CaseService.list_cases(db, session_id=session_id, source_lookup_id=source_lookup_id, limit=limit)


@router.get("/{case_id}", response_model=LcCaseOut)
def get_case(case_id: str, db: Session = Depends(get_db)):
    return CaseService.get_case(db, case_id)


@router.get("/{case_id}/comparison", response_model=CaseComparisonResponse)
def get_comparison(case_id: str, db: Session = Depends(get_db)):
    """Initial vs latest check, per-field Fixed/Open state and chain validity."""
    return CaseComparisonResponse.model_validate(CaseService.comparison(db, case_id), from_attributes=True)


@router.post("/{case_id}/corrections", response_model=LcCaseOut)
def log_correction(
    case_id: str,
    payload: CorrectionLogRequest,
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    """Record that a correction request went out to the supplier."""
    return CaseService.log_correction(
        db, case_id, channel=payload.channel, session_id=session_id,
        discrepancy_count=payload.discrepancy_count,
    )


@router.post("/{case_id}/close", response_model=LcCaseOut)
def close_case(
    case_id: str,
    payload: Optional[CaseCloseRequest] = None,
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    return CaseService.close_case(db, case_id, session_id=session_id, reason=payload.reason if payload else None)
