"""
Lookup Routes — shipment records that LC cases and TwinLog trails attach to.
"""
from fastapi import APIRouter, Depends, Header
from sqlalchemy.orm import Session

from lc_compliance.database import get_db
from lc_compliance.schemas.schemas import LookupCreateRequest, LookupResponse
from lc_compliance.services.twinlog_service import TwinlogService

router = APIRouter(prefix="/api/lookups", tags=["Lookups"])


@router.post("", response_model=LookupResponse, status_code=201)
def create_lookup(
    payload: LookupCreateRequest,
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    """Register a shipment record and open its audit trail."""
    return TwinlogService.register_lookup(
        db,
        session_id=session_id,
        commodity_name=payload.commodity_name,
        origin_name=payload.origin_name,
        destination_name=payload.destination_name,
        hs_code=payload.hs_code,
        risk_level=payload.risk_level,
        readiness_score=payload.readiness_score,
        readiness_verdict=payload.readiness_verdict,
    )


@router.get("/{lookup_id}", response_model=LookupResponse)
def get_lookup(lookup_id: str, db: Session = Depends(get_db)):
    return TwinlogService.get_lookup(db, lookup_id)
