"""
TwinLog Routes — a shipment's hash-chained audit trail, chain verification and locking.
"""
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, Header
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from lc_compliance.database import get_db
from lc_compliance.schemas.events import parse_event
from lc_compliance.schemas.schemas import (
    AuditEventOut, AuditTrailResponse, ChainVerificationResponse, TwinlogLockResponse,
)
from lc_compliance.services.audit_service import AuditService, ChainVerification
from lc_compliance.services.twinlog_service import TwinlogService

router = APIRouter(prefix="/api/twinlog", tags=["TwinLog"])


def _verification(chain: ChainVerification) -> dict:
    return {
        "valid": chain.valid,
        "total_events": chain.total_events,
        "broken_at": chain.broken_at,
        "broken_event_id": chain.broken_event_id,
        "reason": chain.reason,
    }


@router.get("/{lookup_id}/events", response_model=AuditTrailResponse)
def get_trail(lookup_id: str, db: Session = Depends(get_db)):
    """Full trail in chain order, with its verification result."""
    TwinlogService.get_lookup(db, lookup_id)
    chain = AuditService.verify_chain(db, lookup_id)
    return AuditTrailResponse(
        **_verification(chain),
        events=[AuditEventOut.model_validate(e) for e in chain.events],
    )


@router.get("/{lookup_id}/verify", response_model=ChainVerificationResponse)
def verify_trail(lookup_id: str, db: Session = Depends(get_db)):
    TwinlogService.get_lookup(db, lookup_id)
    return ChainVerificationResponse(**_verification(AuditService.verify_chain(db, lookup_id)))


@router.post("/{lookup_id}/events", response_model=AuditEventOut, status_code=201)
def record_event(
    lookup_id: str,
    payload: Dict[str, Any] = Body(...),
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    """Append a collaborator event, e.g. ``{"eventType": "arrival", "arrivalDate": "2026-03-02"}``."""
    try:
        event = parse_event(payload)
    except PydanticValidationError as e:
        raise RequestValidationError(e.errors())
    return TwinlogService.record_event(db, lookup_id, session_id, event)


@router.post("/{lookup_id}/lock", response_model=TwinlogLockResponse)
def lock_trail(
    lookup_id: str,
    session_id: str = Header("anonymous", alias="session-id"),
    db: Session = Depends(get_db),
):
    """Issue the public TwinLog reference banks use to verify this trail."""
    lookup = TwinlogService.lock(db, lookup_id, session_id)
    return TwinlogLockResponse(ref=lookup.twinlog_ref, hash=lookup.twinlog_hash, locked_at=lookup.twinlog_locked_at)
