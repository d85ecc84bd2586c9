"""
TwinLog Service — shipment records, locking a trail, and the public bank-facing view.
"""
import logging
import secrets
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from lc_compliance.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from lc_compliance.models.audit import AuditEvent
from lc_compliance.models.lookup import TradeLookup
from lc_compliance.schemas.events import ComplianceCheckEvent, EventType, TwinlogGeneratedEvent
from lc_compliance.services.audit_service import AuditService
from lc_compliance.utils.dates import utcnow

logger = logging.getLogger(__name__)

_REF_ATTEMPTS = 5

# Written only by the case lifecycle and lock operations, never accepted from callers
INTERNAL_EVENT_TYPES = {
    EventType.LC_CHECK,
    EventType.LC_RECHECK,
    EventType.CORRECTION_SENT,
    EventType.STATUS_CHANGE,
    EventType.TWINLOG_GENERATED,
}


def _new_ref(year: int) -> str:
    return f"TT-{year}-{secrets.token_hex(3).upper()}"


class TwinlogService:

    @staticmethod
    def get_lookup(db: Session, lookup_id: str, for_update: bool = False) -> TradeLookup:
        query = db.query(TradeLookup).filter(TradeLookup.id == lookup_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        lookup = query.first()
        if not lookup:
            raise NotFoundError("Lookup not found", extra={"lookup_id": lookup_id})
        return lookup

    @staticmethod
    def register_lookup(
        db: Session,
        session_id: str,
        commodity_name: str,
        origin_name: str,
        destination_name: str,
        hs_code: Optional[str] = None,
        risk_level: Optional[str] = None,
        readiness_score: Optional[int] = None,
        readiness_verdict: Optional[str] = None,
    ) -> TradeLookup:
        """Record a shipment and open its trail with a compliance_check event."""
        lookup = TradeLookup(
            id=str(uuid.uuid4()),
            session_id=session_id,
            commodity_name=commodity_name,
            origin_name=origin_name,
            destination_name=destination_name,
            hs_code=hs_code,
            risk_level=risk_level,
            readiness_score=readiness_score,
            readiness_verdict=readiness_verdict,
            created_at=utcnow(),
        )
        try:
            db.add(lookup)
            db.flush()
            AuditService.append_event(db, lookup.id, session_id, ComplianceCheckEvent(
                commodity_name=commodity_name,
                origin_name=origin_name,
                destination_name=destination_name,
                risk_level=risk_level,
            ))
            db.commit()
        except Exception:
            db.rollback()
            raise

        db.refresh(lookup)
        logger.info("Lookup %s registered (%s, %s -> %s)", lookup.id, commodity_name, origin_name, destination_name)
        return lookup

    @staticmethod
    def record_event(db: Session, lookup_id: str, session_id: str, payload) -> AuditEvent:
        """Append a collaborator event (arrival, supplier upload, ...) to a lookup's trail."""
        if EventType(payload.event_type) in INTERNAL_EVENT_TYPES:
            raise ValidationError(
                f"{payload.event_type} events are recorded by the engine and cannot be submitted",
                extra={"event_type": payload.event_type},
            )
        TwinlogService.get_lookup(db, lookup_id)
        try:
            entry = AuditService.append_event(db, lookup_id, session_id, payload)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(entry)
        return entry

    @staticmethod
    def lock(db: Session, lookup_id: str, session_id: str) -> TradeLookup:
        """Issue the public TwinLog reference for a lookup.

        The chain is verified first; a broken chain cannot be locked. Locking
        an already locked lookup returns it unchanged. The reference is claimed
        with a conditional UPDATE, so when two requests race only the first one
        keeps its twinlog_generated event and the other returns the winner's ref.
        """
        lookup = TwinlogService.get_lookup(db, lookup_id, for_update=True)
        if lookup.twinlog_ref:
            return lookup

        chain = AuditService.verify_chain(db, lookup_id)
        if not chain.valid:
            raise InvalidTransitionError(
                "Audit trail failed verification and cannot be locked",
                extra={"lookup_id": lookup_id, "broken_at": chain.broken_at},
            )
        head_hash = chain.events[-1].event_hash if chain.events else None

        now = utcnow()
        ref = None
        for _ in range(_REF_ATTEMPTS):
            candidate = _new_ref(now.year)
            if not db.query(TradeLookup.id).filter(TradeLookup.twinlog_ref == candidate).first():
                ref = candidate
                break
        if ref is None:
            raise RuntimeError("Could not allocate a unique TwinLog reference")

        try:
            entry = AuditService.append_event(
                db, lookup_id, session_id, TwinlogGeneratedEvent(ref=ref, chain_head_hash=head_hash),
            )
            claimed = (
                db.query(TradeLookup)
                .filter(TradeLookup.id == lookup_id, TradeLookup.twinlog_ref.is_(None))
                .update(
                    {
                        TradeLookup.twinlog_ref: ref,
                        TradeLookup.twinlog_hash: entry.event_hash,
                        TradeLookup.twinlog_locked_at: now,
                    },
                    synchronize_session=False,
                )
            )
            if claimed:
                db.commit()
            else:
                db.rollback()
        except Exception:
            db.rollback()
            raise

        db.refresh(lookup)
        if not claimed:
            logger.info("Lookup %s was locked by another request as %s", lookup_id, lookup.twinlog_ref)
            return lookup

        logger.info("TwinLog %s locked for lookup %s", ref, lookup_id)
        return lookup

    @staticmethod
    def public_view(db: Session, ref: str) -> dict:
        """What a bank sees for a TwinLog reference. Never includes the lookup id."""
        lookup = db.query(TradeLookup).filter(TradeLookup.twinlog_ref == ref).first()
        if not lookup:
            raise NotFoundError("TwinLog reference not found")

        chain = AuditService.verify_chain(db, lookup.id)
        hash_in_chain = bool(lookup.twinlog_hash) and any(
            e.event_hash == lookup.twinlog_hash for e in chain.events
        )

        return {
            "commodity_name": lookup.commodity_name,
            "origin_name": lookup.origin_name,
            "destination_name": lookup.destination_name,
            "ref": lookup.twinlog_ref,
            "hash": lookup.twinlog_hash,
            "locked_at": lookup.twinlog_locked_at,
            "readiness_score": lookup.readiness_score,
            "readiness_verdict": lookup.readiness_verdict,
            "chain_valid": chain.valid,
            "total_events": chain.total_events,
            "hash_in_chain": hash_in_chain,
        }
