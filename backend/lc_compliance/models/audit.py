"""
Audit Event Model — Immutable, tamper-evident TwinLog trail.
Every material action is SHA-256 hashed and chained to the previous event of the same lookup.
"""
import uuid
from sqlalchemy import Column, String, Integer, DateTime, JSON, ForeignKey, UniqueConstraint, event

from lc_compliance.database import Base
from lc_compliance.utils.dates import utcnow


class AuditEvent(Base):
    __tablename__ = "trade_events"
    __table_args__ = (
        # Two writers that read the same tail collide here instead of forking the chain
        UniqueConstraint("lookup_id", "sequence", name="uq_trade_events_lookup_sequence"),
        UniqueConstraint("lookup_id", "previous_hash", name="uq_trade_events_lookup_previous"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    lookup_id = Column(String(36), ForeignKey("lookups.id"), nullable=False, index=True)
    session_id = Column(String(64), nullable=False, index=True)

    sequence = Column(Integer, nullable=False)          # 0-based position in the lookup's chain
    event_type = Column(String(40), nullable=False)
    # Types: compliance_check, lc_check, lc_recheck, correction_sent, supplier_link_created,
    #        supplier_doc_uploaded, supplier_complete, status_change, twinlog_generated,
    #        eudr_created, trade_archived, trade_closed, account_created, arrival, customs_cleared
    event_data = Column(JSON, nullable=False, default=dict)

    previous_hash = Column(String(64), nullable=True)   # None for the first event
    event_hash = Column(String(64), nullable=False, unique=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)


@event.listens_for(AuditEvent, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise RuntimeError("trade_events rows are append-only")


@event.listens_for(AuditEvent, "before_delete")
def _refuse_audit_delete(mapper, connection, target):
    raise RuntimeError("trade_events rows are append-only")
