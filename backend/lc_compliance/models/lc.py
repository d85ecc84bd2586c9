"""
LC Models — checks, cases and their append-only history tables.
"""
import uuid
from sqlalchemy import (
    Column, String, Integer, DateTime, JSON, ForeignKey, UniqueConstraint, Text, event,
)
from sqlalchemy.orm import relationship

from lc_compliance.database import Base
from lc_compliance.utils.dates import utcnow


def _uuid() -> str:
    return str(uuid.uuid4())


class LcCheck(Base):
    """One persisted check attempt. Immutable after insert."""

    __tablename__ = "lc_checks"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(64), index=True)
    source_lookup_id = Column(String(36), ForeignKey("lookups.id"), nullable=True, index=True)
    case_id = Column(String(36), ForeignKey("lc_cases.id"), nullable=True, index=True)
    recheck_number = Column(Integer, nullable=False, default=0)

    lc_fields_json = Column(JSON, nullable=False)
    documents_json = Column(JSON, nullable=False)
    results_json = Column(JSON, nullable=False)
    summary = Column(JSON, nullable=False)
    verdict = Column(String(24), nullable=False)   # COMPLIANT | COMPLIANT_WITH_NOTES | DISCREPANCIES_FOUND

    integrity_hash = Column(String(64), nullable=False)
    correction_email = Column(Text)
    correction_whatsapp = Column(Text)

    created_at = Column(DateTime, nullable=False, default=utcnow)


class LcCase(Base):
    """Mutable aggregate tracking one shipment's LC compliance lifecycle."""

    __tablename__ = "lc_cases"

    id = Column(String(36), primary_key=True, default=_uuid)
    session_id = Column(String(64), nullable=False, index=True)
    source_lookup_id = Column(String(36), ForeignKey("lookups.id"), nullable=False, unique=True, index=True)

    status = Column(String(24), nullable=False, default="checking")
    # Statuses: checking → all_clear | discrepancy
    #           discrepancy | pending_correction → rechecking → resolved | discrepancy
    #           all_clear | resolved → closed (manual)

    initial_check_id = Column(String(36), nullable=True)
    latest_check_id = Column(String(36), nullable=True)
    recheck_count = Column(Integer, nullable=False, default=0)
    max_free_rechecks = Column(Integer, nullable=False, default=3)

    lc_reference = Column(String(64))
    beneficiary_name = Column(String(256))

    closed_at = Column(DateTime, nullable=True)
    closed_reason = Column(String(512), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    version = Column(Integer, nullable=False)

    check_history = relationship(
        "CheckHistoryEntry",
        order_by="CheckHistoryEntry.recheck_number",
        lazy="selectin",
    )
    correction_requests = relationship(
        "CorrectionRequest",
        order_by="CorrectionRequest.sequence",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def free_rechecks_remaining(self) -> int:
        return max(0, (self.max_free_rechecks or 0) - (self.recheck_count or 0))


class CheckHistoryEntry(Base):
    __tablename__ = "lc_check_history"
    __table_args__ = (
        UniqueConstraint("case_id", "recheck_number", name="uq_lc_check_history_case_recheck"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(36), ForeignKey("lc_cases.id"), nullable=False, index=True)
    recheck_number = Column(Integer, nullable=False)
    check_id = Column(String(36), ForeignKey("lc_checks.id"), nullable=False)
    verdict = Column(String(24), nullable=False)
    summary = Column(String(256), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class CorrectionRequest(Base):
    __tablename__ = "lc_correction_requests"
    __table_args__ = (
        UniqueConstraint("case_id", "sequence", name="uq_lc_correction_requests_case_sequence"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(36), ForeignKey("lc_cases.id"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    channel = Column(String(16), nullable=False)   # email | whatsapp | link
    discrepancy_count = Column(Integer, nullable=False, default=0)
    sent_at = Column(DateTime, nullable=False, default=utcnow)


class PaidRecheck(Base):
    """Payment references already spent on a re-check beyond the free allowance."""

    __tablename__ = "lc_paid_rechecks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    payment_ref = Column(String(128), nullable=False, unique=True)
    case_id = Column(String(36), ForeignKey("lc_cases.id"), nullable=False, index=True)
    session_id = Column(String(64))
    consumed_at = Column(DateTime, nullable=False, default=utcnow)


def _refuse_mutation(mapper, connection, target):
    raise RuntimeError(f"{target.__tablename__} rows are append-only")


for _model in (LcCheck, CheckHistoryEntry, CorrectionRequest):
    event.listen(_model, "before_update", _refuse_mutation)
    event.listen(_model, "before_delete", _refuse_mutation)
