"""
Audit Service — Manages the immutable, hash-chained TwinLog trail per lookup.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lc_compliance.config import get_settings
from lc_compliance.exceptions import ChainWriteConflictError
from lc_compliance.models.audit import AuditEvent
from lc_compliance.schemas.events import event_data
from lc_compliance.utils.dates import utcnow
from lc_compliance.utils.hashing import generate_chain_hash

logger = logging.getLogger(__name__)


def compute_event_hash(
    event_type: str,
    data: Dict[str, Any],
    created_at: datetime,
    previous_hash: Optional[str],
) -> str:
    """eventHash = SHA-256(canonical({eventType, eventData, createdAt}) || previousHash)."""
    return generate_chain_hash(
        {"eventType": event_type, "eventData": data, "createdAt": created_at},
        previous_hash,
    )


@dataclass
class ChainVerification:
    valid: bool
    total_events: int
    broken_at: Optional[int] = None          # index of the first bad event
    broken_event_id: Optional[str] = None
    reason: Optional[str] = None
    events: List[AuditEvent] = field(default_factory=list)


class AuditService:
    """Creates tamper-evident audit events with hash chaining and verifies chains."""

    @staticmethod
    def _latest_event(db: Session, lookup_id: str) -> Optional[AuditEvent]:
        return (
            db.query(AuditEvent)
            .filter(AuditEvent.lookup_id == lookup_id)
            .order_by(AuditEvent.sequence.desc())
            .first()
        )

    @staticmethod
    def append_event(db: Session, lookup_id: str, session_id: str, payload) -> AuditEvent:
        """Append one event to the lookup's chain.

        The caller's pending changes are flushed first, outside the retry loop,
        so their own constraint violations surface as IntegrityError instead of
        being mistaken for a fork. The tail is then re-read on every attempt and
        the insert runs in a SAVEPOINT: a writer that lost the race (unique
        ``(lookup_id, sequence)`` violation) retries against the new tail without
        undoing the caller's other work. Flushes only; the caller commits.

        Args:
            db: Database session (caller owns the transaction).
            lookup_id: Chain subject.
            session_id: Actor's session.
            payload: One of the models in ``lc_compliance.schemas.events``.

        Returns:
            The flushed AuditEvent.

        Raises:
            ChainWriteConflictError: every attempt collided with another writer.
            IntegrityError: the caller's own pending changes violate a constraint.
        """
        db.flush()

        max_attempts = get_settings().AUDIT_APPEND_MAX_ATTEMPTS
        event_type = payload.event_type
        data = event_data(payload)

        for attempt in range(1, max_attempts + 1):
            tail = AuditService._latest_event(db, lookup_id)
            previous_hash = tail.event_hash if tail else None
            created_at = utcnow()

            entry = AuditEvent(
                id=str(uuid.uuid4()),
                lookup_id=lookup_id,
                session_id=session_id,
                sequence=tail.sequence + 1 if tail else 0,
                event_type=event_type,
                event_data=data,
                previous_hash=previous_hash,
                event_hash=compute_event_hash(event_type, data, created_at, previous_hash),
                created_at=created_at,
            )
            try:
                with db.begin_nested():
                    db.add(entry)
            except IntegrityError:
                logger.warning(
                    "Audit chain fork rejected for lookup %s (%s, attempt %d/%d)",
                    lookup_id, event_type, attempt, max_attempts,
                )
                continue

            logger.info("Audit event %s #%d appended for lookup %s", event_type, entry.sequence, lookup_id)
            return entry

        raise ChainWriteConflictError(
            "Audit trail is busy for this trade, please retry",
            extra={"attempts": max_attempts},
        )

    @staticmethod
    def get_trail(db: Session, lookup_id: str) -> list[AuditEvent]:
        """Get the full audit trail for a lookup, in chain order."""
        return (
            db.query(AuditEvent)
            .filter(AuditEvent.lookup_id == lookup_id)
            .order_by(AuditEvent.sequence.asc())
            .all()
        )

    @staticmethod
    def verify_chain(db: Session, lookup_id: str) -> ChainVerification:
        """Recompute every hash of a lookup's chain; stop at the first break.

        Never raises on a broken chain: the result says ``valid=False`` and the
        break is logged for operators.
        """
        events = AuditService.get_trail(db, lookup_id)

        for i, entry in enumerate(events):
            expected_prev = events[i - 1].event_hash if i > 0 else None
            reason = None

            if entry.previous_hash != expected_prev:
                reason = "previous hash does not link to the prior event"
            elif entry.sequence != i:
                reason = f"sequence {entry.sequence} found at position {i}"
            elif compute_event_hash(
                entry.event_type, entry.event_data, entry.created_at, expected_prev
            ) != entry.event_hash:
                reason = "event content does not match its hash"

            if reason:
                logger.warning(
                    "Audit chain for lookup %s broken at event %d (%s): %s",
                    lookup_id, i, entry.id, reason,
                )
                return ChainVerification(
                    valid=False,
                    total_events=len(events),
                    broken_at=i,
                    broken_event_id=entry.id,
                    reason=reason,
                    events=events,
                )

        return ChainVerification(valid=True, total_events=len(events), events=events)
