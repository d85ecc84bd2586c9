"""
Case Service — LC case lifecycle across checks, correction requests and re-checks.

Every public operation is one transaction: the check row, the case transition,
the history entry and the audit event are committed together or not at all.
"""
import logging
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from lc_compliance.config import get_settings
from lc_compliance.exceptions import (
    ConcurrencyConflictError, InvalidTransitionError, NotFoundError, PaymentRequiredError,
)
from lc_compliance.models.lc import CheckHistoryEntry, CorrectionRequest, LcCase, LcCheck, PaidRecheck
from lc_compliance.models.lookup import TradeLookup
from lc_compliance.schemas.events import (
    CorrectionSentEvent, LcCheckEvent, LcRecheckEvent, StatusChangeEvent,
)
from lc_compliance.schemas.lc import DocumentSubmission, LcCheckSummary, LcTerms, Severity, Verdict
from lc_compliance.services.audit_service import AuditService
from lc_compliance.services.correction_service import build_correction_messages
from lc_compliance.services.discrepancy import compute_integrity_hash, run_check
from lc_compliance.utils.dates import utcnow

logger = logging.getLogger(__name__)


class CaseStatus(str, Enum):
    CHECKING = "checking"
    ALL_CLEAR = "all_clear"
    DISCREPANCY = "discrepancy"
    PENDING_CORRECTION = "pending_correction"
    RECHECKING = "rechecking"
    RESOLVED = "resolved"
    CLOSED = "closed"


ALLOWED_TRANSITIONS = {
    CaseStatus.CHECKING: {CaseStatus.ALL_CLEAR, CaseStatus.DISCREPANCY},
    CaseStatus.DISCREPANCY: {CaseStatus.PENDING_CORRECTION, CaseStatus.RECHECKING},
    CaseStatus.PENDING_CORRECTION: {CaseStatus.PENDING_CORRECTION, CaseStatus.RECHECKING},
    CaseStatus.RECHECKING: {CaseStatus.RESOLVED, CaseStatus.DISCREPANCY},
    CaseStatus.ALL_CLEAR: {CaseStatus.CLOSED},
    CaseStatus.RESOLVED: {CaseStatus.CLOSED},
    CaseStatus.CLOSED: set(),
}

RECHECKABLE = {CaseStatus.DISCREPANCY, CaseStatus.PENDING_CORRECTION}
CORRECTABLE = {CaseStatus.DISCREPANCY, CaseStatus.PENDING_CORRECTION}
CLOSABLE = {CaseStatus.ALL_CLEAR, CaseStatus.RESOLVED}

_SEVERITY_RANK = {Severity.GREEN.value: 0, Severity.AMBER.value: 1, Severity.RED.value: 2}


def history_summary(summary: LcCheckSummary) -> str:
    """One-line text stored on a check-history entry."""
    return (
        f"{summary.criticals} critical, {summary.warnings} warning(s), "
        f"{summary.matches}/{summary.total_checks} matched"
    )


def compare_results(initial_results: Sequence[Dict], latest_results: Sequence[Dict]) -> List[Dict]:
    """Initial-vs-latest view: only fields AMBER/RED initially, marked Fixed when GREEN now."""

    def worst_by_field(rows):
        worst = {}
        for row in rows:
            key = (row["documentType"], row["fieldName"])
            if key not in worst or _SEVERITY_RANK[row["severity"]] > _SEVERITY_RANK[worst[key]]:
                worst[key] = row["severity"]
        return worst

    initial = worst_by_field(initial_results)
    latest = worst_by_field(latest_results)

    comparison = []
    for (document_type, field_name), severity in initial.items():
        if severity == Severity.GREEN.value:
            continue
        latest_severity = latest.get((document_type, field_name))
        comparison.append({
            "field_name": field_name,
            "document_type": document_type,
            "initial_severity": severity,
            "latest_severity": latest_severity,
            "state": "Fixed" if latest_severity == Severity.GREEN.value else "Open",
        })
    return comparison


class CaseService:
    """State machine and persistence for LC cases."""

    # ─── Helpers ────────────────────────────────────────────────────

    @staticmethod
    def _transition(case: LcCase, new_status: CaseStatus) -> None:
        current = CaseStatus(case.status)
        if new_status not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransitionError(
                f"Case cannot move from {current.value} to {new_status.value}",
                extra={"case_id": case.id, "status": current.value},
            )
        if current != new_status:
            logger.info("Case %s: %s -> %s", case.id, current.value, new_status.value)
        case.status = new_status.value

    @staticmethod
    def _require_status(case: LcCase, allowed: set, action: str) -> None:
        if CaseStatus(case.status) not in allowed:
            raise InvalidTransitionError(
                f"Cannot {action} while the case is {case.status}",
                extra={"case_id": case.id, "status": case.status},
            )

    @staticmethod
    def _case_for_lookup(db: Session, lookup_id: str) -> Optional[LcCase]:
        return (
            db.query(LcCase)
            .filter(LcCase.source_lookup_id == lookup_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_case(db: Session, case_id: str, for_update: bool = False) -> LcCase:
        query = db.query(LcCase).filter(LcCase.id == case_id)
        if for_update:
            # locked reads must not reuse a stale copy from the identity map
            query = query.with_for_update().populate_existing()
        case = query.first()
        if not case:
            raise NotFoundError("LC case not found", extra={"case_id": case_id})
        return case

    @staticmethod
    def get_check(db: Session, check_id: str) -> LcCheck:
        check = db.query(LcCheck).filter(LcCheck.id == check_id).first()
        if not check:
            raise NotFoundError("LC check not found", extra={"check_id": check_id})
        return check

    @staticmethod
    def list_cases(
        db: Session,
        session_id: Optional[str] = None,
        source_lookup_id: Optional[str] = None,
        limit: int = 50,
    ) -> list[LcCase]:
        query = db.query(LcCase).order_by(LcCase.updated_at.desc())
        if session_id:
            query = query.filter(LcCase.session_id == session_id)
        if source_lookup_id:
            query = query.filter(LcCase.source_lookup_id == source_lookup_id)
        return query.limit(limit).all()

    @staticmethod
    def list_checks(db: Session, session_id: Optional[str] = None, limit: int = 20) -> list[LcCheck]:
        query = db.query(LcCheck).order_by(LcCheck.created_at.desc())
        if session_id:
            query = query.filter(LcCheck.session_id == session_id)
        return query.limit(limit).all()

    @staticmethod
    def _authorize_recheck(db: Session, case: LcCase, payment_ref: Optional[str], session_id: str) -> bool:
        """Free while recheck_count < max_free_rechecks; otherwise spend an unused payment reference.

        Returns True when the re-check is a paid one.
        """
        if case.recheck_count < case.max_free_rechecks:
            return False

        detail = {
            "type": "lc_recheck",
            "case_id": case.id,
            "recheck_count": case.recheck_count,
            "max_free_rechecks": case.max_free_rechecks,
        }
        if not payment_ref:
            raise PaymentRequiredError(
                f"All {case.max_free_rechecks} free re-checks have been used. Purchase a re-check to continue.",
                extra=detail,
            )
        if db.query(PaidRecheck).filter(PaidRecheck.payment_ref == payment_ref).first():
            raise PaymentRequiredError(
                "This re-check payment has already been used. Please purchase a new re-check.",
                extra=detail,
            )
        db.add(PaidRecheck(payment_ref=payment_ref, case_id=case.id, session_id=session_id, consumed_at=utcnow()))
        return True

    @staticmethod
    def _new_check(
        terms: LcTerms,
        documents: Sequence[DocumentSubmission],
        outcome,
        integrity_hash: str,
        session_id: str,
        source_lookup_id: Optional[str],
        case_id: Optional[str],
        recheck_number: int,
    ) -> LcCheck:
        messages = build_correction_messages(terms, outcome.results)
        return LcCheck(
            id=str(uuid.uuid4()),
            session_id=session_id,
            source_lookup_id=source_lookup_id,
            case_id=case_id,
            recheck_number=recheck_number,
            lc_fields_json=terms.model_dump(mode="json", by_alias=True),
            documents_json=[d.model_dump(mode="json", by_alias=True) for d in documents],
            results_json=[r.model_dump(mode="json", by_alias=True) for r in outcome.results],
            summary=outcome.summary.model_dump(mode="json", by_alias=True),
            verdict=outcome.summary.verdict.value,
            integrity_hash=integrity_hash,
            correction_email=messages.email or None,
            correction_whatsapp=messages.whatsapp or None,
            created_at=utcnow(),
        )

    # ─── Operations ─────────────────────────────────────────────────

    @staticmethod
    def submit_check(
        db: Session,
        terms: LcTerms,
        documents: Sequence[DocumentSubmission],
        session_id: str,
        source_lookup_id: Optional[str] = None,
        payment_ref: Optional[str] = None,
        checked_at: Optional[datetime] = None,
    ) -> Tuple[LcCheck, Optional[LcCase]]:
        """Run a check and record it against the lookup's case.

        Args:
            db: Database session.
            terms: LC terms snapshot.
            documents: Extracted documents.
            session_id: Submitting session.
            source_lookup_id: Shipment the check belongs to; None for a standalone check.
            payment_ref: Unused payment reference authorising a re-check beyond the free allowance.
            checked_at: Reference time for the check. Defaults to the current UTC time;
                the presentation-period row depends on it, so replaying a check needs
                the stored ``checkedAt``.

        Returns:
            (LcCheck, LcCase or None for standalone checks).

        Raises:
            ValidationError: incomplete terms or no documents (nothing persisted).
            NotFoundError: unknown lookup.
            InvalidTransitionError: case does not accept a re-check in its current status.
            PaymentRequiredError: free re-checks exhausted and no usable payment reference.
            ConcurrencyConflictError: another request changed the case first.
        """
        outcome = run_check(terms, documents, checked_at=checked_at)
        integrity_hash = compute_integrity_hash(terms, documents, outcome.results, outcome.summary)
        summary = outcome.summary

        if source_lookup_id is None:
            check = CaseService._new_check(terms, documents, outcome, integrity_hash, session_id, None, None, 0)
            db.add(check)
            db.commit()
            db.refresh(check)
            logger.info("Standalone LC check %s: %s", check.id, check.verdict)
            return check, None

        try:
            if not db.query(TradeLookup.id).filter(TradeLookup.id == source_lookup_id).first():
                raise NotFoundError("Lookup not found", extra={"source_lookup_id": source_lookup_id})

            case = CaseService._case_for_lookup(db, source_lookup_id)
            paid = False
            if case is None:
                case = LcCase(
                    id=str(uuid.uuid4()),
                    session_id=session_id,
                    source_lookup_id=source_lookup_id,
                    status=CaseStatus.CHECKING.value,
                    recheck_count=0,
                    max_free_rechecks=get_settings().MAX_FREE_RECHECKS,
                    lc_reference=terms.lc_reference,
                    beneficiary_name=terms.beneficiary_name,
                )
                db.add(case)
                db.flush()
                recheck_number = 0
            else:
                CaseService._require_status(case, RECHECKABLE, "run a re-check")
                paid = CaseService._authorize_recheck(db, case, payment_ref, session_id)
                CaseService._transition(case, CaseStatus.RECHECKING)
                recheck_number = len(case.check_history)

            check = CaseService._new_check(
                terms, documents, outcome, integrity_hash, session_id, source_lookup_id, case.id, recheck_number,
            )
            db.add(check)
            db.flush()

            case.check_history.append(CheckHistoryEntry(
                case_id=case.id,
                recheck_number=recheck_number,
                check_id=check.id,
                verdict=summary.verdict.value,
                summary=history_summary(summary),
                created_at=check.created_at,
            ))
            case.recheck_count = len(case.check_history) - 1
            case.latest_check_id = check.id

            passed = summary.verdict != Verdict.DISCREPANCIES_FOUND
            if recheck_number == 0:
                case.initial_check_id = check.id
                CaseService._transition(case, CaseStatus.ALL_CLEAR if passed else CaseStatus.DISCREPANCY)
                payload = LcCheckEvent(
                    check_id=check.id,
                    case_id=case.id,
                    verdict=summary.verdict.value,
                    integrity_hash=integrity_hash,
                    criticals=summary.criticals,
                    warnings=summary.warnings,
                )
            else:
                CaseService._transition(case, CaseStatus.RESOLVED if passed else CaseStatus.DISCREPANCY)
                payload = LcRecheckEvent(
                    check_id=check.id,
                    case_id=case.id,
                    recheck_number=recheck_number,
                    verdict=summary.verdict.value,
                    integrity_hash=integrity_hash,
                    criticals=summary.criticals,
                    warnings=summary.warnings,
                    paid=paid,
                )

            AuditService.append_event(db, source_lookup_id, session_id, payload)
            db.commit()
        except (IntegrityError, StaleDataError) as exc:
            db.rollback()
            logger.warning("Concurrent update on case for lookup %s: %s", source_lookup_id, exc)
            raise ConcurrencyConflictError(
                "This LC case was updated by another request, please retry",
                extra={"source_lookup_id": source_lookup_id},
            ) from exc
        except Exception:
            db.rollback()
            raise

        db.refresh(check)
        logger.info(
            "LC check %s for case %s (recheck #%d): %s",
            check.id, case.id, recheck_number, check.verdict,
        )
        return check, case

    @staticmethod
    def log_correction(
        db: Session,
        case_id: str,
        channel: str,
        session_id: str,
        discrepancy_count: Optional[int] = None,
    ) -> LcCase:
        """Record that the supplier was asked to correct documents; moves the case to pending_correction."""
        try:
            case = CaseService.get_case(db, case_id, for_update=True)
            CaseService._require_status(case, CORRECTABLE, "log a correction request")

            if discrepancy_count is None:
                latest = db.query(LcCheck).filter(LcCheck.id == case.latest_check_id).first()
                discrepancy_count = int(latest.summary.get("criticals", 0)) if latest else 0

            sent_at = utcnow()
            case.correction_requests.append(CorrectionRequest(
                case_id=case.id,
                sequence=len(case.correction_requests),
                channel=channel,
                discrepancy_count=discrepancy_count,
                sent_at=sent_at,
            ))
            CaseService._transition(case, CaseStatus.PENDING_CORRECTION)
            case.updated_at = sent_at

            AuditService.append_event(
                db, case.source_lookup_id, session_id,
                CorrectionSentEvent(case_id=case.id, channel=channel, discrepancy_count=discrepancy_count),
            )
            db.commit()
        except (IntegrityError, StaleDataError) as exc:
            db.rollback()
            raise ConcurrencyConflictError(
                "This LC case was updated by another request, please retry",
                extra={"case_id": case_id},
            ) from exc
        except Exception:
            db.rollback()
            raise

        db.refresh(case)
        return case

    @staticmethod
    def close_case(db: Session, case_id: str, session_id: str, reason: Optional[str] = None) -> LcCase:
        """Manually close an all_clear or resolved case. Terminal."""
        try:
            case = CaseService.get_case(db, case_id, for_update=True)
            CaseService._require_status(case, CLOSABLE, "close the case")

            previous = case.status
            CaseService._transition(case, CaseStatus.CLOSED)
            case.closed_at = utcnow()
            case.closed_reason = reason

            AuditService.append_event(
                db, case.source_lookup_id, session_id,
                StatusChangeEvent(
                    from_status=previous,
                    to_status=CaseStatus.CLOSED.value,
                    case_id=case.id,
                    reason=reason,
                ),
            )
            db.commit()
        except (IntegrityError, StaleDataError) as exc:
            db.rollback()
            raise ConcurrencyConflictError(
                "This LC case was updated by another request, please retry",
                extra={"case_id": case_id},
            ) from exc
        except Exception:
            db.rollback()
            raise

        db.refresh(case)
        return case

    @staticmethod
    def derive_status(case: LcCase) -> CaseStatus:
        """Status implied by the latest history entry and outstanding correction requests."""
        if case.status == CaseStatus.CLOSED.value:
            return CaseStatus.CLOSED
        if not case.check_history:
            return CaseStatus.CHECKING

        latest = case.check_history[-1]
        if latest.verdict == Verdict.DISCREPANCIES_FOUND.value:
            outstanding = [c for c in case.correction_requests if c.sent_at >= latest.created_at]
            return CaseStatus.PENDING_CORRECTION if outstanding else CaseStatus.DISCREPANCY
        return CaseStatus.ALL_CLEAR if latest.recheck_number == 0 else CaseStatus.RESOLVED

    @staticmethod
    def comparison(db: Session, case_id: str) -> dict:
        """Internal read surface for the initial-vs-latest view."""
        case = CaseService.get_case(db, case_id)

        checks = {
            c.id: c
            for c in db.query(LcCheck).filter(LcCheck.id.in_(
                [i for i in (case.initial_check_id, case.latest_check_id) if i]
            )).all()
        }
        initial = checks.get(case.initial_check_id)
        latest = checks.get(case.latest_check_id)

        def snapshot(check: Optional[LcCheck]):
            if check is None:
                return None
            return {
                "id": check.id,
                "verdict": check.verdict,
                "results": check.results_json,
                "summary": check.summary,
                "created_at": check.created_at,
            }

        chain = AuditService.verify_chain(db, case.source_lookup_id)

        return {
            "case_id": case.id,
            "status": case.status,
            "recheck_count": case.recheck_count,
            "max_free_rechecks": case.max_free_rechecks,
            "free_rechecks_remaining": case.free_rechecks_remaining,
            "initial_check": snapshot(initial),
            "latest_check": snapshot(latest),
            "check_history": list(case.check_history),
            "correction_requests": list(case.correction_requests),
            "field_comparison": compare_results(
                initial.results_json if initial else [],
                latest.results_json if latest else [],
            ),
            "chain_valid": chain.valid,
        }
