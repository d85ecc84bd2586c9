"""Tests for services/audit_service.py — hash-chained trail, verification, fork rejection."""

import json

import pytest
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from lc_compliance.exceptions import ChainWriteConflictError
from lc_compliance.models.audit import AuditEvent
from lc_compliance.models.lc import PaidRecheck
from lc_compliance.schemas.events import (
    EVENT_PAYLOADS, ArrivalEvent, EventType, StatusChangeEvent, TradeClosedEvent,
    event_data, parse_event,
)
from lc_compliance.services.audit_service import AuditService, compute_event_hash
from lc_compliance.services.case_service import CaseService
from lc_compliance.services.twinlog_service import TwinlogService
from lc_compliance.utils.hashing import GENESIS, canonical_json

from conftest import CHECKED_AT


@pytest.fixture
def lookup(db):
    return TwinlogService.register_lookup(
        db, session_id="sess-1",
        commodity_name="Cocoa beans", origin_name="Ghana", destination_name="United Kingdom",
    )


def _append(db, lookup, payload):
    entry = AuditService.append_event(db, lookup.id, "sess-1", payload)
    db.commit()
    return entry


def _append_many(db, lookup, n):
    for i in range(n):
        _append(db, lookup, ArrivalEvent(arrival_date=f"2026-04-{i + 1:02d}", port="Felixstowe"))


# ═══════════════════════════════════════════════════
# HASHING
# ═══════════════════════════════════════════════════

class TestHashing:
    def test_canonical_json_sorts_keys_and_stringifies_numbers(self):
        assert canonical_json({"b": 1, "a": {"d": 2.5, "c": True}}) == '{"a":{"c":true,"d":"2.5"},"b":"1"}'

    def test_first_event_chains_to_genesis(self, db, lookup):
        first = AuditService.get_trail(db, lookup.id)[0]
        assert first.previous_hash is None
        assert first.sequence == 0
        assert first.event_hash == compute_event_hash(
            first.event_type, first.event_data, first.created_at, None,
        )
        assert first.event_hash == compute_event_hash(
            first.event_type, first.event_data, first.created_at, GENESIS,
        )

    def test_event_data_is_camel_case_without_type(self):
        data = event_data(StatusChangeEvent(from_status="all_clear", to_status="closed", case_id="c1"))
        assert data == {"fromStatus": "all_clear", "toStatus": "closed", "caseId": "c1", "reason": None}


# ═══════════════════════════════════════════════════
# APPEND & VERIFY
# ═══════════════════════════════════════════════════

class TestChain:
    def test_events_link_in_order(self, db, lookup):
        _append_many(db, lookup, 4)
        trail = AuditService.get_trail(db, lookup.id)
        assert [e.sequence for e in trail] == [0, 1, 2, 3, 4]
        for prev, cur in zip(trail, trail[1:]):
            assert cur.previous_hash == prev.event_hash

    def test_untouched_chain_is_valid(self, db, lookup):
        _append_many(db, lookup, 3)
        result = AuditService.verify_chain(db, lookup.id)
        assert result.valid
        assert result.total_events == 4
        assert result.broken_at is None

    def test_empty_chain_is_valid(self, db):
        result = AuditService.verify_chain(db, "no-such-lookup")
        assert result.valid
        assert result.total_events == 0

    def test_edited_event_data_breaks_chain_at_that_event(self, db, lookup):
        _append_many(db, lookup, 3)
        target = AuditService.get_trail(db, lookup.id)[2]

        db.execute(
            text("UPDATE trade_events SET event_data = :data WHERE id = :id"),
            {"data": json.dumps({"arrivalDate": "2026-05-01", "port": "Felixstowe"}), "id": target.id},
        )
        db.commit()
        db.expire_all()

        result = AuditService.verify_chain(db, lookup.id)
        assert not result.valid
        assert result.broken_at == 2
        assert result.broken_event_id == target.id
        assert result.reason == "event content does not match its hash"

    def test_rewritten_link_is_detected(self, db, lookup):
        _append_many(db, lookup, 2)
        target = AuditService.get_trail(db, lookup.id)[1]

        db.execute(
            text("UPDATE trade_events SET previous_hash = :prev WHERE id = :id"),
            {"prev": "0" * 64, "id": target.id},
        )
        db.commit()
        db.expire_all()

        result = AuditService.verify_chain(db, lookup.id)
        assert not result.valid
        assert result.broken_at == 1

    def test_orm_updates_are_refused(self, db, lookup):
        entry = AuditService.get_trail(db, lookup.id)[0]
        entry.event_type = "trade_closed"
        with pytest.raises(RuntimeError):
            db.commit()
        db.rollback()

    def test_chains_are_independent_per_lookup(self, db, lookup):
        other = TwinlogService.register_lookup(
            db, session_id="sess-2",
            commodity_name="Cashew nuts", origin_name="Ivory Coast", destination_name="Netherlands",
        )
        _append(db, lookup, TradeClosedEvent(reason="delivered"))
        assert AuditService.get_trail(db, other.id)[0].sequence == 0
        assert AuditService.verify_chain(db, other.id).valid
        assert AuditService.verify_chain(db, lookup.id).total_events == 2


# ═══════════════════════════════════════════════════
# FORK REJECTION
# ═══════════════════════════════════════════════════

class TestForkRejection:
    def test_writer_with_stale_tail_retries_after_the_winner(self, db, lookup, monkeypatch):
        real_latest = AuditService._latest_event
        stale_tail = real_latest(db, lookup.id)
        _append(db, lookup, ArrivalEvent(arrival_date="2026-04-01"))   # the winner

        calls = {"n": 0}

        def stale_then_real(session, lookup_id):
            calls["n"] += 1
            return stale_tail if calls["n"] == 1 else real_latest(session, lookup_id)

        monkeypatch.setattr(AuditService, "_latest_event", staticmethod(stale_then_real))
        loser = _append(db, lookup, ArrivalEvent(arrival_date="2026-04-02"))

        assert calls["n"] == 2
        trail = AuditService.get_trail(db, lookup.id)
        assert len(trail) == 3
        assert loser.sequence == 2
        assert len({e.previous_hash for e in trail}) == len(trail)
        assert AuditService.verify_chain(db, lookup.id).valid

    def test_gives_up_after_max_attempts(self, db, lookup, monkeypatch):
        stale_tail = None   # pretends the chain is empty, so sequence 0 always collides
        calls = {"n": 0}

        def always_stale(session, lookup_id):
            calls["n"] += 1
            return stale_tail

        monkeypatch.setattr(AuditService, "_latest_event", staticmethod(always_stale))
        with pytest.raises(ChainWriteConflictError):
            AuditService.append_event(db, lookup.id, "sess-1", ArrivalEvent(arrival_date="2026-04-01"))
        db.rollback()

        assert calls["n"] == 5
        assert db.query(AuditEvent).filter(AuditEvent.lookup_id == lookup.id).count() == 1

    def test_callers_own_conflict_is_not_taken_for_a_fork(self, db, lookup, terms, clean_documents, monkeypatch):
        _, case = CaseService.submit_check(
            db, terms, clean_documents, "sess-1", source_lookup_id=lookup.id, checked_at=CHECKED_AT,
        )
        db.add(PaidRecheck(payment_ref="PAY-1", case_id=case.id, session_id="sess-1"))
        db.commit()
        before = len(AuditService.get_trail(db, lookup.id))

        calls = {"n": 0}
        real_latest = AuditService._latest_event

        def counting(session, lookup_id):
            calls["n"] += 1
            return real_latest(session, lookup_id)

        monkeypatch.setattr(AuditService, "_latest_event", staticmethod(counting))

        # same payment reference spent twice in this transaction
        db.add(PaidRecheck(payment_ref="PAY-1", case_id=case.id, session_id="sess-1"))
        with pytest.raises(IntegrityError):
            AuditService.append_event(db, lookup.id, "sess-1", ArrivalEvent(arrival_date="2026-04-01"))
        db.rollback()

        assert calls["n"] == 0
        assert len(AuditService.get_trail(db, lookup.id)) == before
        assert db.query(PaidRecheck).count() == 1


# ═══════════════════════════════════════════════════
# EVENT PAYLOADS
# ═══════════════════════════════════════════════════

class TestEventPayloads:
    def test_every_event_type_has_one_payload_model(self):
        assert set(EVENT_PAYLOADS) == set(EventType)

    def test_parse_event_dispatches_on_event_type(self):
        payload = parse_event({"eventType": "arrival", "arrivalDate": "2026-04-01", "port": "Tilbury"})
        assert isinstance(payload, ArrivalEvent)
        assert payload.port == "Tilbury"

    def test_parse_event_rejects_unknown_type(self):
        with pytest.raises(PydanticValidationError):
            parse_event({"eventType": "teleported"})
