"""Tests for services/twinlog_service.py — lookup registration, locking, public view."""

import json
import re

import pytest
from sqlalchemy import text

from lc_compliance.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from lc_compliance.schemas.events import ArrivalEvent, LcCheckEvent
from lc_compliance.services.audit_service import AuditService
from lc_compliance.services.twinlog_service import TwinlogService


@pytest.fixture
def lookup(db):
    return TwinlogService.register_lookup(
        db, session_id="sess-1",
        commodity_name="Cocoa beans", origin_name="Ghana", destination_name="United Kingdom",
        readiness_score=82, readiness_verdict="GO",
    )


class TestRegistration:
    def test_registration_opens_the_trail(self, db, lookup):
        trail = AuditService.get_trail(db, lookup.id)
        assert len(trail) == 1
        assert trail[0].event_type == "compliance_check"
        assert trail[0].event_data["commodityName"] == "Cocoa beans"

    def test_record_event_on_unknown_lookup(self, db):
        with pytest.raises(NotFoundError):
            TwinlogService.record_event(db, "missing", "sess-1", ArrivalEvent(arrival_date="2026-04-01"))

    def test_engine_event_types_are_refused(self, db, lookup):
        payload = LcCheckEvent(check_id="x", verdict="COMPLIANT", integrity_hash="0" * 64)
        with pytest.raises(ValidationError):
            TwinlogService.record_event(db, lookup.id, "sess-1", payload)


class TestLock:
    def test_lock_assigns_reference_and_hash(self, db, lookup):
        locked = TwinlogService.lock(db, lookup.id, "sess-1")
        assert re.fullmatch(r"TT-\d{4}-[0-9A-F]{6}", locked.twinlog_ref)

        last = AuditService.get_trail(db, lookup.id)[-1]
        assert last.event_type == "twinlog_generated"
        assert last.event_data["ref"] == locked.twinlog_ref
        assert locked.twinlog_hash == last.event_hash

    def test_lock_is_idempotent(self, db, lookup):
        first = TwinlogService.lock(db, lookup.id, "sess-1")
        ref, locked_at = first.twinlog_ref, first.twinlog_locked_at
        second = TwinlogService.lock(db, lookup.id, "sess-1")
        assert second.twinlog_ref == ref
        assert second.twinlog_locked_at == locked_at
        assert len(AuditService.get_trail(db, lookup.id)) == 2

    def test_broken_chain_cannot_be_locked(self, db, lookup):
        first = AuditService.get_trail(db, lookup.id)[0]
        db.execute(
            text("UPDATE trade_events SET event_data = :data WHERE id = :id"),
            {"data": json.dumps({"commodityName": "Gold"}), "id": first.id},
        )
        db.commit()
        db.expire_all()

        with pytest.raises(InvalidTransitionError):
            TwinlogService.lock(db, lookup.id, "sess-1")


class TestPublicView:
    def test_view_of_locked_trail(self, db, lookup):
        locked = TwinlogService.lock(db, lookup.id, "sess-1")
        TwinlogService.record_event(db, lookup.id, "sess-1", ArrivalEvent(arrival_date="2026-04-12"))

        view = TwinlogService.public_view(db, locked.twinlog_ref)
        assert view["chain_valid"] is True
        assert view["hash_in_chain"] is True
        assert view["total_events"] == 3
        assert view["readiness_verdict"] == "GO"
        assert lookup.id not in json.dumps(view, default=str)

    def test_tampered_trail_shows_invalid(self, db, lookup):
        locked = TwinlogService.lock(db, lookup.id, "sess-1")
        first = AuditService.get_trail(db, lookup.id)[0]
        db.execute(
            text("UPDATE trade_events SET event_data = :data WHERE id = :id"),
            {"data": json.dumps({"commodityName": "Gold"}), "id": first.id},
        )
        db.commit()
        db.expire_all()

        view = TwinlogService.public_view(db, locked.twinlog_ref)
        assert view["chain_valid"] is False

    def test_unknown_reference(self, db):
        with pytest.raises(NotFoundError):
            TwinlogService.public_view(db, "TT-2026-FFFFFF")
