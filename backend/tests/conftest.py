"""Shared fixtures for the LC compliance test suite."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from lc_compliance.database import enable_sqlite_transactions, get_db, init_db
from lc_compliance.main import app
from lc_compliance.schemas.lc import DocumentSubmission, LcTerms
from lc_compliance.utils.rate_limiter import reset_rate_limits

# Reference time for checks that include a bill of lading (5 days after shipment)
CHECKED_AT = datetime(2026, 3, 25, 9, 0, 0)


# ═══════════════════════════════════════════════════
# Database
# ═══════════════════════════════════════════════════

@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_transactions(eng)
    init_db(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a SQLite file, one connection each, for tests that interleave two sessions."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'lc_compliance.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_transactions(eng)
    init_db(bind=eng)
    yield sessionmaker(autocommit=False, autoflush=False, bind=eng)
    eng.dispose()


@pytest.fixture
def client(session_factory):
    """API client on the in-memory database. Do not mix with the ``db`` fixture in one test."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    reset_rate_limits()
    yield TestClient(app)
    app.dependency_overrides.clear()
    reset_rate_limits()


# ═══════════════════════════════════════════════════
# LC terms and documents (camelCase, as sent over the wire)
# ═══════════════════════════════════════════════════

@pytest.fixture
def lc_fields():
    return {
        "beneficiaryName": "Kofi Cocoa Exports Ltd",
        "applicantName": "Thames Chocolate Co",
        "goodsDescription": "Ghana cocoa beans main crop",
        "hsCode": "1801.00",
        "quantity": "25000",
        "quantityUnit": "KG",
        "unitPrice": "1.20",
        "currency": "USD",
        "totalAmount": "30000",
        "countryOfOrigin": "Ghana",
        "portOfLoading": "Tema",
        "portOfDischarge": "Felixstowe",
        "latestShipmentDate": "2026-03-31",
        "lcExpiryDate": "2026-04-21",
        "incoterms": "CIF",
        "lcReference": "LC-2026-0042",
    }


@pytest.fixture
def invoice_fields():
    return {
        "beneficiaryName": "Kofi Cocoa Exports Ltd",
        "applicantName": "Thames Chocolate Co",
        "goodsDescription": "Ghana cocoa beans main crop",
        "hsCode": "1801.00",
        "quantity": "25000",
        "quantityUnit": "KG",
        "unitPrice": "1.20",
        "currency": "USD",
        "totalAmount": "30000",
        "incoterms": "CIF",
        "lcReference": "LC-2026-0042",
    }


@pytest.fixture
def bl_fields():
    return {
        "blNumber": "MSKU1234567",
        "shipperName": "Kofi Cocoa Exports Ltd",
        "portOfLoading": "Tema",
        "portOfDischarge": "Felixstowe",
        "shippedOnBoardDate": "2026-03-20",
        "quantity": 25000,
        "goodsDescription": "Ghana cocoa beans main crop",
    }


@pytest.fixture
def terms(lc_fields):
    return LcTerms.model_validate(lc_fields)


@pytest.fixture
def clean_documents(invoice_fields, bl_fields):
    return [
        DocumentSubmission(document_type="commercial_invoice", fields=invoice_fields),
        DocumentSubmission(document_type="bill_of_lading", fields=bl_fields),
    ]


@pytest.fixture
def bad_documents(invoice_fields, bl_fields):
    """Invoice quantity 4% short of the LC: one RED row."""
    return [
        DocumentSubmission(document_type="commercial_invoice", fields={**invoice_fields, "quantity": "24000"}),
        DocumentSubmission(document_type="bill_of_lading", fields=bl_fields),
    ]
