"""
Trade Lookup Model — the shipment record that LC cases and the audit chain hang off.
Maps to the 'lookups' table. The compliance-lookup flow that fills it is external.
"""
import uuid
from sqlalchemy import Column, String, Integer, DateTime

from lc_compliance.database import Base
from lc_compliance.utils.dates import utcnow


class TradeLookup(Base):
    __tablename__ = "lookups"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    session_id = Column(String(64), index=True)

    commodity_name = Column(String(128), nullable=False)
    origin_name = Column(String(128), nullable=False)
    destination_name = Column(String(128), nullable=False)
    hs_code = Column(String(16))
    risk_level = Column(String(16))

    readiness_score = Column(Integer, nullable=True)
    readiness_verdict = Column(String(10), nullable=True)   # GO | CAUTION | STOP

    # Public TwinLog reference handed to banks; never the lookup id itself
    twinlog_ref = Column(String(32), unique=True, index=True, nullable=True)
    twinlog_hash = Column(String(64), nullable=True)
    twinlog_locked_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow)
