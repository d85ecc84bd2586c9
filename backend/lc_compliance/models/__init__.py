from lc_compliance.models.lookup import TradeLookup
from lc_compliance.models.audit import AuditEvent
from lc_compliance.models.lc import LcCheck, LcCase, CheckHistoryEntry, CorrectionRequest, PaidRecheck

__all__ = [
    "TradeLookup", "AuditEvent",
    "LcCheck", "LcCase", "CheckHistoryEntry", "CorrectionRequest", "PaidRecheck",
]
