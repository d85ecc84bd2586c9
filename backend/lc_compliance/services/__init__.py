from lc_compliance.services.audit_service import AuditService
from lc_compliance.services.case_service import CaseService, CaseStatus
from lc_compliance.services.twinlog_service import TwinlogService

__all__ = ["AuditService", "CaseService", "CaseStatus", "TwinlogService"]
