from lc_compliance.routes.lookups import router as lookups_router
from lc_compliance.routes.lc_checks import router as lc_checks_router
from lc_compliance.routes.lc_cases import router as lc_cases_router
from lc_compliance.routes.twinlog import router as twinlog_router
from lc_compliance.routes.verify import router as verify_router

__all__ = ["lookups_router", "lc_checks_router", "lc_cases_router", "twinlog_router", "verify_router"]
