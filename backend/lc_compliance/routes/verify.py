"""
Public Verification Routes — what a bank sees for a TwinLog reference.
No session required; rate limited per client IP.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from lc_compliance.config import get_settings
from lc_compliance.database import get_db
from lc_compliance.schemas.schemas import PublicVerificationResponse
from lc_compliance.services.twinlog_service import TwinlogService
from lc_compliance.utils.rate_limiter import rate_limit

settings = get_settings()
router = APIRouter(prefix="/api/verify", tags=["Public Verification"])


@router.get("/{ref}", response_model=PublicVerificationResponse)
def verify_twinlog(
    ref: str,
    db: Session = Depends(get_db),
    _throttle: bool = Depends(rate_limit(
        requests=settings.PUBLIC_VERIFY_RATE_LIMIT,
        window=settings.PUBLIC_VERIFY_RATE_WINDOW,
        scope="verify",
        max_clients=settings.PUBLIC_VERIFY_RATE_MAX_CLIENTS,
    )),
):
    return TwinlogService.public_view(db, ref)
