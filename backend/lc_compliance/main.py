"""
LC Compliance Engine — FastAPI Application Entry Point

Aggregates all routers, configures logging and middleware, maps domain
errors to HTTP responses, and initializes the database on startup.
"""
import logging
import os
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from lc_compliance.config import get_settings
from lc_compliance.database import SessionLocal, init_db
from lc_compliance.exceptions import ComplianceError
from lc_compliance.schemas.schemas import ErrorResponse
from lc_compliance.routes import (
    lookups_router, lc_checks_router, lc_cases_router, twinlog_router, verify_router,
)

settings = get_settings()
logger = logging.getLogger("lc_compliance")

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Letter-of-credit document compliance API. Cross-checks LC terms against "
        "commercial invoices, bills of lading, certificates and packing lists, tracks "
        "each shipment's case through correction and re-check, and keeps a "
        "hash-chained TwinLog audit trail that banks can verify by reference."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


def configure_logging() -> None:
    """Console plus a file handler under LOG_DIR, attached once to the package logger."""
    if logger.handlers:
        return

    os.makedirs(settings.LOG_DIR, exist_ok=True)
    formatter = logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    file_handler = logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"))
    file_handler.setFormatter(formatter)

    logger.addHandler(console)
    logger.addHandler(file_handler)
    logger.setLevel(settings.LOG_LEVEL.upper())


@app.on_event("startup")
def on_startup():
    """Initialize database tables and log boot info."""
    configure_logging()
    init_db()

    logger.info(
        "\n%s\n  %s v%s\n  TIME: %s\n  DATABASE: %s\n  DEBUG: %s\n  FREE RECHECKS: %d\n%s",
        "=" * 60,
        settings.APP_NAME, settings.APP_VERSION,
        datetime.now().isoformat(),
        settings.DATABASE_URL,
        settings.DEBUG,
        settings.MAX_FREE_RECHECKS,
        "=" * 60,
    )


# ─── Middleware ──────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with timing."""
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 1)

    if request.url.path.startswith("/api"):
        logger.info("%s %s -> %d (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error Mapping ───────────────────────────────────────────────────
@app.exception_handler(ComplianceError)
async def compliance_error_handler(request: Request, exc: ComplianceError):
    if exc.status_code >= 500:
        logger.warning("%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.message)
    body = ErrorResponse(detail=exc.message, error_code=exc.error_code, extra=exc.extra or None)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(lookups_router)
app.include_router(lc_checks_router)
app.include_router(lc_cases_router)
app.include_router(twinlog_router)
app.include_router(verify_router)


@app.get("/health", tags=["Health"])
def deep_health():
    """Detailed health check including database status."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception as e:
        logger.warning("Health check database probe failed: %s", e)
    finally:
        db.close()

    return {
        "status": "healthy" if db_ok else "degraded",
        "database": "connected" if db_ok else "disconnected",
        "uptime_seconds": round(time.time() - BOOT_TIME, 1),
        "version": settings.APP_VERSION,
    }
