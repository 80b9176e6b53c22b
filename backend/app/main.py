"""
AyurSutra Clinic — FastAPI Application Entry Point

Aggregates all routers, configures logging and middleware, maps domain
errors to HTTP responses, and initializes the database and audit log on
startup.
"""
import logging
import os
import sys
import time
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import get_settings
from app.database import SessionLocal, init_db
from app.exceptions import ClinicError
from app.routes import (
    auth_router, admin_router, doctor_router, practitioner_router,
    reception_router, patient_router, notification_router, reports_router,
)
from app.schemas.schemas import ErrorResponse, HealthResponse
from app.services.audit_service import AuditLog
from app.services.user_service import UserService

settings = get_settings()


def configure_logging():
    """Root logger to stdout and LOG_DIR/server.log."""
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s:%(name)s:%(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(os.path.join(settings.LOG_DIR, "server.log"), encoding="utf-8"),
        ],
    )
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


configure_logging()
logger = logging.getLogger(__name__)

# ─── Application Instance ───────────────────────────────────────────
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description=(
        "Backend for an Ayurvedic Panchakarma clinic. Covers staff accounts, "
        "patient registration with least-load doctor routing, therapy plans with "
        "session-driven progress, staff leave with automatic patient reassignment, "
        "and a hash-chained, tamper-evident audit trail."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# ─── Startup ─────────────────────────────────────────────────────────
BOOT_TIME = time.time()


@app.on_event("startup")
def on_startup():
    """Initialize tables, the process-wide audit log, and the first admin."""
    init_db()
    app.state.audit_log = AuditLog()

    db = SessionLocal()
    try:
        UserService(db, app.state.audit_log).ensure_bootstrap_admin(
            settings.BOOTSTRAP_ADMIN_USERNAME, settings.BOOTSTRAP_ADMIN_PASSWORD,
        )
    finally:
        db.close()

    logger.info(
        "\n%s\n  %s v%s\n  TIME: %s\n  DATABASE: %s\n  DEBUG: %s\n%s",
        "=" * 60, settings.APP_NAME, settings.APP_VERSION,
        datetime.now().isoformat(), settings.DATABASE_URL, settings.DEBUG, "=" * 60,
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
        logger.info("-> %s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration)

    return response


# ─── Error mapping ───────────────────────────────────────────────────
@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    if exc.status_code >= 500:
        logger.warning("%s %s: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(detail=exc.message, error_code=exc.error_code).model_dump(),
    )


# ─── API Routers ─────────────────────────────────────────────────────
app.include_router(auth_router)
app.include_router(admin_router)
app.include_router(doctor_router)
app.include_router(practitioner_router)
app.include_router(reception_router)
app.include_router(patient_router)
app.include_router(notification_router)
app.include_router(reports_router)


@app.get("/health", tags=["Health"], response_model=HealthResponse)
def deep_health():
    """Health check including database connectivity."""
    db_ok = False
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.exception("Database health check failed")
    finally:
        db.close()

    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.time() - BOOT_TIME, 1),
    )
