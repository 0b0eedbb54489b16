# clinic_booking/main.py
from __future__ import annotations

# Load .env early so os.getenv works everywhere
from dotenv import load_dotenv
load_dotenv()

import secrets

import sqlalchemy as sa
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.config import settings
from clinic_booking.core.errors import ClinicError, ErrorSeverity, log_error
from clinic_booking.core.logging import LoggingMiddleware, get_logger, setup_logging
from clinic_booking.db.session import get_session

# Set up structured logging
setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH, level=settings.LOG_LEVEL)
logger = get_logger(__name__)

# Routers
from clinic_booking.api.routes.appointments import router as appointments_router
from clinic_booking.api.routes.clinic_calendar import router as calendar_router, me_router
from clinic_booking.api.routes.dentists import router as dentists_router
from clinic_booking.api.routes.weekly_schedule import router as weekly_router

app = FastAPI(title="Clinic Booking", description="Clinic availability and capacity-constrained booking")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.middleware("http")(LoggingMiddleware(
    log_requests=settings.LOG_REQUESTS,
    log_responses=settings.LOG_RESPONSES,
    slow_threshold=settings.SLOW_REQUEST_THRESHOLD,
))

# -------- Health / readiness (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}

@app.get("/readyz", include_in_schema=False)
async def readyz(db: AsyncSession = Depends(get_session)):
    await db.execute(sa.text("SELECT 1"))
    return {"db": "ok"}

# -------- Optional API key gate --------
PUBLIC_EXACT = {"/healthz", "/readyz", "/favicon.ico", "/docs", "/openapi.json"}

def _is_public(path: str) -> bool:
    return path in PUBLIC_EXACT

@app.middleware("http")
async def api_key_gate(request: Request, call_next):
    if not settings.CLINIC_API_KEY or _is_public(request.url.path) or request.method == "OPTIONS":
        return await call_next(request)

    api_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(api_key, settings.CLINIC_API_KEY):
        logger.warning("api_key_rejected", path=request.url.path, has_key=bool(api_key))
        return JSONResponse({"message": "Invalid or missing API key"}, status_code=401)
    return await call_next(request)

# -------- Error handling --------
@app.exception_handler(ClinicError)
async def clinic_error_handler(request: Request, exc: ClinicError):
    logger.info(
        "request_rejected",
        path=request.url.path,
        reason=exc.reason.value,
        status_code=exc.status_code,
    )
    return JSONResponse(exc.to_payload(), status_code=exc.status_code)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    message = errors[0]["message"] if errors else "The given data was invalid."
    return JSONResponse({"message": message, "errors": errors}, status_code=422)

@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    severity = ErrorSeverity.HIGH if isinstance(exc, sa.exc.DBAPIError) else ErrorSeverity.MEDIUM
    fingerprint = log_error(exc, {"endpoint": request.url.path, "method": request.method}, severity)
    return JSONResponse({"message": "Server error.", "error_id": fingerprint}, status_code=500)

# -------- Include routers --------
app.include_router(appointments_router)
app.include_router(calendar_router)
app.include_router(me_router)
app.include_router(weekly_router)
app.include_router(dentists_router)
