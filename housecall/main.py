# housecall/main.py
from __future__ import annotations

# Load .env early so settings pick it up everywhere
from dotenv import load_dotenv
load_dotenv()

import secrets

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from housecall.core.config import settings
from housecall.core.errors import AlreadySubmittedError, BackendError, CatalogResolutionError, IntakeValidationError
from housecall.core.logging import LoggingMiddleware, get_logger, setup_logging

setup_logging(debug=settings.is_development, max_log_length=settings.MAX_LOG_LENGTH)
logger = get_logger(__name__)

from housecall.api.routes.intake import router as intake_router
from housecall.api.routes.sessions import router as sessions_router

app = FastAPI(title="Housecall Intake", description="Appointment intake and scheduling rules for house-call practices")

app.middleware("http")(
    LoggingMiddleware(
        log_requests=settings.LOG_REQUESTS or settings.is_development,
        log_responses=settings.LOG_RESPONSES or settings.is_development,
    )
)


# -------- Health (public) --------
@app.get("/healthz", include_in_schema=False)
async def healthz():
    return {"ok": True}


# -------- API key gate --------
PUBLIC_EXACT = {"/healthz", "/docs", "/openapi.json", "/favicon.ico"}


@app.middleware("http")
async def require_api_key(request: Request, call_next):
    if not settings.INTAKE_API_KEY or request.url.path in PUBLIC_EXACT:
        return await call_next(request)

    api_key = request.headers.get("X-API-Key", "")
    if not secrets.compare_digest(api_key, settings.INTAKE_API_KEY):
        logger.warning("api_key_rejected", path=request.url.path, has_key=bool(api_key))
        return JSONResponse({"detail": "Invalid or missing API key"}, status_code=401)
    return await call_next(request)


# -------- Error mapping --------
@app.exception_handler(IntakeValidationError)
async def intake_validation_handler(request: Request, exc: IntakeValidationError):
    return JSONResponse({"detail": str(exc)}, status_code=422)


@app.exception_handler(CatalogResolutionError)
async def catalog_handler(request: Request, exc: CatalogResolutionError):
    return JSONResponse({"detail": exc.message, "field": exc.field}, status_code=502)


@app.exception_handler(BackendError)
async def backend_handler(request: Request, exc: BackendError):
    logger.error("backend_error", error=str(exc), endpoint=exc.endpoint, status_code=exc.status_code)
    return JSONResponse({"detail": "The practice system is not reachable right now"}, status_code=502)


@app.exception_handler(AlreadySubmittedError)
async def already_submitted_handler(request: Request, exc: AlreadySubmittedError):
    return JSONResponse({"detail": str(exc)}, status_code=409)


# -------- Include routers --------
app.include_router(intake_router)
app.include_router(sessions_router)
