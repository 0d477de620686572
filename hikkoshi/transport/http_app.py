# hikkoshi/transport/http_app.py
"""
HTTP application: estimate wizard API and LINE webhook.

Public surface:
1. Wizard API: quote, postal lookup, wizard step storage
2. Estimate hand-off: persist an estimate, link it to a LINE user
3. LINE webhook (signature validated)
4. No information leakage in production
"""
from __future__ import annotations

import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from fastapi.middleware.cors import CORSMiddleware

from hikkoshi.config import settings
from hikkoshi.core.pricing import DEFAULT_PRICING_CONFIG, EstimateInputError
from hikkoshi.core.pricing.config import load_pricing_config
from hikkoshi.core.quote_service import QuoteService, format_estimate
from hikkoshi.core.wizard.forms import QuoteRequest
from hikkoshi.core.wizard.store import InMemoryWizardStore, WizardKey, WizardStore
from hikkoshi.infra.db_async import close_pool, db_conn, init_pool
from hikkoshi.infra.distance import DistanceLookupError, get_distance_provider
from hikkoshi.infra.http_client import close_all_sessions
from hikkoshi.infra.logging_config import setup_logging, get_logger, LogContext
from hikkoshi.infra.metrics import get_metrics_collector
from hikkoshi.infra.pg_estimate_repo_async import AsyncPostgresEstimateRepository
from hikkoshi.infra.postal import lookup_postal_code
from hikkoshi.infra.schema_validator import validate_schema_version
from hikkoshi.transport.line_webhook import line_webhook_handler
from hikkoshi.transport.middleware import (
    RequestIDMiddleware,
    RequestLoggingMiddleware,
    ErrorHandlingMiddleware,
    SecurityHeadersMiddleware,
)
from hikkoshi.transport.schemas import EstimateCreateIn, EstimateCreateOut, LinkIn
from hikkoshi.transport.security import sanitize_error_message

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)

ESTIMATE_ID_BYTES = 9  # 12 URL-safe characters


def new_estimate_id() -> str:
    return secrets.token_urlsafe(ESTIMATE_ID_BYTES)


def build_liff_url(estimate_id: str) -> str:
    """LIFF deep link carrying the estimate id, or the friend-add URL when LIFF is not set."""
    if settings.liff_id:
        return f"https://liff.line.me/{settings.liff_id}?estimateId={estimate_id}"
    return f"https://line.me/R/ti/p/{settings.line_official_account_id}?estimateId={estimate_id}"


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message, **extra},
    )


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting application: env={settings.app_env}")

    if settings.is_production:
        missing = settings.validate_required_for_production()
        if missing:
            logger.critical(f"Missing required production settings: {missing}")
            raise RuntimeError(f"Missing production config: {missing}")

        if not settings.require_webhook_validation:
            logger.critical("REQUIRE_WEBHOOK_VALIDATION must be true in production")
            raise RuntimeError("Webhook validation disabled in production")

    await init_pool()
    logger.info("Database pool initialized")

    # Validate schema version (does NOT run migrations)
    # Migrations run separately: python -m hikkoshi.infra.migrate
    try:
        schema_result = await validate_schema_version()
        logger.info(
            f"Schema validated: {schema_result['current_version']}",
            extra=schema_result
        )
    except Exception:
        logger.critical(
            "Schema validation failed. Run migrations first: python -m hikkoshi.infra.migrate",
            exc_info=True
        )
        raise

    pricing = (
        load_pricing_config(settings.pricing_config_path)
        if settings.pricing_config_path
        else DEFAULT_PRICING_CONFIG
    )
    logger.info(f"Pricing config loaded: base_fee_mode={pricing.base_fee_mode}")

    provider = get_distance_provider(settings)
    logger.info(f"Distance provider: {provider.name}")

    fastapi_app.state.estimate_repo = AsyncPostgresEstimateRepository()
    fastapi_app.state.quote_service = QuoteService(distance_provider=provider, config=pricing)
    fastapi_app.state.wizard_store = InMemoryWizardStore()

    if settings.line_enabled:
        logger.info("LINE integration: ENABLED (webhook path: /webhook)")
    else:
        logger.warning(
            "LINE credentials not configured. Set LINE_CHANNEL_SECRET and "
            "LINE_CHANNEL_ACCESS_TOKEN to enable LINE integration."
        )

    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")
    await close_all_sessions()
    await close_pool()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title="Hikkoshi Estimate",
    description="Moving-cost estimate API and LINE bot backend",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

# CORS: the wizard front-end and the LIFF page call this API from the browser
if settings.is_production or settings.is_staging:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type"],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Pydantic validation errors: field location + message only"""
    details = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error(422, "Invalid request", details=details)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)
    return _error(500, sanitize_error_message(exc, settings.is_production))


# ============================================================================
# HEALTH
# ============================================================================

@app.get("/", response_class=PlainTextResponse)
def root():
    return "ok"


@app.get("/health")
def health():
    """Liveness check for load balancers and uptime monitors."""
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/ready")
async def readiness():
    """Readiness check: the database answers."""
    try:
        async with db_conn() as conn:
            await conn.fetchval("SELECT 1")
    except Exception:
        logger.warning("Readiness check failed", exc_info=True)
        return JSONResponse(status_code=503, content={"status": "unhealthy"})
    return {"status": "ok"}


@app.get("/metrics")
def metrics():
    """In-process counters and histograms."""
    if not settings.enable_metrics:
        raise HTTPException(status_code=404, detail="Not found")
    return get_metrics_collector().get_metrics()


# ============================================================================
# WIZARD API
# ============================================================================

@app.post("/api/quote")
async def quote(payload: QuoteRequest, request: Request):
    """Final wizard step: route the two addresses and price the move."""
    service: QuoteService = request.app.state.quote_service

    try:
        result = await service.quote(payload)
    except DistanceLookupError as exc:
        logger.warning(f"Quote failed, distance lookup: {exc.message}")
        return _error(502, "距離の取得に失敗しました。時間をおいて再度お試しください。")
    except EstimateInputError as exc:
        logger.warning(f"Quote failed, invalid input: {exc}")
        return _error(400, sanitize_error_message(exc, settings.is_production))

    return {
        "success": True,
        "estimate": result.to_dict(),
        "formatted": format_estimate(result),
    }


@app.get("/api/postal/{code}")
async def postal_lookup(code: str):
    result = await lookup_postal_code(code)
    if not result.success:
        return JSONResponse(status_code=400, content=result.to_dict())
    return result.to_dict()


@app.get("/api/wizard/{session_id}")
def wizard_get(session_id: str, request: Request):
    store: WizardStore = request.app.state.wizard_store
    return {"success": True, "steps": store.get_all(session_id)}


@app.put("/api/wizard/{session_id}/{key}")
def wizard_put(session_id: str, key: WizardKey, payload: dict[str, Any], request: Request):
    store: WizardStore = request.app.state.wizard_store
    store.set(session_id, key, payload)
    return {"success": True}


@app.delete("/api/wizard/{session_id}")
def wizard_clear(session_id: str, request: Request):
    store: WizardStore = request.app.state.wizard_store
    store.clear(session_id)
    return {"success": True}


# ============================================================================
# ESTIMATE HAND-OFF (wizard → LINE)
# ============================================================================

@app.post("/api/estimates")
async def create_estimate(payload: EstimateCreateIn, request: Request):
    """Persist the estimate summary and return the LINE deep link."""
    estimate_id = new_estimate_id()
    log_ctx = LogContext(
        logger,
        request_id=getattr(request.state, "request_id", None),
        estimate_id=estimate_id,
    )

    try:
        await request.app.state.estimate_repo.insert_estimate(estimate_id, payload.to_row())
    except Exception as exc:
        log_ctx.error(f"Error creating estimate: {exc.__class__.__name__}", exc_info=True)
        return _error(500, sanitize_error_message(exc, settings.is_production))

    log_ctx.info("Estimate created")
    return EstimateCreateOut(estimateId=estimate_id, liffUrl=build_liff_url(estimate_id))


@app.post("/api/link")
async def link_estimate(payload: LinkIn, request: Request):
    """Attach a LINE user to an estimate (called from the LIFF page)."""
    if not payload.estimate_id or not payload.line_user_id:
        return _error(400, "estimateId and lineUserId are required")

    try:
        linked = await request.app.state.estimate_repo.link_estimate(
            payload.estimate_id, payload.line_user_id
        )
    except Exception as exc:
        logger.error(f"Error linking estimate: {exc.__class__.__name__}", exc_info=True)
        return _error(500, sanitize_error_message(exc, settings.is_production))

    if not linked:
        return _error(404, "Estimate not found")
    return {"success": True, "message": "Linked successfully"}


@app.get("/api/estimates/{estimate_id}")
async def get_estimate(estimate_id: str, request: Request):
    try:
        estimate = await request.app.state.estimate_repo.get_by_id(estimate_id)
    except Exception as exc:
        logger.error(f"Error getting estimate: {exc.__class__.__name__}", exc_info=True)
        return _error(500, sanitize_error_message(exc, settings.is_production))

    if estimate is None:
        return _error(404, "Estimate not found")
    return {"success": True, "estimate": jsonable_encoder(estimate)}


# ============================================================================
# LINE WEBHOOK
# ============================================================================

@app.post("/webhook")
async def webhook_line(request: Request):
    return await line_webhook_handler(request)


@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
async def catch_all(path: str):
    """
    Catch-all route for undefined endpoints.
    Returns generic 404 without revealing information.
    """
    logger.warning(f"404 - Unknown route accessed: {path}")
    raise HTTPException(status_code=404, detail="Not found")


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "hikkoshi.transport.http_app:app",
        host="0.0.0.0",
        port=settings.port,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )
