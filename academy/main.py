"""FastAPI application entrypoint."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, Response, status
from sqlalchemy import text

import academy.modules  # noqa: F401
from academy.core.config import get_settings
from academy.core.database import SessionLocal, close_engine, session_scope
from academy.core.metrics import build_metrics_response, instrument_http_request
from academy.modules.audit.router import router as audit_router
from academy.modules.capacity.router import router as capacity_router
from academy.modules.catalog.router import router as catalog_router
from academy.modules.identity.repository import IdentityRepository
from academy.modules.identity.router import router as identity_router
from academy.modules.identity.service import IdentityService
from academy.modules.notifications.router import router as notifications_router
from academy.modules.payments.router import router as payments_router
from academy.modules.pricing.router import router as pricing_router
from academy.modules.promotions.router import router as promotions_router
from academy.modules.reservations.router import router as reservations_router
from academy.modules.waitlist.router import router as waitlist_router
from academy.shared.exceptions import register_exception_handlers
from academy.shared.utils import utc_now

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Application startup and shutdown hooks."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logger.info("Starting %s (payment gateway: %s)", settings.app_name, settings.payment_gateway_backend)

    try:
        async with session_scope() as session:
            await IdentityService(IdentityRepository(session)).ensure_default_roles()
        logger.info("Default roles ensured")
    except Exception:
        logger.exception("Failed during startup initialization")
        raise

    yield

    logger.info("Shutting down %s", settings.app_name)
    await close_engine()


app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan,
)
app.middleware("http")(instrument_http_request)

register_exception_handlers(app)

app.include_router(identity_router, prefix=settings.api_prefix)
app.include_router(catalog_router, prefix=settings.api_prefix)
app.include_router(capacity_router, prefix=settings.api_prefix)
app.include_router(pricing_router, prefix=settings.api_prefix)
app.include_router(promotions_router, prefix=settings.api_prefix)
app.include_router(reservations_router, prefix=settings.api_prefix)
app.include_router(payments_router, prefix=settings.api_prefix)
app.include_router(waitlist_router, prefix=settings.api_prefix)
app.include_router(notifications_router, prefix=settings.api_prefix)
app.include_router(audit_router, prefix=settings.api_prefix)


@app.get("/health")
async def healthcheck() -> dict[str, str]:
    """Liveness endpoint."""
    return {"status": "ok"}


async def _is_database_ready() -> bool:
    """Return True if DB accepts basic queries."""
    try:
        async with SessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("Database readiness check failed")
        return False


@app.get("/ready")
async def readiness_check() -> dict[str, str]:
    """Readiness endpoint with DB dependency check."""
    if not await _is_database_ready():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not ready",
        )
    return {
        "status": "ready",
        "database": "ok",
        "timestamp": utc_now().isoformat(),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint(_: Request) -> Response:
    """Prometheus metrics endpoint."""
    return build_metrics_response()
