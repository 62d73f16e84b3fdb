"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers) and
owns the lifecycle of the in-memory services: the rate limiter and the
formula update queue live on ``app.state`` and are created per app instance,
so every test app starts from a clean state.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.sheets.base import AbstractSheetsClient
from app.adapters.sheets.factory import create_sheets_client
from app.api.routes import admin_router, annotations_router, health_router
from app.core.config import settings
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations
from app.core.rate_limit import build_rate_limiter
from app.services.annotation_service import AnnotationService
from app.services.formula_queue import FormulaUpdateQueue

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup",
        extra={
            "app_env": settings.app_env,
            "formula_min_delay_ms": app.state.formula_queue.min_delay_ms,
        },
    )
    try:
        yield
    finally:
        await app.state.formula_queue.dispose()
        await app.state.sheets_client.aclose()
        logger.info("app.shutdown")


def create_app(
    *,
    sheets_client: AbstractSheetsClient | None = None,
    rate_limiter: AbstractRateLimiter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        sheets_client: Spreadsheet store client (defaults to the configured one).
        rate_limiter: Admission controller (defaults to the in-memory limiter).

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    app = FastAPI(
        title="Annotation Dashboard API",
        description=(
            "Backend for a crowdsourced annotation workflow stored in spreadsheets. "
            "Every endpoint is rate limited per caller and route; payment formula "
            "refreshes are coalesced in a background queue."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    sheets = sheets_client or create_sheets_client()

    async def refresh_payment_formulas(spreadsheet_id: str, access_token: str) -> None:
        await sheets.update_payment_formulas(access_token, spreadsheet_id)

    queue = FormulaUpdateQueue(
        refresh_payment_formulas,
        min_delay_ms=settings.queue.min_delay_ms,
        guard_ms=settings.queue.guard_ms,
    )
    app.state.sheets_client = sheets
    app.state.rate_limiter = rate_limiter or build_rate_limiter()
    app.state.formula_queue = queue
    app.state.annotation_service = AnnotationService(sheets=sheets, formula_queue=queue)

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(annotations_router, prefix="/v1")
    app.include_router(admin_router, prefix="/v1")
    app.include_router(health_router)

    # OpenAPI customizations (security scheme, tags, exemptions)
    apply_openapi_customizations(app)

    return app
