#!/usr/bin/env python3
"""
RoofCRM Deals API
=================

FastAPI service for the roofing deal workflow: deal records, step
requirements, status transitions, uploads and commission bookkeeping.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from ...crm.config import config
from ...crm.deals.workflow import (
    DealWorkflowEngine,
    close_workflow_engine,
    get_workflow_engine,
    set_workflow_engine,
)
from ...crm.observability import SERVICE, configure_logging, init_metrics, init_tracing
from ..shared.middleware import AuthMiddleware, TraceMiddleware, TracingMiddleware, register_error_handlers
from ..shared.routers import health_router
from .routers import deals_router, reps_router, uploads_router

logger = logging.getLogger(__name__)


# =============================================================================
# OBSERVABILITY INITIALIZATION
# =============================================================================

def init_observability():
    """Initialize observability components (tracing, metrics, logging)."""
    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    console_export = os.getenv("OTEL_CONSOLE_EXPORT", "false").lower() == "true"

    configure_logging(
        level=config.LOG_LEVEL,
        structured=config.LOG_STRUCTURED,
        service_name=SERVICE,
    )

    if config.OTEL_ENABLED or otlp_endpoint:
        init_tracing(
            service_name=SERVICE,
            service_version=config.APP_VERSION,
            otlp_endpoint=otlp_endpoint,
            console_export=console_export,
        )
        init_metrics(
            service_name=SERVICE,
            otlp_endpoint=otlp_endpoint,
            console_export=console_export,
        )
        logger.info("OpenTelemetry observability initialized")


# =============================================================================
# LIFESPAN
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan - startup and shutdown."""
    init_observability()

    for issue in config.validate():
        logger.warning(f"Config: {issue}")

    if getattr(app.state, "engine", None) is None:
        app.state.engine = await get_workflow_engine()
    logger.info(f"Deal store ready: {type(app.state.engine.store).__name__}")

    yield

    await close_workflow_engine()
    app.state.engine = None
    logger.info("Deal store closed")


# =============================================================================
# FASTAPI APP
# =============================================================================

def create_app(engine: Optional[DealWorkflowEngine] = None) -> FastAPI:
    """
    Build the API app.

    Passing an engine installs it up front, which is how tests run the app
    without a lifespan.
    """
    app = FastAPI(
        title="RoofCRM Deals API",
        description="Deal workflow engine for roofing insurance jobs",
        version=config.APP_VERSION,
        lifespan=lifespan,
    )
    app.state.engine = engine
    if engine is not None:
        set_workflow_engine(engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.add_middleware(TraceMiddleware)
    app.add_middleware(TracingMiddleware)
    # Added last so it runs first and sees every request
    app.add_middleware(AuthMiddleware)

    app.include_router(health_router)
    app.include_router(deals_router)
    app.include_router(uploads_router)
    app.include_router(reps_router)
    return app


app = create_app()


# MAIN
# =============================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.api.deals.main:app",
        host=config.API_HOST,
        port=config.API_PORT,
        reload=not config.is_production,
    )
