"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from statportal import __version__
from statportal.api import router as admin_router
from statportal.config import load_settings
from statportal.database.connection import Base, check_connection, init_database
from statportal.instrumentation.metrics import SYSTEM_INFO, setup_metrics
from statportal.middleware.error_handler import (
    ErrorHandlingMiddleware,
    RequestValidationMiddleware,
    install_error_handlers,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting statistics portal data core...")

    if getattr(app.state, "session_factory", None) is None:
        session_factory = init_database(app.state.settings)
        Base.metadata.create_all(bind=session_factory.kw["bind"])
        app.state.session_factory = session_factory
        logger.info("Database tables created/verified")

    yield

    logger.info("Shutting down application...")
    session_factory = app.state.session_factory
    if session_factory is not None:
        session_factory.kw["bind"].dispose()


def create_app(settings: Optional[dict] = None) -> FastAPI:
    """Build the application; tests pass their own settings."""
    settings = settings if settings is not None else load_settings()

    logging.basicConfig(
        level=getattr(logging, settings.get("LOG_LEVEL", "INFO"), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(
        title="Statistics Portal - Indicator Data Core",
        description=(
            "Storage, validation, revision, verification and bulk import of "
            "indicator time-series data."
        ),
        version=__version__,
        lifespan=lifespan,
        openapi_tags=[
            {"name": "System", "description": "Health endpoints"},
            {"name": "Indicator Data", "description": "Single-record data management"},
            {"name": "Bulk Import", "description": "Batch ingestion of indicator data"},
        ],
    )
    app.state.settings = settings
    app.state.session_factory = None

    # last added = first executed
    app.add_middleware(RequestValidationMiddleware)
    app.add_middleware(ErrorHandlingMiddleware)

    allowed_origins = settings.get("ALLOWED_ORIGINS", "").split(",") if settings.get("ALLOWED_ORIGINS") else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    install_error_handlers(app)
    setup_metrics(app)
    SYSTEM_INFO.info({"version": __version__, "deployment_mode": str(settings.get("DEPLOYMENT_MODE", "local"))})

    app.include_router(admin_router)

    @app.get("/health", tags=["System"])
    def health_check(request: Request):
        """Liveness plus a database ping."""
        session_factory = getattr(request.app.state, "session_factory", None)
        db_status = "not_initialized"
        if session_factory is not None:
            with session_factory() as db:
                db_status = "connected" if check_connection(db) else "disconnected"
        return {
            "status": "healthy" if db_status == "connected" else "degraded",
            "version": __version__,
            "database": db_status,
        }

    return app


app = create_app()
