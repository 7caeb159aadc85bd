"""
StudyHub Backend - FastAPI Application Factory
==============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers.
Who:   uvicorn (`uvicorn studyhub.main:app`) and the test suite.

Application Architecture:
    ┌─────────────────────────────────────────────────────────┐
    │                      FastAPI App                        │
    │                                                         │
    │  Middleware Chain:                                      │
    │  ┌────────┐ ┌────────────┐ ┌────────────┐ ┌───────────┐ │
    │  │ Req ID │→│ Rate Limit │→│ Access Log │→│ GZip/CORS │ │
    │  └────────┘ └────────────┘ └────────────┘ └───────────┘ │
    │                                                         │
    │  Routes:                                                │
    │  ┌────────────────────────────┐ ┌─────────────────────┐ │
    │  │ /api/materials...          │ │ GET /health         │ │
    │  └────────────────────────────┘ └─────────────────────┘ │
    │                                                         │
    │  Exception Handlers:                                    │
    │  ┌───────────────────────────────────────────────────┐  │
    │  │ Validation→400 │ NotFound→404 │ Duplicate→409     │  │
    │  │ RateLimit→429  │ Store→500    │ Unexpected→500    │  │
    │  └───────────────────────────────────────────────────┘  │
    └─────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   configure logging, validate production configuration
    Shutdown:  dispose the database engine (close pooled connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from studyhub import __version__
from studyhub.config import settings
from studyhub.database import dispose_engine
from studyhub.exceptions import (
    DuplicateMaterialError,
    NotFoundError,
    RateLimitExceededError,
    StoreFailureError,
    StudyHubError,
    ValidationError,
)
from studyhub.middleware.logging import RequestLoggingMiddleware
from studyhub.middleware.rate_limit import RateLimitMiddleware
from studyhub.middleware.request_id import RequestIDMiddleware, error_body, request_id_var
from studyhub.routes import health, materials

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure the root logger once, before anything else logs.

    Format: 2026-01-15T12:00:00 [INFO] studyhub.services.material_service: ...
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Our access log replaces uvicorn's; SQL echo only when asked for.
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.log_level == "DEBUG" else logging.WARNING
    )


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("StudyHub Backend %s starting (%s)", __version__, settings.environment)

    # Misconfigured production refuses to start.
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        raise

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("StudyHub Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the exception hierarchy to HTTP responses.

        ValidationError          → 400 validation_error
        InvalidAssetLinkError    → 400 invalid_asset_link
        RequestValidationError   → 400 validation_error (unparseable body)
        NotFoundError            → 404 not_found
        DuplicateMaterialError   → 409 duplicate_material
        RateLimitExceededError   → 429 rate_limit_exceeded
        StoreFailureError        → 500 server_error
        StudyHubError (base)     → 500 server_error
        Exception (fallback)     → 500 internal_server_error

    500 responses carry a generic message; the cause is logged server-side.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        details = {"field": exc.field} if exc.field else None
        return JSONResponse(
            status_code=400,
            content=error_body(exc.error_code, exc.message, details),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {"msg": "Invalid request", "loc": ()}
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        logger.warning("[%s] Unparseable request: %s", request_id_var.get(""), first["msg"])
        return JSONResponse(
            status_code=400,
            content=error_body(
                "validation_error", first["msg"], {"field": field} if field else None
            ),
        )

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content=error_body("not_found", exc.message),
        )

    @app.exception_handler(DuplicateMaterialError)
    async def handle_duplicate(request: Request, exc: DuplicateMaterialError):
        return JSONResponse(
            status_code=409,
            content=error_body("duplicate_material", exc.message),
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return JSONResponse(
            status_code=429,
            content=error_body("rate_limit_exceeded", exc.message, exc.context),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(StoreFailureError)
    async def handle_store_failure(request: Request, exc: StoreFailureError):
        rid = request_id_var.get("")
        logger.error(
            "[%s] Store failure: %s | Context: %s",
            rid,
            exc.message,
            exc.context,
            exc_info=exc.__cause__ is not None,
        )
        return JSONResponse(
            status_code=500,
            content=error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(StudyHubError)
    async def handle_application_error(request: Request, exc: StudyHubError):
        logger.error("[%s] Application error: %s", request_id_var.get(""), exc.message)
        return JSONResponse(
            status_code=500,
            content=error_body("server_error", "An internal error occurred. Please try again later."),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error(
            "[%s] Unexpected error: %s",
            request_id_var.get(""),
            str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content=error_body(
                "internal_server_error",
                "An unexpected error occurred. Please try again or contact support.",
            ),
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="StudyHub Materials API",
        description=(
            "Catalog of academic study materials (notes, assignments, past papers, "
            "handouts) with paginated listing and community upvotes."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition:
    # RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(materials.router)
    app.include_router(health.router)

    return app


app = create_app()
