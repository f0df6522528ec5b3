"""
DevFocus - FastAPI Application
==============================

Main application factory with all routers and middleware.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, SQLAlchemyError, StatementError

from devfocus.api import ai, auth, sessions, tasks
from devfocus.api.deps import DbSession
from devfocus.core.assistant import close_assistant
from devfocus.core.config import settings
from devfocus.core.database import close_db, init_db
from devfocus.core.exceptions import ConflictError, DevFocusError, ValidationError
from devfocus.core.mailer import close_mailer
from devfocus.core.schemas import ErrorResponse, HealthResponse

# Configure structured logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer() if settings.is_production else structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()


# ==========================================================================
# Lifespan
# ==========================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan handler.

    Startup:
    - Create tables if missing

    Shutdown:
    - Close the mail and AI provider clients
    - Close database connections
    """
    logger.info("Starting DevFocus", version=settings.APP_VERSION)

    await init_db()
    logger.info("Database initialized")

    yield

    logger.info("Shutting down DevFocus")
    await close_mailer()
    await close_assistant()
    await close_db()
    logger.info("Database connections closed")


# ==========================================================================
# Error Rendering
# ==========================================================================

def error_response(exc: DevFocusError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.title,
            detail=exc.detail,
            code=exc.code,
        ).model_dump(),
        headers=exc.headers,
    )


def format_validation_errors(exc: RequestValidationError) -> str:
    """Flatten pydantic errors into one readable message."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        message = error.get("msg", "Invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages) or "Invalid request"


def map_database_error(exc: SQLAlchemyError) -> DevFocusError | None:
    """Translate known database-layer errors into the domain taxonomy."""
    if isinstance(exc, IntegrityError):
        message = str(exc.orig).lower() if exc.orig is not None else ""
        if "unique" in message or "duplicate" in message:
            return ConflictError("Resource already exists")
        return ValidationError("Request violates a data constraint")
    if isinstance(exc, DataError) or (
        isinstance(exc, StatementError) and not isinstance(exc, DBAPIError)
    ):
        return ValidationError("Invalid value for a stored field")
    return None


# ==========================================================================
# App Factory
# ==========================================================================

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        description="DevFocus - focus timer, task tracking and analytics",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ==========================================================================
    # Exception Handlers
    # ==========================================================================

    @app.exception_handler(DevFocusError)
    async def domain_exception_handler(request: Request, exc: DevFocusError) -> JSONResponse:
        """Render domain errors with their own status and code."""
        log = logger.warning if exc.status_code >= 500 else logger.info
        log(
            "request_failed",
            code=exc.code,
            status_code=exc.status_code,
            detail=exc.detail,
            path=request.url.path,
            method=request.method,
        )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed input is a 400 with a specific message."""
        return error_response(ValidationError(format_validation_errors(exc)))

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        mapped = map_database_error(exc)
        if mapped is not None:
            logger.info("database_error_mapped", code=mapped.code, path=request.url.path)
            return error_response(mapped)
        return await global_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error(
            "Unhandled exception",
            exc_info=exc,
            path=request.url.path,
            method=request.method,
        )

        if settings.is_development:
            detail = str(exc)
        else:
            detail = "An unexpected error occurred"

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=detail,
                code="INTERNAL_ERROR",
            ).model_dump(),
        )

    # ==========================================================================
    # Routers
    # ==========================================================================

    # Health check (no prefix)
    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["Health"],
        summary="Health check",
    )
    async def health_check(db: DbSession) -> HealthResponse:
        """Check application and database health."""
        try:
            await db.execute(text("SELECT 1"))
            database = "connected"
        except SQLAlchemyError as e:
            logger.warning("health_database_unavailable", error=str(e))
            database = "unavailable"

        return HealthResponse(
            status="healthy" if database == "connected" else "degraded",
            version=settings.APP_VERSION,
            environment=settings.ENVIRONMENT,
            database=database,
        )

    # API v1 routes
    app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
    app.include_router(tasks.router, prefix=settings.API_V1_PREFIX)
    app.include_router(sessions.router, prefix=settings.API_V1_PREFIX)
    app.include_router(ai.router, prefix=settings.API_V1_PREFIX)

    # ==========================================================================
    # Root Endpoint
    # ==========================================================================

    @app.get("/", tags=["Root"])
    async def root() -> dict:
        """Root endpoint with API info."""
        return {
            "name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "docs": "/docs" if settings.is_development else "Disabled in production",
            "health": "/health",
            "api": settings.API_V1_PREFIX,
        }

    return app


# ==========================================================================
# Application Instance
# ==========================================================================

app = create_app()


# ==========================================================================
# Development Server
# ==========================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "devfocus.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.is_development,
        log_level="info",
    )
