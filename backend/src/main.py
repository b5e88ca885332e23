"""
FastAPI application entry point for the lodge chancellor backend.

This module initializes the FastAPI application with:
- Application state (AlertReviewRegistry)
- CORS middleware for the frontend
- Exception handlers for consistent error responses
- Startup handler creating the database schema
- Logging configuration

Environment Variables:
    LODGE_DB_URL: Database connection URL
    LODGE_ENV: Environment (production/development, default: development)
    LODGE_LOG_LEVEL: Log level (DEBUG/INFO/WARNING/ERROR/CRITICAL, default: INFO)
    LODGE_CORS_ORIGINS: Comma-separated allowed origins
"""

from contextlib import asynccontextmanager
from typing import Dict, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from backend.src.config.settings import get_settings
from backend.src.db.database import dispose_engine, init_db
from backend.src.services.chancellor_service import AlertReviewRegistry
from backend.src.utils.logging_config import init_logging, get_logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events:
    - Startup: Create missing tables, initialize application state
    - Shutdown: Dispose of the database engine

    Args:
        app: FastAPI application instance

    Yields:
        Control to the application
    """
    # Startup
    logger = get_logger("api")
    logger.info("Starting lodge chancellor backend")

    init_db()
    app.state.review_registry = AlertReviewRegistry()
    logger.info("Application state initialized successfully")

    yield

    # Shutdown
    logger.info("Shutting down lodge chancellor backend")
    dispose_engine()


# Initialize logging before creating app
init_logging()

# Create FastAPI application
app = FastAPI(
    title="Lodge Chancellor API",
    description="Backend API for lodge attendance reconciliation. "
                "Tracks session attendance, consecutive-absence alerts "
                "and beneficence collections mirrored into the ledger.",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers


@app.exception_handler(ValidationError)
async def validation_exception_handler(
    request: Request, exc: ValidationError
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Args:
        request: HTTP request
        exc: Pydantic ValidationError

    Returns:
        JSON response with validation error details
    """
    logger = get_logger("api")
    logger.warning(
        "Validation error",
        extra={"extra_fields": {
            "path": request.url.path,
            "method": request.method,
            "errors": exc.errors(include_url=False, include_context=False),
        }}
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation Error",
            "message": "Request validation failed",
            "details": exc.errors(include_url=False, include_context=False),
        }
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """
    Handle SQLAlchemy database errors.

    Args:
        request: HTTP request
        exc: SQLAlchemy exception

    Returns:
        JSON response with database error message
    """
    logger = get_logger("db")
    logger.error(
        "Database error",
        extra={"extra_fields": {
            "path": request.url.path,
            "method": request.method,
            "error": str(exc),
        }}
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Database Error",
            "message": "An error occurred while accessing the database. "
                      "Please try again later.",
        }
    )


# Health check endpoint


@app.get("/health", tags=["Health"])
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns:
        Health status and application information
    """
    return {
        "status": "healthy",
        "service": "lodge-chancellor-backend",
        "version": "1.0.0",
    }


# API routers
from backend.src.api import chancellor

app.include_router(chancellor.router, prefix="/api")
