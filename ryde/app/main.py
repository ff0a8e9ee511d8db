"""
FastAPI Application Entry Point.

This is the main application file for the Ryde account backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from ryde.app.core.config import settings
from ryde.app.api.v1.router import router as api_v1_router
from ryde.app.core.observability import ObservabilityMiddleware, configure_logging
from ryde.app.db.session import engine, Base, AsyncSessionLocal
from ryde.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)
from ryde.app.services.otp import OtpSweeper

# Import models to ensure they are registered with Base
from ryde.app.models.user import User  # noqa: F401
from ryde.app.models.otp_code import OtpCode  # noqa: F401
from ryde.app.models.audit_log import AuditLog  # noqa: F401

configure_logging(settings.log_level)
logger = logging.getLogger("ryde")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Starts the hourly sweep of expired OTP codes.
    3. Stops the sweeper and disposes the connection pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sweeper = OtpSweeper(AsyncSessionLocal, settings.otp_sweep_interval_minutes)
    if settings.otp_sweep_enabled:
        sweeper.start()
    logger.info("%s started", settings.app_name)
    yield
    await sweeper.stop()
    await engine.dispose()
    logger.info("%s stopped", settings.app_name)


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Account management backend for the Ryde ride-hailing app",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=settings.api_prefix)


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to the Ryde Backend API",
        "docs": "/docs",
        "health": "/health",
    }
