"""
Salary Path Backend - FastAPI Application

Main entry point for the application.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.database import close_db
from app.core.errors import register_exception_handlers
from app.core.http_client import create_http_client
from app.services.email_service import build_email_sender
from app.api.v1 import router as api_v1_router


APP_VERSION = "0.1.0"

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Builds the process-wide outbound HTTP client and email sender on startup
    and releases them, along with database connections, on shutdown.
    """
    logger.info("Starting Salary Path API (%s)", settings.ENVIRONMENT)
    http_client = create_http_client()
    app.state.http_client = http_client
    app.state.email_sender = build_email_sender(settings, http_client)
    try:
        yield
    finally:
        logger.info("Shutting down Salary Path API")
        await http_client.aclose()
        await close_db()


# Create FastAPI application
app = FastAPI(
    title="Salary Path API",
    description="Career and salary tracking backend: route step-up verification.",
    version=APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Include API routers
app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Health status and environment info.
    """
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": APP_VERSION,
    }
